from __future__ import annotations

from dataclasses import replace

import pytest
from botocore.exceptions import ClientError

from invoice_bot.core.exceptions import CollaboratorError
from invoice_bot.services.document_storage import (
    LocalDocumentStorage,
    S3DocumentStorage,
    build_document_storage,
    invoice_document_key,
)


class FakeS3Client:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[dict] = []
        self.error = error

    def put_object(self, **kwargs):
        if self.error:
            raise self.error
        self.calls.append(kwargs)
        return {"ETag": '"abc"'}


def test_document_key_uses_invoice_number():
    assert invoice_document_key("2026001") == "invoice_2026001.pdf"


def test_local_storage_writes_file(tmp_path):
    storage = LocalDocumentStorage(tmp_path / "invoices")

    path = storage.save("invoice_2026001.pdf", b"%PDF-1.4")

    assert path.endswith("invoice_2026001.pdf")
    assert (tmp_path / "invoices" / "invoice_2026001.pdf").read_bytes() == b"%PDF-1.4"


def test_local_storage_overwrites_existing_document(tmp_path):
    storage = LocalDocumentStorage(tmp_path)
    storage.save("invoice_2026001.pdf", b"old")

    storage.save("invoice_2026001.pdf", b"new")

    assert (tmp_path / "invoice_2026001.pdf").read_bytes() == b"new"


def test_s3_storage_uploads_pdf_with_content_type():
    client = FakeS3Client()
    storage = S3DocumentStorage("invoices", s3_client=client, endpoint_url="https://storage.example.com/")

    url = storage.save("invoice_2026001.pdf", b"%PDF")

    assert url == "https://storage.example.com/invoices/invoice_2026001.pdf"
    assert client.calls == [
        {
            "Bucket": "invoices",
            "Key": "invoice_2026001.pdf",
            "Body": b"%PDF",
            "ContentType": "application/pdf",
        }
    ]


def test_s3_storage_without_endpoint_returns_s3_url():
    storage = S3DocumentStorage("invoices", s3_client=FakeS3Client())

    assert storage.save("invoice_2026001.pdf", b"%PDF") == "s3://invoices/invoice_2026001.pdf"


def test_s3_upload_failure_is_collaborator_error():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    storage = S3DocumentStorage("invoices", s3_client=FakeS3Client(error=error))

    with pytest.raises(CollaboratorError, match="Upload failed"):
        storage.save("invoice_2026001.pdf", b"%PDF")


def test_build_document_storage_defaults_to_local(test_config, tmp_path):
    storage = build_document_storage(replace(test_config, LOCAL_STORAGE_DIR=str(tmp_path)))

    assert isinstance(storage, LocalDocumentStorage)
    assert storage.base_dir == tmp_path

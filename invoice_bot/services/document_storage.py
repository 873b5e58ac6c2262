"""Storage backends for rendered invoice documents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from invoice_bot.core.config import Config, get_config
from invoice_bot.core.enums import StorageBackend
from invoice_bot.core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def invoice_document_key(invoice_number: str) -> str:
    return f"invoice_{invoice_number}.pdf"


class DocumentStorage(ABC):
    """Stores document bytes under a key and returns where they landed."""

    @abstractmethod
    def save(self, key: str, content: bytes) -> str:
        raise NotImplementedError


class LocalDocumentStorage(DocumentStorage):
    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def save(self, key: str, content: bytes) -> str:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            target = self.base_dir / key.replace("/", "_")
            target.write_bytes(content)
        except OSError as exc:
            raise CollaboratorError(f"Could not write document {key}") from exc
        return str(target)


class S3DocumentStorage(DocumentStorage):
    """Bucket storage; existing objects with the same key are replaced."""

    def __init__(self, bucket_name: str, s3_client=None, endpoint_url: str | None = None) -> None:
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.s3_client = s3_client or boto3.client("s3", endpoint_url=endpoint_url)

    def object_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket_name}/{key}"
        return f"s3://{self.bucket_name}/{key}"

    def save(self, key: str, content: bytes) -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=PDF_CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error(
                "storage.upload_failed",
                extra={"event": "storage.upload_failed", "key": key, "bucket": self.bucket_name},
            )
            raise CollaboratorError(f"Upload failed for {key}") from exc
        return self.object_url(key)


def build_document_storage(config: Config | None = None) -> DocumentStorage:
    cfg = config or get_config()
    if cfg.STORAGE_BACKEND == StorageBackend.S3.value:
        client = boto3.client(
            "s3",
            endpoint_url=cfg.S3_ENDPOINT,
            aws_access_key_id=cfg.S3_ACCESS_KEY,
            aws_secret_access_key=cfg.S3_SECRET_KEY,
        )
        return S3DocumentStorage(cfg.S3_BUCKET, s3_client=client, endpoint_url=cfg.S3_ENDPOINT)
    return LocalDocumentStorage(cfg.LOCAL_STORAGE_DIR)

import sys
from pathlib import Path

import pandas as pd

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from invoice_bot.database.db import get_engine

INVOICES_SQL = "SELECT id, invoice_number, user_id, issue_date, pdf_path FROM invoices ORDER BY id"


def find_missing_documents(invoices: pd.DataFrame) -> pd.DataFrame:
    """Rows whose document was never stored (empty or NULL ``pdf_path``)."""
    paths = invoices["pdf_path"].fillna("").astype(str).str.strip()
    return invoices[paths == ""]


def check_pdf_links() -> int:
    engine = get_engine()
    print(f"Connecting to: {engine.url.render_as_string(hide_password=True)}")

    print("\n" + "=" * 50)
    print("📋 INVOICE DOCUMENTS")
    print("=" * 50)
    invoices = pd.read_sql(INVOICES_SQL, engine)
    if invoices.empty:
        print("ℹ️  No invoices found.")
        return 0

    missing = find_missing_documents(invoices)
    print(f"✅ {len(invoices) - len(missing)} of {len(invoices)} invoices have a stored PDF.")
    if not missing.empty:
        print(f"\n❌ {len(missing)} invoices without a PDF:\n")
        print(missing[["id", "invoice_number", "user_id", "issue_date"]].to_string(index=False))
    return len(missing)


if __name__ == "__main__":
    sys.exit(1 if check_pdf_links() else 0)

# Configuration for the contractor billing service
import os
from pathlib import Path

# Business Details (printed on invoice PDFs)
BUSINESS_NAME = "Contractor Hub"
BUSINESS_PHONE = "+1 555 010 2000"
BUSINESS_EMAIL = "billing@contractorhub.example"
BUSINESS_ADDRESS = "100 Main Street, Springfield"

# Invoice Settings
PAYMENT_TERMS_DAYS = 30
PAYMENT_TERMS = "Due within 30 days of the issue date"
LATE_FEE_POLICY = "1.5% interest per month on overdue balances"
INVOICE_PREFIX = "INV-"
RECURRING_INVOICE_PREFIX = "REC-"

# Caller used when a request carries no X-User-Id header
DEFAULT_USER_ID = int(os.getenv("CONTRACTOR_USER_ID", "1"))


def _resolve_db_path():
    # CONTRACTOR_DB_PATH wins, then CONTRACTOR_DATA_DIR, then beside this file
    explicit = (os.getenv("CONTRACTOR_DB_PATH", "") or "").strip()
    if explicit:
        return Path(explicit).expanduser()
    data_dir = (os.getenv("CONTRACTOR_DATA_DIR", "") or "").strip()
    if data_dir:
        return Path(data_dir).expanduser() / "contractor_hub.db"
    return Path(__file__).with_name("contractor_hub.db")


DB_PATH = _resolve_db_path()

"""
Pelecard Receipts - Centralized Configuration
==============================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("receipts.settings")


# ==========================================
# 💳 Pelecard Gateway
# ==========================================
PELE_TERMINAL = os.getenv("PELE_TERMINAL", "")
PELE_USER = os.getenv("PELE_USER", "")
PELE_PASSWORD = os.getenv("PELE_PASSWORD", "")
PELE_INIT_URL = os.getenv("PELE_INIT_URL", "https://gateway21.pelecard.biz/PaymentGW/init")
PELE_LOOKUP_URL = os.getenv("PELE_LOOKUP_URL", "https://gateway21.pelecard.biz/PaymentGW/GetTransaction")
PELE_SHOP_NO = os.getenv("PELE_SHOP_NO", "001")
PELE_CURRENCY = os.getenv("PELE_CURRENCY", "1")  # 1 = ILS
PELE_MIN_PAYMENTS = os.getenv("PELE_MIN_PAYMENTS", "1")
PELE_MAX_PAYMENTS = os.getenv("PELE_MAX_PAYMENTS", "10")
PELE_VERIFY_TRANSACTIONS = os.getenv("PELE_VERIFY_TRANSACTIONS", "false").lower() == "true"

if not all([PELE_TERMINAL, PELE_USER, PELE_PASSWORD]):
    logger.warning("Pelecard credentials missing in .env (PELE_TERMINAL, PELE_USER, PELE_PASSWORD)")


# ==========================================
# 🧾 Summit Invoicing
# ==========================================
SUMMIT_COMPANY_ID = int(os.getenv("SUMMIT_COMPANY_ID") or "0")
SUMMIT_API_KEY = os.getenv("SUMMIT_API_KEY", "")
SUMMIT_CREATE_URL = os.getenv("SUMMIT_CREATE_URL", "https://app.sumit.co.il/accounting/documents/create/")

DEFAULT_CUSTOMER_NAME = os.getenv("DEFAULT_CUSTOMER_NAME", "Client")
DEFAULT_CUSTOMER_EMAIL = os.getenv("DEFAULT_CUSTOMER_EMAIL", "hd@puah.org.il")
DEDUPLICATE_INVOICES = os.getenv("DEDUPLICATE_INVOICES", "false").lower() == "true"

if not SUMMIT_COMPANY_ID or not SUMMIT_API_KEY:
    logger.warning("Summit credentials missing in .env (SUMMIT_COMPANY_ID, SUMMIT_API_KEY) - receipts disabled")


# ==========================================
# 🔀 Redirects
# ==========================================
FORM_URL = os.getenv("FORM_URL", "https://puah.tfaforms.net/38")
# Empty → derived from the request Host header
BASE_URL = os.getenv("BASE_URL", "").rstrip("/")

CONVERGENCE_TIMEOUT_MS = int(os.getenv("CONVERGENCE_TIMEOUT_MS") or "5000")
CONVERGENCE_POLL_MS = int(os.getenv("CONVERGENCE_POLL_MS") or "200")


# ==========================================
# 🗄️ Storage
# ==========================================
STORE_BACKEND = os.getenv("STORE_BACKEND", "file")  # file | database
RECEIPTS_DIR = os.getenv("RECEIPTS_DIR", "receipts")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///receipts.db")


# ==========================================
# 🔧 App
# ==========================================
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT") or "15")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = os.getenv("DEBUG", "false").lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration, passed explicitly to every component."""
    pele_terminal: str = ""
    pele_user: str = ""
    pele_password: str = ""
    pele_init_url: str = "https://gateway21.pelecard.biz/PaymentGW/init"
    pele_lookup_url: str = "https://gateway21.pelecard.biz/PaymentGW/GetTransaction"
    pele_shop_no: str = "001"
    pele_currency: str = "1"
    pele_min_payments: str = "1"
    pele_max_payments: str = "10"
    pele_verify_transactions: bool = False

    summit_company_id: int = 0
    summit_api_key: str = ""
    summit_create_url: str = "https://app.sumit.co.il/accounting/documents/create/"
    default_customer_name: str = "Client"
    default_customer_email: str = "hd@puah.org.il"
    deduplicate_invoices: bool = False

    form_url: str = "https://puah.tfaforms.net/38"
    base_url: str = ""
    convergence_timeout_ms: int = 5000
    convergence_poll_ms: int = 200

    store_backend: str = "file"
    receipts_dir: str = "receipts"
    database_url: str = "sqlite:///receipts.db"

    http_timeout: float = 15.0

    @property
    def failure_url(self) -> str:
        return f"{self.form_url}?Status=failed"


@lru_cache()
def get_settings() -> Settings:
    """Build the Settings object once per process from the module constants."""
    return Settings(
        pele_terminal=PELE_TERMINAL,
        pele_user=PELE_USER,
        pele_password=PELE_PASSWORD,
        pele_init_url=PELE_INIT_URL,
        pele_lookup_url=PELE_LOOKUP_URL,
        pele_shop_no=PELE_SHOP_NO,
        pele_currency=PELE_CURRENCY,
        pele_min_payments=PELE_MIN_PAYMENTS,
        pele_max_payments=PELE_MAX_PAYMENTS,
        pele_verify_transactions=PELE_VERIFY_TRANSACTIONS,
        summit_company_id=SUMMIT_COMPANY_ID,
        summit_api_key=SUMMIT_API_KEY,
        summit_create_url=SUMMIT_CREATE_URL,
        default_customer_name=DEFAULT_CUSTOMER_NAME,
        default_customer_email=DEFAULT_CUSTOMER_EMAIL,
        deduplicate_invoices=DEDUPLICATE_INVOICES,
        form_url=FORM_URL,
        base_url=BASE_URL,
        convergence_timeout_ms=CONVERGENCE_TIMEOUT_MS,
        convergence_poll_ms=CONVERGENCE_POLL_MS,
        store_backend=STORE_BACKEND,
        receipts_dir=RECEIPTS_DIR,
        database_url=DATABASE_URL,
        http_timeout=HTTP_TIMEOUT,
    )

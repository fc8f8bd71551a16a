import os
from decimal import Decimal


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _decimal_env(name: str, default: str) -> Decimal:
    raw = (os.getenv(name) or "").strip()
    return Decimal(raw or default)


def engine_options(database_url: str, timeout_seconds: float) -> dict:
    """Bound every store wait: pool checkout, connect, and (postgres) statements."""
    opts = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        opts["connect_args"] = {"timeout": float(timeout_seconds)}
        return opts
    opts["pool_timeout"] = float(timeout_seconds)
    if database_url.startswith("postgresql"):
        opts["connect_args"] = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(float(timeout_seconds) * 1000)}",
        }
    return opts


class Config:
    # Base directory of the backend (one level above this `gigpay` package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    GIGPAY_ENV = (os.getenv("GIGPAY_ENV", "dev") or "dev").strip().lower()
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "gigpay.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or f"sqlite:///{_default_sqlite_path}"
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

    # CORS: comma-separated origins for web builds
    CORS_ORIGINS = (os.getenv("CORS_ORIGINS") or "").strip()

    # Payment processor (Cashfree PG)
    CASHFREE_APP_ID = os.getenv("CASHFREE_APP_ID", "")
    CASHFREE_SECRET_KEY = os.getenv("CASHFREE_SECRET_KEY", "")
    CASHFREE_API_URL = os.getenv("CASHFREE_API_URL", "https://sandbox.cashfree.com/pg")
    CASHFREE_API_VERSION = os.getenv("CASHFREE_API_VERSION", "2022-09-01")
    CASHFREE_TIMEOUT_SECONDS = float(os.getenv("CASHFREE_TIMEOUT_SECONDS", "20"))
    CASHFREE_WEBHOOK_SECRET = os.getenv("CASHFREE_WEBHOOK_SECRET", "")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
    PAYMENT_RETURN_URL = os.getenv("PAYMENT_RETURN_URL", "")
    PENDING_SYNC_AFTER_MINUTES = int(os.getenv("PENDING_SYNC_AFTER_MINUTES", "15"))

    # Ledger rules
    PLATFORM_FEE_RATE = _decimal_env("PLATFORM_FEE_RATE", "0.10")
    RESERVE_FLOOR = _decimal_env("RESERVE_FLOOR", "100.00")
    MINIMUM_PAYOUT = _decimal_env("MINIMUM_PAYOUT", "0.00")

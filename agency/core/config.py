from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env lives at the project root: agency/core/config.py -> agency/core -> agency -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./agency.db"
    # CORS: comma separated origins; in production e.g. https://agency.example
    cors_origins: str = "*"
    # Requests per minute per IP
    rate_limit_per_minute: int = 60
    # Checkout endpoints (charge / create order / invoice / promo validation)
    rate_limit_checkout_per_minute: int = 10
    environment: str = "development"
    site_name: str = "Agency"
    # Midtrans settles in IDR, the checkout quotes USD
    usd_to_idr_rate: float = 16000.0
    # Timeout for calls to Midtrans / PayPal / Xendit (seconds)
    vendor_http_timeout: int = 20
    # Package activated after a paid Midtrans subscription order (falls back to the default_package_id setting)
    default_package_id: str = ""
    # Order draft cookie lifetime (days)
    order_draft_max_age_days: int = 30
    # SMTP (invoice e-mails). Empty host = e-mails are skipped
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "noreply@agency.local"
    smtp_from_name: str = "Agency"
    smtp_use_tls: bool = True
    frontend_url: str = "http://127.0.0.1:8000"
    # Created at startup when both are set
    bootstrap_admin_email: str = ""
    bootstrap_admin_password: str = ""

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("secret_key", "default_package_id", "bootstrap_admin_email", mode="before")
    @classmethod
    def strip_value(cls, v: str | None) -> str:
        """Copy/paste whitespace in .env values."""
        return (v or "").strip()


settings = Settings()

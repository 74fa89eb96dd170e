from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: storefront/core/config.py -> storefront/core -> storefront -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./storefront.db"
    # CORS: comma separated origins; in production https://yourdomain.com
    cors_origins: str = "*"
    # Max requests per IP per minute on order creation / transfer submission
    rate_limit_per_minute: int = 60
    admin_secret: str = ""             # X-Admin-Secret for the order admin API
    environment: str = "development"
    upload_max_mb: int = 10            # evidence image size limit (MB)
    # Fernet key (urlsafe base64, 32 bytes) or a passphrase for transfer numbers / handles
    wallet_transfer_enc: str = ""
    # Stripe hosted checkout
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_timeout_seconds: float = 20.0
    checkout_success_url: str = "http://127.0.0.1:3000/payment-success"
    checkout_cancel_url: str = "http://127.0.0.1:3000/payment-cancel"
    default_currency: str = "usd"      # direct-sale products have no package currency
    # Cloudinary (evidence images)
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    upload_timeout_seconds: int = 30

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("stripe_secret_key", "stripe_webhook_secret", "wallet_transfer_enc", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Trims stray whitespace from copy-pasted keys."""
        return (v or "").strip()

    @field_validator("default_currency", mode="before")
    @classmethod
    def lower_currency(cls, v: str | None) -> str:
        return (v or "usd").strip().lower()


settings = Settings()


def is_stripe_configured() -> bool:
    return bool(settings.stripe_secret_key and settings.stripe_webhook_secret)


def is_cloudinary_configured() -> bool:
    return bool(
        settings.cloudinary_cloud_name
        and settings.cloudinary_api_key
        and settings.cloudinary_api_secret
    )

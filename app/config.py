import ipaddress
import logging
import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    # Downstream billing system
    billing_backend: str = Field(default=os.getenv("BILLING_BACKEND", "memory"))
    whmcs_api_url: str = Field(
        default=os.getenv("WHMCS_API_URL", "https://portal.snbdhost.com/includes/api.php")
    )
    whmcs_api_identifier: Optional[str] = Field(default=os.getenv("WHMCS_API_IDENTIFIER"))
    whmcs_api_secret: Optional[str] = Field(default=os.getenv("WHMCS_API_SECRET"))
    whmcs_access_key: Optional[str] = Field(default=os.getenv("WHMCS_ACCESS_KEY"))
    whmcs_timeout_seconds: float = Field(
        default=float(os.getenv("WHMCS_TIMEOUT_SECONDS", "30"))
    )
    # Public client area, used for invoice and cart links
    whmcs_app_url: str = Field(
        default=os.getenv("WHMCS_APP_URL", "https://portal.snbdhost.com")
    )

    default_payment_method: str = Field(
        default=os.getenv("DEFAULT_PAYMENT_METHOD", "paypal")
    )

    # Generative model
    gemini_api_key: Optional[str] = Field(default=os.getenv("GEMINI_API_KEY"))
    gemini_model: str = Field(default=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"))

    # Auth policy
    password_min_length: int = Field(default=int(os.getenv("PASSWORD_MIN_LENGTH", "8")))
    login_rate_limit: str = Field(default=os.getenv("LOGIN_RATE_LIMIT", "20/minute"))

    # Logging
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = Field(
        default=os.getenv("LOG_JSON", "false").lower() in ("true", "1", "yes")
    )

    @field_validator("billing_backend", mode="after")
    @classmethod
    def validate_billing_backend(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in ("whmcs", "memory"):
            raise ValueError("BILLING_BACKEND must be 'whmcs' or 'memory'")
        return value

    @field_validator("whmcs_app_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def validate_whmcs_config(self) -> None:
        """Validate WHMCS credentials when the live backend is actually used."""
        if not self.whmcs_api_identifier or not self.whmcs_api_secret:
            raise ValueError("WHMCS_API_IDENTIFIER and WHMCS_API_SECRET must be configured")

    class Config:
        frozen = True


def _is_loopback_host(hostname: str | None) -> bool:
    if not hostname:
        return False
    if hostname == "localhost":
        return True
    try:
        return ipaddress.ip_address(hostname).is_loopback
    except ValueError:
        return False


def warn_insecure_service_urls(config: Settings) -> None:
    for name in ("whmcs_api_url", "whmcs_app_url"):
        value = getattr(config, name)
        parsed = urlparse(value)
        if parsed.scheme == "http" and not _is_loopback_host(parsed.hostname):
            logger.warning("Insecure http:// URL configured for %s", name)


settings = Settings()

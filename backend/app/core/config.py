# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


# Country (lowercased) -> currency the doctor is priced in for that patient
COUNTRY_CURRENCY_MAP: Dict[str, str] = {
    "egypt": "EGP",
    "saudi arabia": "SAR",
    "uae": "AED",
}
DEFAULT_PATIENT_CURRENCY = "USD"


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )

    # Database / broker
    database_url: str = Field(
        default="sqlite+pysqlite:///./medtik.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis URL used as the Celery broker",
    )

    # Paymob (accept) gateway
    paymob_base_url: str = Field(
        default="https://accept.paymob.com/api",
        alias="PAYMOB_BASE_URL",
    )
    paymob_api_key: SecretStr = Field(
        default=SecretStr(""),
        alias="PAYMOB_API_KEY",
        description="API key exchanged for short-lived auth tokens",
    )
    paymob_integration_id: Optional[int] = Field(
        default=None,
        alias="PAYMOB_INTEGRATION_ID",
        description="Card integration id used when issuing payment keys",
    )
    paymob_hmac_secret: SecretStr = Field(
        default=SecretStr(""),
        alias="PAYMOB_HMAC",
        description="Shared secret for callback HMAC verification",
    )
    paymob_iframe_url: str = Field(
        default="https://accept.paymob.com/api/acceptance/iframes/0",
        alias="PAYMOB_IFRAME_URL",
        description="Hosted checkout iframe base; payment_token is appended",
    )
    gateway_timeout_seconds: float = Field(default=15.0, alias="GATEWAY_TIMEOUT_SECONDS")

    # Currency conversion
    settlement_currency: str = Field(
        default="EGP",
        alias="SETTLEMENT_CURRENCY",
        description="Currency every payment is normalized to before gateway submission",
    )
    exchange_rate_url: str = Field(
        default="https://v6.exchangerate-api.com/v6",
        alias="EXCHANGE_URL",
    )
    exchange_rate_api_key: SecretStr = Field(default=SecretStr(""), alias="EXCHANGE_API")
    exchange_rate_cache_ttl_seconds: int = Field(
        default=12 * 60 * 60,
        alias="EXCHANGE_RATE_CACHE_TTL_SECONDS",
    )
    supported_source_currencies: tuple[str, ...] = ("USD", "AED", "SAR")

    # Reservation lifecycle
    reservation_grace_minutes: int = Field(
        default=15,
        alias="RESERVATION_GRACE_MINUTES",
        description="How long an UNPAID reservation is held before the sweep reclaims it",
    )
    reservation_sweep_interval_minutes: int = Field(
        default=16,
        alias="RESERVATION_SWEEP_INTERVAL_MINUTES",
    )
    refund_reconcile_interval_minutes: int = Field(
        default=60,
        alias="REFUND_RECONCILE_INTERVAL_MINUTES",
    )
    default_refund_policy_hours: int = Field(
        default=24,
        alias="DEFAULT_REFUND_POLICY_HOURS",
        description="Used when a doctor has not configured a refund threshold",
    )

    frontend_url: str = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("settlement_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def paymob_hmac_key(self) -> str:
        return self.paymob_hmac_secret.get_secret_value()

    def appointment_url(self, appointment_id: int) -> str:
        return f"{self.frontend_url.rstrip('/')}/appointments/{appointment_id}"


settings = Settings()

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_BASE_URL = "https://anfopublicationhouse.com/api/endpoints"
DEFAULT_CORS_RELAY_URL = "https://api.allorigins.win/get"


def env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    api_base_url: str = DEFAULT_API_BASE_URL
    cors_relay_url: str = DEFAULT_CORS_RELAY_URL
    http_timeout: float = 15.0

    # business rules kept configurable; both are the values the shop runs with today
    tax_rate: float = 0.08
    default_in_stock: bool = True

    handoff_ttl_seconds: float = 30 * 60
    public_base_url: str = ""

    stripe_secret_key: str = ""
    resend_api_key: str = ""
    resend_from: str = ""

    contact_email: str = "support@nfccardstore.com"
    contact_phone: str = "+1 (555) 123-4567"
    business_hours: str = "9 AM - 6 PM EST"
    office_address: str = "123 NFC Street, Tech City, TC 12345"

    log_level: str = "INFO"

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def email_enabled(self) -> bool:
        return bool(self.resend_api_key and self.resend_from)


def load_settings() -> Settings:
    load_dotenv()  # must run before the getenv reads below

    defaults = Settings()
    return Settings(
        api_base_url=os.getenv("API_BASE_URL", defaults.api_base_url).rstrip("/"),
        cors_relay_url=os.getenv("CORS_RELAY_URL", defaults.cors_relay_url),
        http_timeout=env_float(os.getenv("HTTP_TIMEOUT"), defaults.http_timeout),
        tax_rate=env_float(os.getenv("TAX_RATE"), defaults.tax_rate),
        default_in_stock=env_bool(os.getenv("DEFAULT_IN_STOCK"), defaults.default_in_stock),
        handoff_ttl_seconds=env_float(os.getenv("HANDOFF_TTL_SECONDS"), defaults.handoff_ttl_seconds),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
        resend_api_key=os.getenv("RESEND_API_KEY", ""),
        resend_from=os.getenv("RESEND_FROM", ""),
        contact_email=os.getenv("CONTACT_EMAIL", defaults.contact_email),
        contact_phone=os.getenv("CONTACT_PHONE", defaults.contact_phone),
        business_hours=os.getenv("BUSINESS_HOURS", defaults.business_hours),
        office_address=os.getenv("OFFICE_ADDRESS", defaults.office_address),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )

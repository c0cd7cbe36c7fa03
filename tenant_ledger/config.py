"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Tenant Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/tenant_ledger"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "console")

    # Ledger rules.
    # Debit/credit differences up to this amount (major units) are
    # accepted. The default is one cent.
    BALANCE_TOLERANCE: Decimal = Decimal(os.getenv("BALANCE_TOLERANCE", "0.01"))
    DEFAULT_CREATOR_PERCENT: Decimal = Decimal(
        os.getenv("DEFAULT_CREATOR_PERCENT", "80")
    )

    # Service credential for internal jobs (bill-overages, key rotation)
    SERVICE_ROLE_KEY: str = os.getenv("SERVICE_ROLE_KEY", "")

    # Platform billing destination
    BILLING_MERCHANT_ID: str = os.getenv("BILLING_MERCHANT_ID", "").strip()
    BILLING_DESTINATION_ID: str = os.getenv("BILLING_DESTINATION_ID", "").strip()
    BILLING_CURRENCY: str = os.getenv("BILLING_CURRENCY", "usd")

    # Payment processor
    PAYMENT_API_URL: str = os.getenv(
        "PAYMENT_API_URL", "https://sandbox-payments.example.com"
    )
    PAYMENT_API_KEY: str = os.getenv("PAYMENT_API_KEY", "")
    PAYMENT_ENV: str = os.getenv("PAYMENT_ENV", "sandbox").lower()
    PAYMENT_TIMEOUT_SECONDS: float = float(
        os.getenv("PAYMENT_TIMEOUT_SECONDS", "30")
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()

"""Application configuration.

Environment variables override all defaults. A local .env file at the
project root is loaded first when present.
"""

import os
from decimal import Decimal
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env for local development (missing file is a no-op)
_PROJECT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_PROJECT_DIR / ".env", override=False)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ledgerbook.db")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO" if ENVIRONMENT == "production" else "DEBUG")

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        )
    )

    # Company defaults, used to seed the company_settings row
    DEFAULT_COMPANY_NAME: str = os.getenv("DEFAULT_COMPANY_NAME", "My Company")
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "PKR")
    DEFAULT_COUNTRY: str = os.getenv("DEFAULT_COUNTRY", "Pakistan")
    DEFAULT_DATE_FORMAT: str = os.getenv("DEFAULT_DATE_FORMAT", "DD/MM/YYYY")

    # Document numbering: {PREFIX}-{YEAR}-{SEQ:03d}
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    PAYMENT_PREFIX: str = os.getenv("PAYMENT_PREFIX", "PAY")
    DISCOUNT_PREFIX: str = os.getenv("DISCOUNT_PREFIX", "DISC")

    # Amounts closer than this are treated as equal
    MONEY_TOLERANCE: Decimal = Decimal(os.getenv("MONEY_TOLERANCE", "0.01"))


settings = Settings()

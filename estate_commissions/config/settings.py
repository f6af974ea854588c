"""
Application settings and configuration
"""
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Application
    APP_NAME = "Estate Commissions"
    VERSION = "1.0.0"
    DEBUG = os.getenv("DEBUG", "True") == "True"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

    # Security
    SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

    # CORS
    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "ALLOWED_ORIGINS",
            "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # Reports are bucketed by month in this timezone
    TIMEZONE = os.getenv("TIMEZONE", "Africa/Harare")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")

    # Company-level commission defaults (percent, except VAT on commission which is a fraction)
    DEFAULT_COMMISSION_PERCENT = os.getenv("DEFAULT_COMMISSION_PERCENT", "5")
    DEFAULT_PREA_PERCENT = os.getenv("DEFAULT_PREA_PERCENT", "3")
    DEFAULT_AGENCY_PERCENT = os.getenv("DEFAULT_AGENCY_PERCENT", "50")
    DEFAULT_VAT_ON_COMMISSION = os.getenv("DEFAULT_VAT_ON_COMMISSION", "0.155")

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

settings = Settings()

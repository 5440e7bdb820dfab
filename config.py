"""Configuration module for the poultry ledger application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    JSON_SORT_KEYS = False

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'poultry')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'poultry')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'poultry')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'
    # Persistence calls give up after this many seconds (statement timeout on Postgres)
    SQLALCHEMY_STATEMENT_TIMEOUT = int(os.getenv('SQLALCHEMY_STATEMENT_TIMEOUT', '10'))

    # Inventory
    # Default "low stock" level for new products (each product can override it)
    DEFAULT_MIN_STOCK_THRESHOLD = int(os.getenv('DEFAULT_MIN_STOCK_THRESHOLD', '10'))

    # Debt aging buckets (days)
    AGING_CURRENT_DAYS = int(os.getenv('AGING_CURRENT_DAYS', '30'))
    AGING_OVERDUE_DAYS = int(os.getenv('AGING_OVERDUE_DAYS', '60'))

    # Settlement retries on optimistic-lock conflicts
    SETTLEMENT_MAX_RETRIES = int(os.getenv('SETTLEMENT_MAX_RETRIES', '3'))
    SETTLEMENT_RETRY_BACKOFF = float(os.getenv('SETTLEMENT_RETRY_BACKOFF', '0.1'))

    # Business Information (for receipts and reports)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Trại Gia Cầm')
    CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', '₫')


class TestConfig(Config):
    """Configuration used by the test-suite (in-memory SQLite)."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ECHO = False
    SETTLEMENT_RETRY_BACKOFF = 0.0
    LOG_LEVEL = 'DEBUG'

"""Flask configuration for HomeQuest."""

import os
from pathlib import Path


class Config:
    """Base configuration."""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Token settings
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or SECRET_KEY
    JWT_ALGORITHM = 'HS256'
    JWT_ACCESS_TOKEN_EXPIRES = int(os.environ.get('JWT_ACCESS_TOKEN_EXPIRES', 7 * 24 * 3600))

    # Database settings
    DATA_DIR = Path(os.environ.get('DATA_DIR', '/data'))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'homequest.db'}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # APScheduler settings
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_TIMEZONE = os.environ.get('TZ', 'UTC')
    SCHEDULER_LOCK_TTL_SECONDS = int(os.environ.get('SCHEDULER_LOCK_TTL_SECONDS', 300))
    CRON_INTERVAL_SECONDS = int(os.environ.get('CRON_INTERVAL_SECONDS', 60))
    CRON_API_KEY = os.environ.get('CRON_API_KEY')

    # Notifications
    WEBHOOK_URL = os.environ.get('WEBHOOK_URL')

    # Economy defaults for new accounts
    DEFAULT_INTEREST_RATE = float(os.environ.get('DEFAULT_INTEREST_RATE', 0.001))
    DEFAULT_CREDIT_SCORE = 80
    DEFAULT_CREDIT_LIMIT = int(os.environ.get('DEFAULT_CREDIT_LIMIT', 100))

    # Application settings
    DEBUG = os.environ.get('DEBUG', 'false').lower() == 'true'
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    DATA_DIR = Path(__file__).parent / 'data'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'homequest.db'}"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    # Re-evaluate DATA_DIR and database URI to ensure environment variable is picked up
    DATA_DIR = Path(os.environ.get('DATA_DIR', '/data'))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'homequest.db'}"


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = 'testing-secret-key-with-enough-length-for-hs256'
    CRON_API_KEY = 'test-cron-key'
    WEBHOOK_URL = None
    # Disable scheduler during tests
    SCHEDULER_ENABLED = False


# Config dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

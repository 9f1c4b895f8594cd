# medvault_pkg/config.py
import os

# Environment variables are loaded from .env in run.py and the app factory.

class Config:
    """Base configuration settings."""
    # Application Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you_REALLY_should_set_a_secret_key_in_env'
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'you_REALLY_should_set_a_JWT_secret_key_in_env'
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRATION_MINUTES = int(os.environ.get('JWT_EXPIRATION_MINUTES', 60))
    JWT_REFRESH_TOKEN_EXPIRES_DAYS = int(os.environ.get('JWT_REFRESH_TOKEN_EXPIRES_DAYS', 7))

    # Sign-up validation
    MIN_PASSWORD_LENGTH = int(os.environ.get('MIN_PASSWORD_LENGTH', 8))

    # Database (the Record Store)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///medvault_default.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Frontend URL
    FRONTEND_URL = os.environ.get('FRONTEND_URL') or 'http://localhost:3000'

    # Local cache mirroring the Record Store. Entries never expire on their own.
    CACHE_TYPE = os.environ.get('CACHE_TYPE') or 'RedisCache'
    CACHE_REDIS_URL = os.environ.get('REDIS_URL') or 'redis://localhost:6379/0'
    CACHE_DEFAULT_TIMEOUT = 0
    CACHE_KEY_PREFIX = 'medvault:'

    # Appointment reminders
    ENABLE_REMINDER_SERVICE = os.environ.get('ENABLE_REMINDER_SERVICE', 'true').lower() == 'true'
    REMINDER_CHECK_INTERVAL_SECONDS = int(os.environ.get('REMINDER_CHECK_INTERVAL_SECONDS', 60 * 60))


class DevelopmentConfig(Config):
    """Development-specific configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or os.environ.get('DATABASE_URL') or 'sqlite:///medvault_dev.db'


class TestingConfig(Config):
    """Testing-specific configuration."""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite://'
    CACHE_TYPE = 'SimpleCache'
    ENABLE_REMINDER_SERVICE = False
    JWT_EXPIRATION_MINUTES = 5
    JWT_REFRESH_TOKEN_EXPIRES_DAYS = 1


class ProductionConfig(Config):
    """Production-specific configuration."""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///prod_fallback.db'


CONFIG_BY_NAME = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name=None):
    """Helper function to get the correct config class based on FLASK_ENV."""
    env = (config_name or os.environ.get('FLASK_ENV', 'development')).lower()
    config_class = CONFIG_BY_NAME.get(env, DevelopmentConfig)
    if config_class is ProductionConfig:
        if config_class.SECRET_KEY == 'you_REALLY_should_set_a_secret_key_in_env':
            raise ValueError("SECRET_KEY not set via environment variable for production")
        if config_class.JWT_SECRET_KEY == 'you_REALLY_should_set_a_JWT_secret_key_in_env':
            raise ValueError("JWT_SECRET_KEY not set via environment variable for production")
    return config_class

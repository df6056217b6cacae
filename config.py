"""
Centralized configuration for the Notespace identity service.

This module provides a single source of truth for all configuration settings,
with environment variable support and validation.
"""

import os
from pathlib import Path
from typing import Optional

# Used when SECRET_KEY is unset; sessions and envelopes do not survive a restart
_GENERATED_SECRET_KEY = os.urandom(32).hex()


class Config:
    """Base configuration class with common settings."""

    # Application
    APP_NAME = "Notespace Identity Service"
    APP_VERSION = "1.0.0"

    # Flask
    # Root server secret. Token signing and envelope keys are derived from it.
    SECRET_KEY = os.environ.get('SECRET_KEY') or _GENERATED_SECRET_KEY
    TESTING = os.environ.get('TESTING', 'false').lower() == 'true'
    DEBUG = os.environ.get('DEBUG', 'false').lower() == 'true'
    PORT = int(os.environ.get('PORT', 8787))
    HOST = os.environ.get('HOST', '0.0.0.0')
    SITE_URL = os.environ.get('SITE_URL', 'http://localhost:5173')

    # Database
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///notespace_auth.db')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Session tokens
    SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'token')
    SESSION_TOKEN_TTL_DAYS = int(os.environ.get('SESSION_TOKEN_TTL_DAYS', 90))
    TOKEN_BLACKLIST_TTL_SECONDS = int(os.environ.get('TOKEN_BLACKLIST_TTL_SECONDS', 24 * 60 * 60))

    # Password reset
    RESET_TOKEN_TTL_SECONDS = int(os.environ.get('RESET_TOKEN_TTL_SECONDS', 24 * 60 * 60))
    # Callable(email, token) that delivers the reset link; None only logs
    RESET_LINK_SENDER = None

    # Secret envelope (PBKDF2-SHA256 + AES-256-GCM)
    ENVELOPE_PBKDF2_ITERATIONS = int(os.environ.get('ENVELOPE_PBKDF2_ITERATIONS', 250000))
    ENVELOPE_ACCEPT_ROOT_SECRET = os.environ.get('ENVELOPE_ACCEPT_ROOT_SECRET', 'true').lower() == 'true'

    # Rate Limiting
    RATE_LIMIT_ENABLED = not TESTING  # Disable in tests
    RATE_LIMIT_AUTH_REQUESTS = int(os.environ.get('RATE_LIMIT_AUTH_REQUESTS', 10))  # per window
    RATE_LIMIT_AUTH_WINDOW = int(os.environ.get('RATE_LIMIT_AUTH_WINDOW', 60))  # seconds

    # Password Validation
    PASSWORD_MIN_LENGTH = int(os.environ.get('PASSWORD_MIN_LENGTH', 12))
    PASSWORD_MAX_LENGTH = int(os.environ.get('PASSWORD_MAX_LENGTH', 128))

    # Email Validation
    EMAIL_MAX_LENGTH = int(os.environ.get('EMAIL_MAX_LENGTH', 254))
    EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

    # Directory associations
    DIRECTORY_PATH_MAX_LENGTH = int(os.environ.get('DIRECTORY_PATH_MAX_LENGTH', 4096))

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', SITE_URL)

    # Security Headers
    SECURITY_HEADERS_ENABLED = os.environ.get('SECURITY_HEADERS_ENABLED', 'true').lower() == 'true'
    HSTS_MAX_AGE = int(os.environ.get('HSTS_MAX_AGE', 31536000))  # 1 year
    CSP_POLICY = os.environ.get('CSP_POLICY', "default-src 'none'; frame-ancestors 'none'")

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.environ.get('LOG_FORMAT', 'json')  # 'json' or 'text'
    LOG_FILE = os.environ.get('LOG_FILE', None)  # None = stdout only
    AUDIT_LOG_FILE = os.environ.get('AUDIT_LOG_FILE', None)  # None = stdout only

    @classmethod
    def validate(cls):
        """Validate configuration values."""
        errors = []

        if not cls.SECRET_KEY or len(cls.SECRET_KEY) < 16:
            errors.append("SECRET_KEY must be at least 16 characters")

        # Validate rate limits
        if cls.RATE_LIMIT_AUTH_REQUESTS < 1:
            errors.append("RATE_LIMIT_AUTH_REQUESTS must be >= 1")

        # Validate token lifetimes
        if cls.SESSION_TOKEN_TTL_DAYS < 1:
            errors.append("SESSION_TOKEN_TTL_DAYS must be >= 1")
        if cls.TOKEN_BLACKLIST_TTL_SECONDS < 60:
            errors.append("TOKEN_BLACKLIST_TTL_SECONDS must be >= 60")
        if cls.RESET_TOKEN_TTL_SECONDS < 60:
            errors.append("RESET_TOKEN_TTL_SECONDS must be >= 60")

        # Validate envelope settings
        if cls.ENVELOPE_PBKDF2_ITERATIONS < 250000:
            errors.append("ENVELOPE_PBKDF2_ITERATIONS must be >= 250000")

        # Validate password constraints
        if cls.PASSWORD_MIN_LENGTH < 1:
            errors.append("PASSWORD_MIN_LENGTH must be >= 1")
        if cls.PASSWORD_MAX_LENGTH < cls.PASSWORD_MIN_LENGTH:
            errors.append("PASSWORD_MAX_LENGTH must be >= PASSWORD_MIN_LENGTH")

        if cls.DIRECTORY_PATH_MAX_LENGTH < 1:
            errors.append("DIRECTORY_PATH_MAX_LENGTH must be >= 1")

        if errors:
            raise ValueError(f"Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return True

    @classmethod
    def uses_generated_secret(cls) -> bool:
        """True when SECRET_KEY is the per-process random fallback."""
        return cls.SECRET_KEY == _GENERATED_SECRET_KEY

    @classmethod
    def ensure_directories(cls):
        """Ensure required directories exist."""
        if cls.LOG_FILE:
            Path(cls.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        if cls.AUDIT_LOG_FILE:
            Path(cls.AUDIT_LOG_FILE).parent.mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development environment configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing environment configuration."""
    TESTING = True
    SECRET_KEY = 'testing-root-secret-do-not-use-in-production'
    SITE_URL = 'http://localhost'
    DATABASE_URL = 'sqlite:///:memory:'  # In-memory database for tests
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATE_LIMIT_ENABLED = False  # Disable rate limiting in tests
    SECURITY_HEADERS_ENABLED = True  # Still test headers
    LOG_FORMAT = 'text'


class ProductionConfig(Config):
    """Production environment configuration."""
    DEBUG = False
    TESTING = False

    # Production should use strong secret key from environment
    @classmethod
    def validate(cls):
        """Additional validation for production."""
        super().validate()
        if not os.environ.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if not cls.SITE_URL.startswith('https://'):
            import warnings
            warnings.warn("SITE_URL is not https; session cookies will not be marked Secure.")
        if cls.DATABASE_URL.startswith('sqlite:///'):
            import warnings
            warnings.warn("SQLite is not recommended for production. Use PostgreSQL or MySQL.")


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(env: Optional[str] = None) -> type[Config]:
    """
    Get configuration class for specified environment.

    Args:
        env: Environment name ('development', 'testing', 'production')
             If None, uses FLASK_ENV environment variable

    Returns:
        Configuration class for the environment
    """
    if env is None:
        env = os.environ.get('FLASK_ENV', 'development')

    config_class = config.get(env, config['default'])
    config_class.validate()
    config_class.ensure_directories()

    return config_class

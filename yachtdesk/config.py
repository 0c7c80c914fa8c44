import os
from datetime import timedelta


def normalize_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-unsafe-key")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.getenv("DATABASE_URL", "sqlite:///instance/yachtdesk.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.getenv("CACHE_DEFAULT_TIMEOUT", "120"))
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "2000 per day;400 per hour")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
    PERMANENT_SESSION_LIFETIME = timedelta(days=int(os.getenv("SESSION_DAYS", "7")))
    REMEMBER_COOKIE_HTTPONLY = True

    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_MB", "50")) * 1024 * 1024
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "static/uploads")
    MEDIA_BASE_URL = os.getenv("MEDIA_BASE_URL", "/media")
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    # Calendar days are computed in this zone.
    APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/New_York")

    # Serverless endpoints for payment links, email and user provisioning.
    FUNCTIONS_BASE_URL = os.getenv("FUNCTIONS_BASE_URL", "")
    FUNCTIONS_TIMEOUT = float(os.getenv("FUNCTIONS_TIMEOUT", "20"))
    FUNCTIONS_SERVICE_TOKEN = os.getenv("FUNCTIONS_SERVICE_TOKEN", "")
    EMAIL_WEBHOOK_SECRET = os.getenv("EMAIL_WEBHOOK_SECRET", "")

    LOADER_PAGE_SIZE = int(os.getenv("LOADER_PAGE_SIZE", "100"))
    LOADER_MAX_PAGE_SIZE = 500
    OUTBOX_MAX_ATTEMPTS = int(os.getenv("OUTBOX_MAX_ATTEMPTS", "5"))
    OUTBOX_CLAIM_TIMEOUT_MINUTES = int(os.getenv("OUTBOX_CLAIM_TIMEOUT_MINUTES", "15"))
    APPROVAL_TOKEN_TTL_HOURS = int(os.getenv("APPROVAL_TOKEN_TTL_HOURS", "72"))
    SITE_URL = os.getenv("SITE_URL", "http://localhost:5000")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    TESTING = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    CACHE_TYPE = "NullCache"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    FUNCTIONS_BASE_URL = "https://functions.test/v1"
    FUNCTIONS_SERVICE_TOKEN = "service-token"
    APP_TIMEZONE = "America/New_York"
    BCRYPT_LOG_ROUNDS = 4


config_by_env = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

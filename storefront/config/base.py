import os
from decimal import Decimal


class ConfigurationError(Exception):
    """
    Raised when an invalid or unsupported configuration is requested.
    """
    pass


def _decimal_env(name, default):
    return Decimal(os.getenv(name, default))


def _plans_from_env():
    """
    Parse SUBSCRIPTION_PLANS ("starter:2500,pro:5000") into a price map.
    """
    raw = os.getenv("SUBSCRIPTION_PLANS", "starter:2500,pro:5000,business:10000")
    plans = {}
    for entry in raw.split(","):
        if not entry.strip():
            continue
        name, _, price = entry.partition(":")
        if not price:
            raise ConfigurationError(f"Invalid SUBSCRIPTION_PLANS entry: {entry!r}")
        plans[name.strip()] = Decimal(price.strip())
    return plans


class BaseConfig:
    """
    Base configuration shared by all environments.
    """

    # Flask
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY")

    # Security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Application
    APP_NAME = "Storefront Payments"
    ENV = "base"

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///storefront.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Payment gateways
    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "flutterwave").lower()
    FLUTTERWAVE_SECRET_KEY = os.getenv("FLUTTERWAVE_SECRET_KEY")
    FLUTTERWAVE_WEBHOOK_HASH = os.getenv("FLUTTERWAVE_WEBHOOK_HASH")
    FLUTTERWAVE_BASE_URL = os.getenv("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3")
    PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY")
    PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
    GATEWAY_TIMEOUT = int(os.getenv("GATEWAY_TIMEOUT", "10"))
    CURRENCY = os.getenv("CURRENCY", "NGN")

    # Billing rules
    PLATFORM_FEE_PERCENT = _decimal_env("PLATFORM_FEE_PERCENT", "5")
    SUBSCRIPTION_PLANS = _plans_from_env()
    DEFAULT_PLAN = os.getenv("DEFAULT_PLAN", "starter")
    MIN_PAYOUT = _decimal_env("MIN_PAYOUT", "1000")

    # Redemption codes
    REDEMPTION_CODE_LENGTH = int(os.getenv("REDEMPTION_CODE_LENGTH", "8"))
    REDEMPTION_CODE_MAX_ATTEMPTS = int(os.getenv("REDEMPTION_CODE_MAX_ATTEMPTS", "10"))

    # Callback attempts
    CALLBACK_ATTEMPT_LEASE_SECONDS = int(os.getenv("CALLBACK_ATTEMPT_LEASE_SECONDS", "300"))
    CALLBACK_ATTEMPT_RETENTION_DAYS = int(os.getenv("CALLBACK_ATTEMPT_RETENTION_DAYS", "7"))

    # Background workers
    CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
    CELERY_TASK_ALWAYS_EAGER = False

    # Observability
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_REQUESTS = os.getenv("LOG_REQUESTS", "false").lower() == "true"
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    # CORS
    CORS_ORIGINS = [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]

    SUPPORT_CONTACT = os.getenv("SUPPORT_CONTACT", "support@shopafrica.com")

    @classmethod
    def validate(cls):
        """Hook for environment-specific checks; called by the app factory."""
        if cls.PAYMENT_GATEWAY not in ("flutterwave", "paystack"):
            raise ConfigurationError(f"Unsupported PAYMENT_GATEWAY: {cls.PAYMENT_GATEWAY}")
        if cls.DEFAULT_PLAN not in cls.SUBSCRIPTION_PLANS:
            raise ConfigurationError(f"DEFAULT_PLAN {cls.DEFAULT_PLAN!r} is not a configured plan")

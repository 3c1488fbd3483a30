from decimal import Decimal

from .base import BaseConfig


class TestingConfig(BaseConfig):
    """
    Test configuration: in-memory database, eager Celery, fake gateway keys.
    """

    TESTING = True
    ENV = "testing"

    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"

    PAYMENT_GATEWAY = "flutterwave"
    FLUTTERWAVE_SECRET_KEY = "FLWSECK_TEST-mock"
    FLUTTERWAVE_WEBHOOK_HASH = "test-webhook-hash"
    PAYSTACK_SECRET_KEY = "sk_test_mock"

    PLATFORM_FEE_PERCENT = Decimal("10")
    SUBSCRIPTION_PLANS = {
        "starter": Decimal("2500"),
        "pro": Decimal("5000"),
        "business": Decimal("10000"),
    }
    DEFAULT_PLAN = "starter"
    MIN_PAYOUT = Decimal("1000")

    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = "cache+memory://"
    CELERY_TASK_ALWAYS_EAGER = True

    SENTRY_DSN = None
    LOG_LEVEL = "WARNING"

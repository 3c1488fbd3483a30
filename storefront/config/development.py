from .base import BaseConfig


class DevelopmentConfig(BaseConfig):
    """
    Development configuration.
    """

    DEBUG = True
    ENV = "development"

    SECRET_KEY = BaseConfig.SECRET_KEY or "dev-secret-key"

    SESSION_COOKIE_SECURE = False
    LOG_REQUESTS = True

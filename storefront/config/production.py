from .base import BaseConfig, ConfigurationError


class ProductionConfig(BaseConfig):
    """
    Production configuration.
    """

    DEBUG = False
    ENV = "production"

    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        super().validate()

        # MUST be set via environment variable in real production
        if not cls.SECRET_KEY:
            raise ConfigurationError("SECRET_KEY is required in production")

        if cls.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            raise ConfigurationError("SQLite is not suitable for production")

        key_name = f"{cls.PAYMENT_GATEWAY.upper()}_SECRET_KEY"
        if not getattr(cls, key_name):
            raise ConfigurationError(f"{key_name} is required when PAYMENT_GATEWAY={cls.PAYMENT_GATEWAY}")

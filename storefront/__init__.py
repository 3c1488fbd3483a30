# storefront/__init__.py
"""
Storefront payments service: gateway callbacks, order and subscription
activation, redemption and seller payouts.
"""

import logging

import sentry_sdk
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration

from storefront.config import get_config
from storefront.error_handlers import register_error_handlers
from storefront.extensions import init_extensions
from storefront.gateways import init_gateway
from storefront.logging_config import setup_logging
from storefront.middleware.request_context import init_request_context
from storefront.routes import register_blueprints
from storefront.workers.celery_app import init_celery

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Application factory."""
    config_class = get_config(config_name)
    config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    setup_logging(app)

    if app.config.get("SENTRY_DSN"):
        sentry_sdk.init(
            dsn=app.config["SENTRY_DSN"],
            integrations=[FlaskIntegration()],
            environment=app.config.get("ENV"),
            traces_sample_rate=0.1,
            send_default_pii=False,
        )
        logger.info("Sentry initialized")

    init_extensions(app)
    init_gateway(app)
    init_request_context(app)
    register_error_handlers(app)
    init_celery(app)
    register_blueprints(app)

    logger.info("Application created", extra={"env": app.config.get("ENV")})
    return app

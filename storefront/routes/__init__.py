import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register every HTTP blueprint the service exposes."""
    from storefront.routes import (
        admin,
        callbacks,
        checkout,
        health,
        payouts,
        proofs,
        redemption,
        subscriptions,
        webhooks,
    )

    for module in (checkout, callbacks, subscriptions, redemption, proofs, payouts, admin, webhooks, health):
        app.register_blueprint(module.bp)

    logger.info("Registered API blueprints")
    return app

from flask import current_app

from storefront.config import ConfigurationError
from storefront.gateways.base import GatewayClient, InitializedPayment, VerifiedTransaction
from storefront.gateways.flutterwave import FlutterwaveClient
from storefront.gateways.paystack import PaystackClient

EXTENSION_KEY = "payment_gateway"


def build_gateway_client(config) -> GatewayClient:
    """Construct the client named by PAYMENT_GATEWAY from a Flask config mapping."""
    name = config.get("PAYMENT_GATEWAY", "flutterwave")
    timeout = config.get("GATEWAY_TIMEOUT", 10)
    currency = config.get("CURRENCY", "NGN")

    if name == "flutterwave":
        return FlutterwaveClient(
            secret_key=config.get("FLUTTERWAVE_SECRET_KEY"),
            base_url=config.get("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3"),
            timeout=timeout,
            currency=currency,
            webhook_hash=config.get("FLUTTERWAVE_WEBHOOK_HASH"),
        )
    if name == "paystack":
        return PaystackClient(
            secret_key=config.get("PAYSTACK_SECRET_KEY"),
            base_url=config.get("PAYSTACK_BASE_URL", "https://api.paystack.co"),
            timeout=timeout,
            currency=currency,
        )
    raise ConfigurationError(f"Unsupported PAYMENT_GATEWAY: {name}")


def init_gateway(app):
    app.extensions[EXTENSION_KEY] = build_gateway_client(app.config)


def get_gateway() -> GatewayClient:
    return current_app.extensions[EXTENSION_KEY]


def gateway_for(provider) -> GatewayClient:
    """The configured client when it matches ``provider``, else a fresh one for it."""
    configured = get_gateway()
    if configured.provider == provider:
        return configured
    return build_gateway_client(dict(current_app.config, PAYMENT_GATEWAY=provider))


__all__ = [
    "FlutterwaveClient",
    "GatewayClient",
    "InitializedPayment",
    "PaystackClient",
    "VerifiedTransaction",
    "build_gateway_client",
    "gateway_for",
    "get_gateway",
    "init_gateway",
]

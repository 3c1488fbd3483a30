import logging
from datetime import timedelta

from celery import shared_task
from flask import current_app

from storefront.billing.attempts import AttemptRegistry
from storefront.billing.callbacks import CallbackDescriptor, CallbackKind
from storefront.billing.order_activation import OrderActivation
from storefront.billing.shop_visibility import expire_lapsed
from storefront.billing.state_machine import PaymentType
from storefront.billing.subscription_activation import SubscriptionActivation
from storefront.errors import GatewayUnreachable
from storefront.extensions import db
from storefront.gateways import gateway_for
from storefront.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(GatewayUnreachable,),
    retry_backoff=30,
    retry_kwargs={"max_retries": 5},
    retry_jitter=True,
)
def process_gateway_webhook(self, provider, fields):
    """
    Settle a transaction reported by a gateway webhook.

    Runs the same activation as the browser callback, without a session,
    so it is a no-op when the buyer's redirect got there first.
    """
    descriptor = CallbackDescriptor(
        CallbackKind.SUCCESS,
        "successful",
        transaction_id=fields.get("transaction_id"),
        tx_ref=fields.get("tx_ref"),
    )
    store = LedgerStore()
    gateway = gateway_for(provider)
    config = current_app.config

    try:
        if fields.get("payment_type") == PaymentType.SUBSCRIPTION.value:
            shop_id = _subscription_shop(store, fields)
            machine = SubscriptionActivation.from_config(store, gateway, config)
        else:
            shop_id = None
            machine = OrderActivation.from_config(store, gateway, config)

        outcome = machine.handle(descriptor, ctx=None, shop_id=shop_id)
    except Exception:
        db.session.rollback()
        raise

    if outcome.error_code == GatewayUnreachable.code:
        raise GatewayUnreachable(outcome.detail)

    logger.info(
        "Webhook processed",
        extra={"provider": provider, "outcome": outcome.state.value, "transaction_id": descriptor.key},
    )
    return outcome.to_dict()


def _subscription_shop(store, fields):
    shop_id = fields.get("shop_id")
    if shop_id is not None:
        return int(shop_id)
    # Fall back to the pending payment we created at checkout
    payment = store.find_payment_by_reference(fields.get("tx_ref"))
    return payment.shop_id if payment is not None else None


@shared_task
def expire_lapsed_subscriptions():
    count = expire_lapsed(LedgerStore())
    logger.info("Expiry sweep finished", extra={"expired": count})
    return count


@shared_task
def prune_callback_attempts():
    config = current_app.config
    removed = AttemptRegistry.from_config(LedgerStore(), config).prune(
        timedelta(days=config["CALLBACK_ATTEMPT_RETENTION_DAYS"])
    )
    logger.info("Callback attempts pruned", extra={"removed": removed})
    return removed

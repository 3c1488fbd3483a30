"""
The one place that writes ``Shop.is_active``.

Gateway activation, bank-transfer approval, the admin switch and the expiry
sweep all go through ``apply_subscription_state``, which updates the
subscription and the shop flag in the caller's transaction. A reader never
sees one without the other.
"""

import logging

from sqlalchemy import select

from storefront.billing.state_machine import SubscriptionStatus, transition
from storefront.ledger.store import LedgerStore
from storefront.models import Shop, Subscription
from storefront.utils import add_months, utcnow

logger = logging.getLogger(__name__)


def apply_subscription_state(store: LedgerStore, shop_id, *, active: bool, plan=None, now=None):
    now = now or utcnow()
    store.get_or_404(Shop, shop_id, for_update=True)
    subscription = store.get_by(Subscription, shop_id=shop_id, for_update=True)

    if active:
        values = {
            "status": SubscriptionStatus.ACTIVE.value,
            "current_period_start": now,
            # Renewal runs from activation time, not from the previous end
            "current_period_end": add_months(now, 1),
        }
        if subscription is None:
            result = store.insert_unique(
                Subscription(shop_id=shop_id, plan=plan, **values),
                lookup={"shop_id": shop_id},
            )
            subscription = result.row
            if not result.created:
                store.update_by_id(Subscription, subscription.id, dict(values, plan=plan or subscription.plan))
        else:
            transition(subscription.status, SubscriptionStatus.ACTIVE)
            store.update_by_id(Subscription, subscription.id, dict(values, plan=plan or subscription.plan))
    elif subscription is not None and subscription.status in (
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.TRIAL.value,
    ):
        store.update_by_id(
            Subscription,
            subscription.id,
            {"status": transition(subscription.status, SubscriptionStatus.INACTIVE)},
        )

    store.update_by_id(Shop, shop_id, {"is_active": active})
    logger.info("Shop visibility updated", extra={"shop_id": shop_id, "active": active})

    if subscription is None:
        return None
    return store.get(Subscription, subscription.id)


def is_shop_open(shop: Shop, now=None) -> bool:
    subscription = shop.subscription
    if subscription is None:
        # Shops that predate subscriptions keep their flag
        return bool(shop.is_active)
    return bool(shop.is_active) and subscription.is_active and not subscription.is_expired(now)


def activate_shop(store: LedgerStore, shop_id, plan=None, default_plan="starter", now=None):
    """Admin switch: open a shop for one period without a payment."""
    with store.unit_of_work():
        existing = store.get_by(Subscription, shop_id=shop_id)
        chosen = plan or (existing.plan if existing else default_plan)
        subscription = apply_subscription_state(store, shop_id, active=True, plan=chosen, now=now)
    return subscription


def deactivate_shop(store: LedgerStore, shop_id):
    with store.unit_of_work():
        subscription = apply_subscription_state(store, shop_id, active=False)
    return subscription


def expire_lapsed(store: LedgerStore, now=None) -> int:
    """Hide every shop whose active period has ended. Returns how many."""
    now = now or utcnow()
    lapsed = store.session.execute(
        select(Subscription.shop_id).where(
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.current_period_end <= now,
        )
    ).scalars().all()

    expired = 0
    for shop_id in lapsed:
        with store.unit_of_work():
            subscription = store.get_by(Subscription, shop_id=shop_id, for_update=True)
            # Renewed since the scan
            if not subscription.is_active or not subscription.is_expired(now):
                continue
            apply_subscription_state(store, shop_id, active=False, now=now)
            expired += 1

    if expired:
        logger.info("Lapsed subscriptions expired", extra={"count": expired})
    return expired

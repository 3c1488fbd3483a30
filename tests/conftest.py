import time
from datetime import timedelta
from decimal import Decimal

import pytest
from faker import Faker

from storefront import create_app
from storefront.billing.attempts import SessionContext
from storefront.billing.state_machine import PaymentType, SubscriptionStatus
from storefront.errors import GatewayUnreachable
from storefront.extensions import db
from storefront.gateways import GatewayClient, InitializedPayment, VerifiedTransaction
from storefront.ledger.store import LedgerStore
from storefront.models import Order, OrderItem, Payment, Shop, Subscription
from storefront.utils import split_fee, to_money, utcnow

# Initialize Faker for generating test data
fake = Faker()


# Custom pytest marks for organizing tests
def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "payment: mark test as payment-flow related"
    )
    config.addinivalue_line(
        "markers",
        "db: mark test as database-intensive"
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as going through the HTTP layer"
    )


class FakeGateway(GatewayClient):
    """Scripted gateway: tests register the transactions it will confirm."""

    provider = "flutterwave"
    verify_by = "transaction_id"

    def __init__(self):
        super().__init__("FLWSECK_TEST-fake", "https://gateway.invalid")
        self.webhook_hash = "test-webhook-hash"
        self.transactions = {}
        self.verify_calls = []
        self.initialized = []
        self.unreachable = False

    def add(self, transaction_id, *, reference, amount, success=True, metadata=None):
        self.transactions[str(transaction_id)] = VerifiedTransaction(
            success=success,
            status="successful" if success else "failed",
            amount=to_money(amount),
            reference=reference,
            transaction_id=str(transaction_id),
            currency="NGN",
            metadata=metadata or {},
        )

    def initialize(self, *, amount, reference, callback_url, email, metadata=None, title=None):
        self.initialized.append({"amount": amount, "reference": reference, "callback_url": callback_url,
                                 "email": email, "metadata": metadata})
        return InitializedPayment(payment_link=f"https://checkout.invalid/pay/{reference}", reference=reference)

    def verify(self, key):
        self.verify_calls.append(key)
        if self.unreachable:
            raise GatewayUnreachable()
        found = self.transactions.get(str(key))
        if found is None:
            return VerifiedTransaction(
                success=False,
                status="error",
                transaction_id=str(key),
                message="No transaction was found for this id",
            )
        return found

    def verify_webhook(self, payload, headers):
        return headers.get("verif-hash") == self.webhook_hash


@pytest.fixture()
def app():
    """Fresh application and in-memory database per test"""
    app = create_app("testing")

    with app.app_context():
        db.create_all()

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    return LedgerStore()


@pytest.fixture()
def gateway(app):
    fake_gateway = FakeGateway()
    app.extensions["payment_gateway"] = fake_gateway
    return fake_gateway


@pytest.fixture()
def session_ctx():
    """A browser session with empty session storage"""
    return SessionContext(session_key=fake.uuid4(), storage={})


@pytest.fixture()
def make_shop(store):
    def _make(active=True, subscription_status=SubscriptionStatus.ACTIVE, plan="starter", owner_id=None):
        shop = Shop(name=fake.company(), owner_id=owner_id or fake.uuid4(), is_active=active)
        store.insert(shop)

        if subscription_status is not None:
            now = utcnow()
            subscription = Subscription(shop_id=shop.id, plan=plan, status=subscription_status.value)
            if subscription_status is SubscriptionStatus.ACTIVE:
                subscription.current_period_start = now - timedelta(days=1)
                subscription.current_period_end = now + timedelta(days=29)
            elif subscription_status is SubscriptionStatus.TRIAL:
                subscription.trial_ends_at = now + timedelta(days=14)
            store.insert(subscription)

        db.session.commit()
        return shop
    return _make


@pytest.fixture()
def make_order(store):
    def _make(shop, total="5000.00", order_number=None):
        total = to_money(total)
        order = Order(
            order_number=order_number or f"ORD-{fake.unique.bothify('??##??').upper()}",
            shop_id=shop.id,
            customer_name=fake.name(),
            customer_phone=fake.msisdn(),
            customer_email=fake.email(),
            subtotal=total,
            total=total,
        )
        store.insert(order)
        store.insert(OrderItem(
            order_id=order.id,
            product_name=fake.catch_phrase(),
            quantity=1,
            unit_price=total,
            total_price=total,
        ))
        db.session.commit()
        return order
    return _make


@pytest.fixture()
def make_payment(store):
    def _make(order, reference=None, fee_percent=Decimal("10")):
        fee, seller_amount = split_fee(order.total, fee_percent)
        payment = Payment(
            reference=reference or f"SHOPAF_{order.id}_{int(time.time() * 1000)}",
            provider="flutterwave",
            payment_type=PaymentType.ORDER.value,
            shop_id=order.shop_id,
            order_id=order.id,
            amount=order.total,
            platform_fee=fee,
            seller_amount=seller_amount,
        )
        store.insert(payment)
        db.session.commit()
        return payment
    return _make


@pytest.fixture()
def fixed_codes():
    """Redemption code generator that hands out the given codes in order"""
    def _make(*codes):
        remaining = iter(codes)
        return lambda length: next(remaining)
    return _make

from storefront.billing.activation import ActivationStateMachine
from storefront.billing.attempts import AttemptRegistry
from storefront.billing.outcomes import ActivationOutcome
from storefront.billing.settlement import settle_subscription_payment
from storefront.billing.state_machine import PaymentType
from storefront.errors import GatewayVerificationFailed, ShopContextUnavailable
from storefront.models import Subscription


class SubscriptionActivation(ActivationStateMachine):
    """
    Seller returns from paying for a plan: the subscription goes active for
    one calendar month from now and the shop becomes visible, together.

    Waits for the shop context; a callback seen before the shop is known is
    deferred without claiming the attempt.
    """

    flow = "subscription"
    payment_type = PaymentType.SUBSCRIPTION

    def __init__(self, store, gateway, *, plans, support_contact, attempts=None):
        super().__init__(store, gateway, support_contact=support_contact, attempts=attempts)
        self.plans = plans

    @classmethod
    def from_config(cls, store, gateway, config):
        return cls(
            store,
            gateway,
            plans=config["SUBSCRIPTION_PLANS"],
            support_contact=config["SUPPORT_CONTACT"],
            attempts=AttemptRegistry.from_config(store, config),
        )

    def _resolve_shop(self, shop_id):
        if shop_id is None:
            raise ShopContextUnavailable()
        return int(shop_id)

    def _settle(self, verified, descriptor, shop_id):
        return settle_subscription_payment(
            self.store,
            verified,
            shop_id=shop_id,
            plans=self.plans,
            provider=self.gateway.provider,
            expected_reference=descriptor.tx_ref,
        )

    def _settled_outcome(self, payment, ctx, shop_id):
        if shop_id is not None and payment.shop_id != shop_id:
            return self._failed(
                GatewayVerificationFailed("This payment was made for a different shop."),
                payment.gateway_transaction_id,
                shop_id,
            )
        subscription = self.store.get_by(Subscription, shop_id=payment.shop_id)
        return self._outcome(payment, subscription, ctx, already_settled=True)

    def _success_outcome(self, settlement, ctx, shop_id):
        return self._outcome(settlement.payment, settlement.subscription, ctx)

    def _outcome(self, payment, subscription, ctx, already_settled=False):
        if ctx is not None:
            ctx.mark_subscription_success(payment.shop_id)
        return ActivationOutcome.success(
            shop_id=payment.shop_id,
            transaction_id=payment.gateway_transaction_id,
            subscription=subscription.to_dict() if subscription is not None else None,
            already_settled=already_settled,
        )

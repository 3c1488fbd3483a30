from storefront.billing.activation import ActivationStateMachine
from storefront.billing.attempts import AttemptRegistry
from storefront.billing.outcomes import ActivationOutcome
from storefront.billing.redemption import RedemptionCodeIssuer
from storefront.billing.settlement import settle_order_payment, settled_order_result
from storefront.billing.state_machine import PaymentType
from storefront.errors import GatewayVerificationFailed


class OrderActivation(ActivationStateMachine):
    """
    Buyer returns from the gateway: unpaid -> verifying -> paid | failed.

    On success the buyer sees the order number and redemption code, and the
    per-shop success markers are written to the session first so a reload
    lands on the same screen.
    """

    flow = "order"
    payment_type = PaymentType.ORDER

    def __init__(self, store, gateway, issuer: RedemptionCodeIssuer, *, fee_percent, support_contact, attempts=None):
        super().__init__(store, gateway, support_contact=support_contact, attempts=attempts)
        self.issuer = issuer
        self.fee_percent = fee_percent

    @classmethod
    def from_config(cls, store, gateway, config, issuer=None):
        return cls(
            store,
            gateway,
            issuer or RedemptionCodeIssuer.from_config(store, config),
            fee_percent=config["PLATFORM_FEE_PERCENT"],
            support_contact=config["SUPPORT_CONTACT"],
            attempts=AttemptRegistry.from_config(store, config),
        )

    def _settle(self, verified, descriptor, shop_id):
        return settle_order_payment(
            self.store,
            self.issuer,
            verified,
            provider=self.gateway.provider,
            fee_percent=self.fee_percent,
            expected_reference=descriptor.tx_ref,
            shop_id=shop_id,
        )

    def _settled_outcome(self, payment, ctx, shop_id):
        if shop_id is not None and payment.shop_id != int(shop_id):
            return self._failed(
                GatewayVerificationFailed("This payment belongs to a different shop."),
                payment.gateway_transaction_id,
                shop_id,
            )
        return self._success_outcome(settled_order_result(self.store, payment), ctx, shop_id, already_settled=True)

    def _success_outcome(self, settlement, ctx, shop_id, already_settled=False):
        order = settlement.order
        code = settlement.code.code if settlement.code is not None else None
        if ctx is not None:
            ctx.mark_success(order.shop_id, order.order_number, code)
        return ActivationOutcome.success(
            order_number=order.order_number,
            redemption_code=code,
            shop_id=order.shop_id,
            transaction_id=settlement.payment.gateway_transaction_id,
            already_settled=already_settled,
        )

import logging
from decimal import Decimal

from storefront.gateways.base import GatewayClient, InitializedPayment, VerifiedTransaction
from storefront.gateways.signatures import verify_paystack_signature
from storefront.utils import to_money

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"


class PaystackClient(GatewayClient):
    """
    Paystack. Verification is keyed on our reference, and every amount on
    the wire is in kobo.
    """

    provider = "paystack"
    verify_by = "reference"

    def __init__(self, secret_key, base_url="https://api.paystack.co", timeout=10, currency="NGN"):
        super().__init__(secret_key, base_url, timeout, currency)

    def initialize(self, *, amount, reference, callback_url, email, metadata=None, title=None):
        payload = {
            "email": email,
            "amount": int(to_money(amount) * 100),
            "reference": reference,
            "currency": self.currency,
            "callback_url": callback_url,
            "metadata": metadata or {},
        }
        body = self._make_request("POST", "/transaction/initialize", data=payload)

        self._require(
            body.get("status") is True and body.get("data", {}).get("authorization_url"),
            body.get("message") or "Failed to initialize payment",
        )
        logger.info("Paystack payment initialized", extra={"tx_ref": reference})
        return InitializedPayment(payment_link=body["data"]["authorization_url"], reference=reference)

    def verify(self, key):
        body = self._make_request("GET", f"/transaction/verify/{key}")

        if body.get("status") is not True:
            logger.warning("Paystack verification rejected", extra={"tx_ref": key})
            return VerifiedTransaction(
                success=False,
                status="error",
                reference=key,
                message=body.get("message") or "Verification failed",
            )

        data = body.get("data") or {}
        return VerifiedTransaction(
            success=data.get("status") == "success",
            status=data.get("status", "unknown"),
            amount=to_money(Decimal(data.get("amount", 0)) / 100),
            reference=data.get("reference"),
            transaction_id=str(data.get("id")) if data.get("id") is not None else None,
            currency=data.get("currency"),
            metadata=dict(data.get("metadata") or {}),
        )

    def verify_webhook(self, payload, headers):
        return verify_paystack_signature(payload, headers.get(SIGNATURE_HEADER), self.secret_key)

    @staticmethod
    def parse_webhook(event):
        """Return the transaction fields of a ``charge.success`` event, else None."""
        data = event.get("data") or {}
        if event.get("event") != "charge.success":
            return None
        metadata = data.get("metadata") or {}
        return {
            "transaction_id": str(data.get("id")),
            "tx_ref": data.get("reference"),
            "amount": str(to_money(Decimal(data.get("amount", 0)) / 100)),
            "payment_type": metadata.get("payment_type", "order"),
            "shop_id": metadata.get("shop_id"),
        }

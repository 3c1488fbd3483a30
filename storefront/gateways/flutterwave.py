import logging
from decimal import Decimal
from typing import Dict, Optional

from storefront.gateways.base import GatewayClient, InitializedPayment, VerifiedTransaction
from storefront.utils import to_money

logger = logging.getLogger(__name__)

WEBHOOK_HASH_HEADER = "verif-hash"


class FlutterwaveClient(GatewayClient):
    """
    Flutterwave Standard.

    Redirects back with ``status``, ``tx_ref`` and ``transaction_id``;
    amounts are in major units (naira).
    """

    provider = "flutterwave"
    verify_by = "transaction_id"

    def __init__(self, secret_key, base_url="https://api.flutterwave.com/v3", timeout=10,
                 currency="NGN", webhook_hash=None):
        super().__init__(secret_key, base_url, timeout, currency)
        self.webhook_hash = webhook_hash

    def initialize(self, *, amount, reference, callback_url, email, metadata=None, title=None):
        payload = {
            "tx_ref": reference,
            "amount": str(to_money(amount)),
            "currency": self.currency,
            "redirect_url": callback_url,
            "customer": {"email": email},
            "meta": metadata or {},
            "customizations": {"title": title or "ShopAfrica payment"},
        }
        body = self._make_request("POST", "/payments", data=payload)

        self._require(
            body.get("status") == "success" and body.get("data", {}).get("link"),
            body.get("message") or "Failed to initialize payment",
        )
        logger.info("Flutterwave payment initialized", extra={"tx_ref": reference})
        return InitializedPayment(payment_link=body["data"]["link"], reference=reference)

    def verify(self, key):
        body = self._make_request("GET", f"/transactions/{key}/verify")

        if body.get("status") != "success":
            logger.warning("Flutterwave verification rejected", extra={"transaction_id": str(key)})
            return VerifiedTransaction(
                success=False,
                status=body.get("status") or "error",
                transaction_id=str(key),
                message=body.get("message") or "Verification failed",
            )

        data = body.get("data") or {}
        return VerifiedTransaction(
            success=data.get("status") == "successful",
            status=data.get("status", "unknown"),
            amount=to_money(data.get("amount", 0)),
            reference=data.get("tx_ref"),
            transaction_id=str(data.get("id", key)),
            currency=data.get("currency"),
            metadata=_normalize_meta(data.get("meta")),
        )

    def verify_webhook(self, payload, headers):
        return self._safe_compare(self.webhook_hash, headers.get(WEBHOOK_HASH_HEADER))

    @staticmethod
    def parse_webhook(event: Dict) -> Optional[Dict]:
        """Return the transaction fields of a successful charge event, else None."""
        data = event.get("data") or {}
        if event.get("event") != "charge.completed" or data.get("status") != "successful":
            return None
        meta = _normalize_meta(data.get("meta"))
        return {
            "transaction_id": str(data.get("id")),
            "tx_ref": data.get("tx_ref"),
            "amount": str(data.get("amount", Decimal("0"))),
            "payment_type": meta.get("payment_type", "order"),
            "shop_id": meta.get("shop_id"),
        }


def _normalize_meta(meta):
    # Flutterwave echoes meta back either as a dict or as a list of
    # {"metaname": ..., "metavalue": ...} pairs depending on the endpoint.
    if isinstance(meta, list):
        return {item.get("metaname"): item.get("metavalue") for item in meta if isinstance(item, dict)}
    return dict(meta or {})

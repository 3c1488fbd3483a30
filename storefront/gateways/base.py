"""
Payment gateway clients.

The gateway is an untrusted, retryable dependency: these clients only move
data in and out. Deciding whether money moved is the state machines' job,
and they decide from ``verify`` alone.
"""

import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

import requests

from storefront.errors import GatewayUnreachable, PaymentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitializedPayment:
    payment_link: str
    reference: str


@dataclass(frozen=True)
class VerifiedTransaction:
    success: bool
    status: str
    amount: Decimal = Decimal("0")
    reference: Optional[str] = None
    transaction_id: Optional[str] = None
    currency: Optional[str] = None
    metadata: Dict = field(default_factory=dict)
    message: Optional[str] = None


class GatewayClient(ABC):
    """Shared HTTP plumbing for the concrete gateways."""

    provider = "base"
    # Which callback field the gateway's verify endpoint is keyed on
    verify_by = "transaction_id"

    def __init__(self, secret_key: str, base_url: str, timeout: int = 10, currency: str = "NGN"):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.currency = currency

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Dict:
        """
        Call the gateway and return the decoded JSON body.

        Network failures, timeouts and 5xx responses raise GatewayUnreachable.
        4xx bodies are returned as-is; gateways report "not found" and
        "declined" that way and callers treat them as a negative answer.
        """
        url = f"{self.base_url}{endpoint}"

        try:
            if method.upper() == "GET":
                response = requests.get(url, headers=self._get_headers(), params=data, timeout=self.timeout)
            else:
                response = requests.post(url, headers=self._get_headers(), json=data, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"{self.provider} API timeout: {endpoint}")
            raise GatewayUnreachable("The payment gateway timed out. Please try again.")
        except requests.exceptions.RequestException as e:
            logger.error(f"{self.provider} API error: {e}")
            raise GatewayUnreachable("The payment gateway could not be reached. Please try again.")

        if response.status_code >= 500:
            logger.error(
                f"{self.provider} API server error",
                extra={"endpoint": endpoint, "status_code": response.status_code},
            )
            raise GatewayUnreachable("The payment gateway is unavailable. Please try again.")

        try:
            return response.json()
        except ValueError:
            logger.error(f"{self.provider} returned a non-JSON body", extra={"endpoint": endpoint})
            raise GatewayUnreachable("The payment gateway returned an unreadable response.")

    @staticmethod
    def _require(condition, message):
        if not condition:
            raise PaymentError(message)

    @staticmethod
    def _safe_compare(expected: Optional[str], provided: Optional[str]) -> bool:
        if not expected or not provided:
            return False
        return hmac.compare_digest(expected.encode(), provided.encode())

    @abstractmethod
    def initialize(self, *, amount: Decimal, reference: str, callback_url: str, email: str,
                   metadata: Optional[Dict] = None, title: Optional[str] = None) -> InitializedPayment:
        """Create a hosted payment page and return its link."""

    @abstractmethod
    def verify(self, key: str) -> VerifiedTransaction:
        """Ask the gateway for the authoritative state of a transaction."""

    @abstractmethod
    def verify_webhook(self, payload: bytes, headers) -> bool:
        """Authenticate an inbound webhook delivery."""

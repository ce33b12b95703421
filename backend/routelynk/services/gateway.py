"""Payment gateway client (Stripe)."""
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import stripe

from routelynk.core.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


def to_minor_units(price: float) -> int:
    """Stripe expects amounts in cents; round half up like the web client does."""
    return int((Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    """Interface used by the payment service; tests substitute their own."""

    @abstractmethod
    def create_intent(self, amount: int, currency: str) -> str:
        """Open a charge for ``amount`` minor units; returns the client secret."""

    @abstractmethod
    def charge_succeeded(self, transaction_id: str, amount: int) -> bool:
        """True only for a completed, unrefunded charge of exactly ``amount``."""

    @abstractmethod
    def refund(self, transaction_id: str) -> None:
        """Refund the whole charge; raises ``PaymentGatewayError`` on failure."""


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    def _require_key(self):
        if not self.api_key:
            raise PaymentGatewayError("Payment gateway is not configured")

    def create_intent(self, amount: int, currency: str) -> str:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                payment_method_types=["card"],
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe intent creation failed: %s", e)
            raise PaymentGatewayError("Could not create payment intent")
        return intent.client_secret

    def charge_succeeded(self, transaction_id: str, amount: int) -> bool:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(transaction_id, api_key=self.api_key, expand=["latest_charge"])
        except stripe.InvalidRequestError:
            return False
        except stripe.StripeError as e:
            logger.error("Stripe intent lookup failed for %s: %s", transaction_id, e)
            raise PaymentGatewayError("Could not verify payment")
        if intent.status != "succeeded" or intent.amount_received != amount:
            return False
        # A refunded intent keeps its succeeded status
        charge = intent.latest_charge
        return not (charge and charge.amount_refunded)

    def refund(self, transaction_id: str) -> None:
        self._require_key()
        try:
            stripe.Refund.create(payment_intent=transaction_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error("Stripe refund failed for %s: %s", transaction_id, e)
            raise PaymentGatewayError("Refund failed")

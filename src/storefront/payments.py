"""Payment gateway contract.

The gateway itself is an external service; storefront only needs to look up
the status of a payment intent when a client confirms payment.
"""

from dataclasses import dataclass
from typing import Protocol

SUCCEEDED = "succeeded"

PAYMENT_METHOD_DETAILS = [
    {
        "id": "credit_card",
        "name": "Credit Card",
        "description": "Pay with Visa, Mastercard, American Express",
    },
    {
        "id": "debit_card",
        "name": "Debit Card",
        "description": "Pay with your debit card",
    },
    {
        "id": "paypal",
        "name": "PayPal",
        "description": "Pay with your PayPal account",
    },
    {
        "id": "stripe",
        "name": "Stripe",
        "description": "Pay through Stripe checkout",
    },
    {
        "id": "cash_on_delivery",
        "name": "Cash on Delivery",
        "description": "Pay when you receive your order",
    },
]


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    method: str = "stripe"

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


class PaymentGateway(Protocol):
    """Anything that can report the state of a payment intent."""

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        ...

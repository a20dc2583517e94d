import logging
from dataclasses import dataclass
from typing import Optional

import stripe

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

CARD_ERROR_MESSAGES = {
    "card_declined": "Your card was declined",
    "expired_card": "Your card is expired",
    "incorrect_cvc": "Incorrect CVC code",
    "incorrect_zip": "Incorrect zip/postal code",
    "amount_too_large": "The amount is too large to charge to your card",
    "amount_too_small": "The amount is too small to charge to your card",
    "balance_insufficient": "Insufficient balance",
    "postal_code_invalid": "Your postal code is invalid",
}


def card_error_message(code: Optional[str]) -> str:
    """Human-readable version of a card error code."""
    return CARD_ERROR_MESSAGES.get(code or "", "Your card was declined")


@dataclass
class PaymentIntentResult:
    client_secret: str = ""
    decline_reason: Optional[str] = None

    @property
    def declined(self) -> bool:
        return self.decline_reason is not None


class StripeGateway:
    """Creates payment intents through the Stripe SDK."""

    def __init__(self, secret: str):
        self.secret = secret

    def create_payment_intent(self, currency: str, amount: int) -> PaymentIntentResult:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata={"integration_check": "accept_a_payment"},
                api_key=self.secret,
            )
        except stripe.CardError as e:
            logger.info("Payment intent declined: %s", e.code)
            return PaymentIntentResult(decline_reason=card_error_message(e.code))
        except stripe.StripeError as e:
            raise UpstreamError(f"payment provider error: {e.user_message or e}") from e

        return PaymentIntentResult(client_secret=intent.client_secret)

import logging

from fastapi import APIRouter, Depends

from ..config import Settings
from ..deps import get_current_user, get_payment_gateway, get_settings
from ..errors import BadRequestError
from ..models import User
from ..schemas import PaymentRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payment", tags=["payment"])

CURRENCY = "usd"


@router.post("/process")
def process_payment(
    body: PaymentRequest,
    user: User = Depends(get_current_user),
    gateway=Depends(get_payment_gateway),
):
    """Creates a card payment intent and hands its client secret to the storefront."""
    result = gateway.create_payment_intent(CURRENCY, body.amount)
    if result.declined:
        logger.info("Payment for user %s declined: %s", user.id, result.decline_reason)
        raise BadRequestError(result.decline_reason)
    return {"success": True, "client_secret": result.client_secret}


@router.get("/stripeapi")
def send_stripe_api_key(user: User = Depends(get_current_user), settings: Settings = Depends(get_settings)):
    return {"stripeApiKey": settings.stripe_key}

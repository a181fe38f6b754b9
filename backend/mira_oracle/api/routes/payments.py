"""
Payment API Routes

Stripe one-time payment intents and the monthly subscription.
The client completes both with Stripe.js using the returned client secret.
"""

import logging
from typing import Optional

from fastapi import APIRouter

from mira_oracle.api.dependencies import BillingServiceDep, CurrentUser
from mira_oracle.domain.models import CamelModel, PaymentIntentRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


class PaymentIntentResponse(CamelModel):
    client_secret: Optional[str] = None
    payment_id: int


class SubscriptionResponse(CamelModel):
    subscription_id: str
    client_secret: Optional[str] = None


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    data: PaymentIntentRequest,
    user: CurrentUser,
    billing: BillingServiceDep,
):
    client_secret, payment = await billing.create_payment_intent(user, data.amount)
    return PaymentIntentResponse(client_secret=client_secret, payment_id=payment.id)


@router.post("/get-or-create-subscription", response_model=SubscriptionResponse)
async def get_or_create_subscription(user: CurrentUser, billing: BillingServiceDep):
    """Reuse the user's subscription or start a new one."""
    subscription_id, client_secret = await billing.get_or_create_subscription(user)
    return SubscriptionResponse(subscription_id=subscription_id, client_secret=client_secret)

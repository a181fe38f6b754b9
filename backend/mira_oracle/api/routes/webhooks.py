"""
Stripe Webhook Handler

Applies Stripe payment and subscription events to stored state.
Every request must carry a valid Stripe-Signature header.

Handled Events:
- payment_intent.succeeded / payment_intent.payment_failed: settle one-time payments
- customer.subscription.created / updated / deleted: sync the user's subscription status
- invoice.payment_succeeded: record a completed subscription payment
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Request

from mira_oracle.api.dependencies import StorageDep
from mira_oracle.domain.models import (
    PaymentCreate,
    PaymentStatus,
    PaymentType,
    SubscriptionStatus,
)
from mira_oracle.infrastructure.exceptions import ConflictError, NotFoundError
from mira_oracle.infrastructure.payments.stripe_service import get_stripe_service
from mira_oracle.infrastructure.storage import Storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhooks"])


# Stripe subscription states -> stored status
STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


# =============================================================================
# Webhook Endpoint
# =============================================================================

@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, storage: StorageDep):
    """
    Handle Stripe webhook events.

    Returns 200 once the event is applied or deliberately ignored.
    Storage failures propagate as 5xx so Stripe retries the delivery.
    """
    stripe_service = get_stripe_service()

    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    # Raises ValidationError (400) on a missing or bad signature
    event = stripe_service.verify_webhook_signature(payload, signature)

    event_id = event.get("id")
    event_type = event.get("type")
    data = event["data"]["object"]

    logger.info(f"Processing webhook event: {event_type} ({event_id})")

    if event_type == "payment_intent.succeeded":
        await handle_payment_intent(data, PaymentStatus.COMPLETED, storage)

    elif event_type == "payment_intent.payment_failed":
        await handle_payment_intent(data, PaymentStatus.FAILED, storage)

    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        await handle_subscription_changed(data, storage)

    elif event_type == "customer.subscription.deleted":
        await handle_subscription_deleted(data, storage)

    elif event_type == "invoice.payment_succeeded":
        await handle_invoice_payment_succeeded(data, storage)

    else:
        logger.debug(f"Unhandled event type: {event_type}")
        return {"status": "ignored"}

    return {"status": "success"}


# =============================================================================
# Event Handlers
# =============================================================================

async def handle_payment_intent(intent: dict, status: PaymentStatus, storage: Storage):
    """Settle the payment recorded for a one-time intent."""
    intent_id = intent.get("id")
    if not intent_id:
        return

    try:
        await storage.update_payment_status(intent_id, status)
        logger.info(f"Payment for intent {intent_id} marked {status.value}")
    except NotFoundError:
        # Subscription invoices create their own intents; those are recorded separately
        logger.debug(f"No payment recorded for intent {intent_id}")


async def handle_subscription_changed(subscription_data: dict, storage: Storage):
    """
    Sync a created or updated subscription.

    Stores the subscription id and maps Stripe's status onto ours.
    Transitional states such as ``incomplete`` leave the status untouched.
    """
    customer_id = subscription_data.get("customer")
    if not customer_id:
        return

    user = await storage.get_user_by_stripe_customer_id(customer_id)
    if user is None:
        logger.warning(f"Subscription event for unknown customer {customer_id}")
        return

    subscription_id = subscription_data.get("id")
    if subscription_id and subscription_id != user.stripe_subscription_id:
        await storage.update_user_stripe_info(user.id, customer_id, subscription_id)

    new_status = STRIPE_STATUS_MAP.get(subscription_data.get("status"))
    if new_status is not None:
        await storage.update_user_subscription_status(user.id, new_status)
        logger.info(f"User {user.id} subscription is now {new_status.value}")


async def handle_subscription_deleted(subscription_data: dict, storage: Storage):
    """Mark the subscription canceled and forget it, so a new one can be started."""
    customer_id = subscription_data.get("customer")
    if not customer_id:
        return

    user = await storage.get_user_by_stripe_customer_id(customer_id)
    if user is None:
        logger.warning(f"Subscription deletion for unknown customer {customer_id}")
        return

    await storage.update_user_subscription_status(user.id, SubscriptionStatus.CANCELED)
    await storage.update_user_stripe_info(user.id, customer_id, None)
    logger.info(f"Canceled subscription for user {user.id}")


async def handle_invoice_payment_succeeded(invoice: dict, storage: Storage):
    """Record the subscription charge as a completed payment."""
    customer_id = invoice.get("customer")
    if not customer_id or not invoice.get("subscription"):
        return

    user = await storage.get_user_by_stripe_customer_id(customer_id)
    if user is None:
        logger.warning(f"Invoice for unknown customer {customer_id}")
        return

    amount_paid = invoice.get("amount_paid") or 0
    intent_id = _intent_id(invoice.get("payment_intent"))
    try:
        await storage.create_payment(
            PaymentCreate(
                user_id=user.id,
                stripe_payment_intent_id=intent_id,
                amount=(Decimal(amount_paid) / 100).quantize(Decimal("0.01")),
                currency=invoice.get("currency") or "usd",
                payment_type=PaymentType.SUBSCRIPTION,
                status=PaymentStatus.COMPLETED,
            )
        )
        logger.info(f"Recorded subscription payment of {amount_paid} cents for user {user.id}")
    except ConflictError:
        # Redelivered event
        logger.info(f"Payment for intent {intent_id} already recorded")

    await storage.update_user_subscription_status(user.id, SubscriptionStatus.ACTIVE)


def _intent_id(payment_intent) -> Optional[str]:
    if isinstance(payment_intent, dict):
        return payment_intent.get("id")
    return payment_intent

"""
Stripe Payment Service

Infrastructure service for Stripe payment processing.
Handles one-time payment intents, the monthly oracle subscription,
and webhook signature verification.

Stripe failures are logged and re-raised as PaymentServiceError so the
API answers 502 without leaking processor internals.
"""

import asyncio
import logging
from typing import Optional

import stripe
from stripe import StripeError

from mira_oracle.config.settings import get_settings
from mira_oracle.infrastructure.exceptions import (
    ConfigurationError,
    PaymentServiceError,
    ValidationError,
)


logger = logging.getLogger(__name__)


def dollars_to_cents(amount: float) -> int:
    return int(round(amount * 100))


class StripeService:
    """
    Stripe payment processing service.

    All methods are stateless; the API key is applied module-wide by the
    stripe SDK.
    """

    def __init__(self):
        """Initialize Stripe with API key from settings."""
        settings = get_settings()
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._currency = settings.default_currency
        self._price_cents = settings.subscription_price_cents
        self._product_name = settings.subscription_product_name

        if self._api_key:
            stripe.api_key = self._api_key

    def _require_api_key(self) -> None:
        if not self._api_key:
            raise ConfigurationError(
                "Payments are not configured",
                missing_keys=["STRIPE_SECRET_KEY"],
            )

    # =========================================================================
    # One-time Payments
    # =========================================================================

    async def create_payment_intent(
        self,
        amount_cents: int,
        user_id: int,
    ) -> stripe.PaymentIntent:
        """
        Create a PaymentIntent for a one-time purchase.

        Args:
            amount_cents: Charge amount in the smallest currency unit
            user_id: Internal user ID (stored in metadata)

        Returns:
            stripe.PaymentIntent carrying the client secret
        """
        self._require_api_key()
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount_cents,
                currency=self._currency,
                metadata={"user_id": str(user_id)},
            )
            logger.info(f"Created payment intent {intent.id} for user {user_id}")
            return intent

        except StripeError as e:
            logger.error(f"Failed to create payment intent: {e}")
            raise PaymentServiceError(
                f"Failed to create payment: {e.user_message or 'payment processor error'}",
                operation="create_payment_intent",
                original_error=e,
            )

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def create_customer(
        self,
        user_id: int,
        email: str,
        name: Optional[str] = None,
    ) -> stripe.Customer:
        """Create a new Stripe customer for a user."""
        self._require_api_key()
        try:
            customer = await asyncio.to_thread(
                stripe.Customer.create,
                email=email,
                name=name,
                metadata={
                    "user_id": str(user_id),
                    "source": "mira_oracle",
                },
            )
            logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
            return customer

        except StripeError as e:
            logger.error(f"Failed to create Stripe customer: {e}")
            raise PaymentServiceError(
                f"Failed to create customer: {e.user_message or 'payment processor error'}",
                operation="create_customer",
                original_error=e,
            )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def create_subscription(self, customer_id: str) -> stripe.Subscription:
        """
        Start the monthly subscription for a customer.

        The price is created inline from settings. The subscription starts
        incomplete; the client confirms the first invoice's payment intent.
        """
        self._require_api_key()
        try:
            price = await asyncio.to_thread(
                stripe.Price.create,
                unit_amount=self._price_cents,
                currency=self._currency,
                recurring={"interval": "month"},
                product_data={"name": self._product_name},
            )
            subscription = await asyncio.to_thread(
                stripe.Subscription.create,
                customer=customer_id,
                items=[{"price": price.id}],
                payment_behavior="default_incomplete",
                expand=["latest_invoice.payment_intent"],
            )
            logger.info(f"Created subscription {subscription.id} for customer {customer_id}")
            return subscription

        except StripeError as e:
            logger.error(f"Failed to create subscription: {e}")
            raise PaymentServiceError(
                f"Failed to create subscription: {e.user_message or 'payment processor error'}",
                operation="create_subscription",
                original_error=e,
            )

    async def get_subscription_client_secret(self, subscription_id: str) -> Optional[str]:
        """
        Client secret of the payment intent behind a subscription's latest invoice.

        Returns None once the invoice has nothing left to pay.
        """
        self._require_api_key()
        try:
            subscription = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
            invoice_id = subscription.get("latest_invoice")
            if not invoice_id:
                return None

            invoice = await asyncio.to_thread(
                stripe.Invoice.retrieve,
                invoice_id,
                expand=["payment_intent"],
            )
            payment_intent = invoice.get("payment_intent")
            return payment_intent.get("client_secret") if payment_intent else None

        except StripeError as e:
            logger.error(f"Failed to retrieve subscription {subscription_id}: {e}")
            raise PaymentServiceError(
                "Failed to retrieve subscription",
                operation="retrieve_subscription",
                original_error=e,
            )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> stripe.Event:
        """
        Verify webhook signature and construct event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            stripe.Event if valid

        Raises:
            ValidationError if the signature is missing or invalid
        """
        if not self._webhook_secret:
            raise ConfigurationError(
                "Webhook secret not configured",
                missing_keys=["STRIPE_WEBHOOK_SECRET"],
            )
        if not signature:
            raise ValidationError("Missing Stripe signature")

        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                self._webhook_secret,
            )

        except ValueError as e:
            raise ValidationError("Invalid webhook payload", original_error=e)
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature", original_error=e)


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance

"""
Payments Infrastructure Module

Stripe payment intents, subscriptions and webhook verification.
"""

from mira_oracle.infrastructure.payments.stripe_service import (
    StripeService,
    dollars_to_cents,
    get_stripe_service,
)

__all__ = ["StripeService", "dollars_to_cents", "get_stripe_service"]

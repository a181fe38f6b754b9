# API Routes Module
from mira_oracle.api.routes import (
    auth,
    questionnaires,
    readings,
    insights,
    payments,
    webhooks,
    admin,
)

__all__ = [
    "auth",
    "questionnaires",
    "readings",
    "insights",
    "payments",
    "webhooks",
    "admin",
]

"""
Admin Routes

Dashboard statistics, read-only listings and daily insight management.
Every route requires a logged-in administrator.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status

from mira_oracle.api.dependencies import StorageDep, require_admin
from mira_oracle.domain.models import (
    AdminStats,
    CamelModel,
    DailyInsightCreate,
    DailyInsightPublic,
    DailyInsightUpdate,
    PaymentPublic,
    QuestionnairePublic,
    UserPublic,
)
from mira_oracle.domain.services import compute_admin_stats
from mira_oracle.infrastructure.storage import DEFAULT_PAGE_SIZE


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)]  # Protect ALL admin routes
)


class Page:
    """Common skip/limit query parameters."""

    def __init__(
        self,
        skip: int = Query(0, ge=0),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500),
    ):
        self.skip = skip
        self.limit = limit


class UserListResponse(CamelModel):
    users: List[UserPublic]


class QuestionnaireListResponse(CamelModel):
    questionnaires: List[QuestionnairePublic]


class PaymentListResponse(CamelModel):
    payments: List[PaymentPublic]


class InsightListResponse(CamelModel):
    insights: List[DailyInsightPublic]


class InsightResponse(CamelModel):
    insight: DailyInsightPublic


# =============================================================================
# Read-only Views
# =============================================================================

@router.get("/users", response_model=UserListResponse)
async def list_users(storage: StorageDep, page: Page = Depends()):
    users = await storage.get_all_users(page.skip, page.limit)
    return UserListResponse(users=[UserPublic.model_validate(u) for u in users])


@router.get("/stats", response_model=AdminStats)
async def get_stats(storage: StorageDep):
    """
    Dashboard totals.

    - totalUsers: every account
    - monthlyRevenue: sum over completed payments
    - readingsGenerated: every reading
    - subscriptions: users whose subscription is active
    """
    return await compute_admin_stats(storage)


@router.get("/questionnaires", response_model=QuestionnaireListResponse)
async def list_questionnaires(storage: StorageDep, page: Page = Depends()):
    questionnaires = await storage.get_all_questionnaires(page.skip, page.limit)
    return QuestionnaireListResponse(
        questionnaires=[QuestionnairePublic.model_validate(q) for q in questionnaires]
    )


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments(storage: StorageDep, page: Page = Depends()):
    payments = await storage.get_all_payments(page.skip, page.limit)
    return PaymentListResponse(payments=[PaymentPublic.model_validate(p) for p in payments])


# =============================================================================
# Daily Insights
# =============================================================================

@router.get("/daily-insights", response_model=InsightListResponse)
async def list_daily_insights(storage: StorageDep, page: Page = Depends()):
    insights = await storage.get_all_daily_insights(page.skip, page.limit)
    return InsightListResponse(insights=[DailyInsightPublic.model_validate(i) for i in insights])


@router.post(
    "/daily-insights",
    response_model=InsightResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_daily_insight(data: DailyInsightCreate, storage: StorageDep):
    insight = await storage.create_daily_insight(data)
    logger.info(f"Created daily insight {insight.id} for {insight.date}")
    return InsightResponse(insight=DailyInsightPublic.model_validate(insight))


@router.patch("/daily-insights/{insight_id}", response_model=InsightResponse)
async def update_daily_insight(
    insight_id: int,
    data: DailyInsightUpdate,
    storage: StorageDep,
):
    insight = await storage.update_daily_insight(insight_id, data)
    return InsightResponse(insight=DailyInsightPublic.model_validate(insight))

"""
Daily Insight API Routes

Public lookup of today's insight, optionally scoped to a zodiac sign.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query

from mira_oracle.api.dependencies import StorageDep
from mira_oracle.domain.models import CamelModel, DailyInsightPublic, normalize_zodiac_sign
from mira_oracle.infrastructure.exceptions import ValidationError


router = APIRouter(prefix="/api", tags=["insights"])


class DailyInsightResponse(CamelModel):
    insight: Optional[DailyInsightPublic] = None


@router.get("/daily-insight", response_model=DailyInsightResponse)
async def get_daily_insight(
    storage: StorageDep,
    zodiac_sign: Optional[str] = Query(None, alias="zodiacSign", max_length=20),
    date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
):
    """Insight for ``date`` (default: today, UTC). ``insight`` is null when none is published."""
    sign = None
    if zodiac_sign:
        try:
            sign = normalize_zodiac_sign(zodiac_sign)
        except ValueError as e:
            raise ValidationError(errors=[{"field": "zodiacSign", "message": str(e)}])

    day = date or datetime.now(timezone.utc).date().isoformat()
    insight = await storage.get_daily_insight_by_date(day, sign)
    return DailyInsightResponse(
        insight=DailyInsightPublic.model_validate(insight) if insight else None
    )

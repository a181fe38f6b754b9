"""
Reading API Routes
"""

from typing import List

from fastapi import APIRouter

from mira_oracle.api.dependencies import CurrentUser, ReadingServiceDep
from mira_oracle.domain.models import CamelModel, ReadingPublic


router = APIRouter(prefix="/api/readings", tags=["readings"])


class ReadingListResponse(CamelModel):
    readings: List[ReadingPublic]


class ReadingResponse(CamelModel):
    reading: ReadingPublic


@router.get("", response_model=ReadingListResponse)
async def list_readings(user: CurrentUser, readings: ReadingServiceDep):
    items = await readings.list_readings(user)
    return ReadingListResponse(readings=[ReadingPublic.model_validate(r) for r in items])


@router.get("/{reading_id}", response_model=ReadingResponse)
async def get_reading(reading_id: int, user: CurrentUser, readings: ReadingServiceDep):
    """A single reading. Readings of other users are reported as missing."""
    reading = await readings.get_reading(user, reading_id)
    return ReadingResponse(reading=ReadingPublic.model_validate(reading))

"""
Questionnaire API Routes

Submitting a questionnaire stores it and generates the first reading.
"""

import logging
from typing import List

from fastapi import APIRouter, status

from mira_oracle.api.dependencies import CurrentUser, ReadingServiceDep, StorageDep
from mira_oracle.domain.models import (
    CamelModel,
    QuestionnaireCreate,
    QuestionnairePublic,
    ReadingPublic,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["questionnaire"])


class QuestionnaireSubmitResponse(CamelModel):
    questionnaire: QuestionnairePublic
    reading: ReadingPublic


class QuestionnaireListResponse(CamelModel):
    questionnaires: List[QuestionnairePublic]


@router.post(
    "/questionnaire",
    response_model=QuestionnaireSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_questionnaire(
    data: QuestionnaireCreate,
    user: CurrentUser,
    readings: ReadingServiceDep,
):
    questionnaire, reading = await readings.submit_questionnaire(user, data)
    return QuestionnaireSubmitResponse(
        questionnaire=QuestionnairePublic.model_validate(questionnaire),
        reading=ReadingPublic.model_validate(reading),
    )


@router.get("/questionnaire", response_model=QuestionnaireListResponse)
async def list_questionnaires(user: CurrentUser, storage: StorageDep):
    """The user's questionnaires, oldest first."""
    questionnaires = await storage.get_questionnaires_by_user_id(user.id)
    return QuestionnaireListResponse(
        questionnaires=[QuestionnairePublic.model_validate(q) for q in questionnaires]
    )

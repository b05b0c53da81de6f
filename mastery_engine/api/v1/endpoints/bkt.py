"""BKT (Bayesian Knowledge Tracing) API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from mastery_engine.api.deps import get_test_service
from mastery_engine.schemas.bkt import GetMasteryResponse, MasteryStateResponse
from mastery_engine.services.adaptive_test import AdaptiveTestService

router = APIRouter()


@router.get("/mastery/{user_id}/{course_id}", response_model=GetMasteryResponse)
def get_mastery(
    user_id: UUID,
    course_id: UUID,
    service: Annotated[AdaptiveTestService, Depends(get_test_service)],
):
    """
    Get a user's recorded mastery for every attempted KC of a course.

    KCs the user has never answered have no record and are not listed.
    """
    states = service.mastery_states(user_id, course_id)
    return GetMasteryResponse(
        user_id=user_id,
        course_id=course_id,
        mastery_threshold=service.mastery_threshold,
        states=[MasteryStateResponse.model_validate(state) for state in states],
        total=len(states),
    )

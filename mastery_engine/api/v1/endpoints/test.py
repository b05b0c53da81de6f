"""Adaptive test endpoints: sessions, answers and pass chance."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from mastery_engine.api.deps import get_test_service
from mastery_engine.schemas.test import (
    AnswerFeedbackResponse,
    AnswerSubmitRequest,
    PassChanceResponse,
    QuestionOut,
    SessionCompleteRequest,
    SessionHistoryResponse,
    SessionOut,
    SessionStartRequest,
    SessionStartResponse,
    SessionStateResponse,
)
from mastery_engine.services.adaptive_test import AdaptiveTestService, SessionView

router = APIRouter()
logger = logging.getLogger(__name__)

TestService = Annotated[AdaptiveTestService, Depends(get_test_service)]


def _questions(view: SessionView) -> list[QuestionOut]:
    return [QuestionOut.model_validate(q) for q in view.questions]


@router.post(
    "/sessions",
    response_model=SessionStartResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_session(payload: SessionStartRequest, service: TestService):
    """
    Start an adaptive session of up to 10 questions, weakest KCs first.

    When every KC in scope is mastered no session is created and
    ``all_mastered`` is true.
    """
    view = service.start_session(payload.user_id, payload.course_id, payload.topic_id)

    if view.all_mastered:
        return SessionStartResponse(
            all_mastered=True,
            message="All knowledge components in scope are mastered",
        )
    if view.session is None:
        return SessionStartResponse(message="No questions available for this scope")

    return SessionStartResponse(
        session=SessionOut.model_validate(view.session),
        questions=_questions(view),
    )


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
def resume_session(session_id: UUID, user_id: Annotated[UUID, Query()], service: TestService):
    """Resume an in-progress session with its original questions and progress."""
    view = service.resume_session(session_id, user_id)
    return SessionStateResponse(
        session=SessionOut.model_validate(view.session),
        questions=_questions(view),
    )


@router.post("/sessions/{session_id}/complete", response_model=SessionOut)
def complete_session(session_id: UUID, payload: SessionCompleteRequest, service: TestService):
    """Complete a session (idempotent) and store its pass-chance snapshot."""
    session = service.complete_session(session_id, payload.user_id)
    return SessionOut.model_validate(session)


@router.get("/history/{user_id}/{course_id}", response_model=SessionHistoryResponse)
def session_history(
    user_id: UUID,
    course_id: UUID,
    service: TestService,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
):
    """A user's sessions for a course, newest first."""
    sessions = service.history(user_id, course_id, limit)
    return SessionHistoryResponse(
        user_id=user_id,
        course_id=course_id,
        sessions=[SessionOut.model_validate(s) for s in sessions],
        total=len(sessions),
    )


@router.post("/answer", response_model=AnswerFeedbackResponse)
def submit_answer(payload: AnswerSubmitRequest, service: TestService):
    """
    Submit an answer and get immediate feedback.

    The mastery update, attempt record and session counters are committed
    together before the response is sent.
    """
    feedback = service.submit_answer(
        user_id=payload.user_id,
        course_id=payload.course_id,
        question_id=payload.question_id,
        selected_option_index=payload.selected_option_index,
        session_id=payload.session_id,
    )
    return AnswerFeedbackResponse.model_validate(feedback)


@router.get("/pass-chance/{user_id}/{course_id}", response_model=PassChanceResponse)
def pass_chance(
    user_id: UUID,
    course_id: UUID,
    service: TestService,
    target_grade: Annotated[float | None, Query(ge=0.0, le=1.0)] = None,
):
    """Probability of reaching the target grade; null until a KC is attempted."""
    result = service.pass_chance(user_id, course_id, target_grade)
    return PassChanceResponse.model_validate(result)

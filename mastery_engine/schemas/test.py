"""Pydantic schemas for adaptive test sessions and answers."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.models.session import SessionStatus

# ============================================================================
# Session Schemas
# ============================================================================


class SessionStartRequest(BaseModel):
    """Request to start an adaptive session."""

    user_id: UUID
    course_id: UUID
    topic_id: UUID | None = Field(None, description="Restrict scheduling to one topic")


class QuestionOut(BaseModel):
    """Question as shown to the learner (no answer key)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kc_id: UUID
    stem: str
    options: list[str]
    difficulty_level: str


class SessionOut(BaseModel):
    """Session state and counters."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    status: SessionStatus
    total_questions: int
    answered_count: int
    correct_count: int
    pass_chance: float | None = None
    created_at: datetime
    completed_at: datetime | None = None


class SessionStartResponse(BaseModel):
    """New session, or ``all_mastered`` with no session."""

    session: SessionOut | None = None
    questions: list[QuestionOut] = Field(default_factory=list)
    all_mastered: bool = False
    message: str | None = None


class SessionStateResponse(BaseModel):
    """Resumed session: same questions, same order."""

    session: SessionOut
    questions: list[QuestionOut]


class SessionCompleteRequest(BaseModel):
    user_id: UUID


class SessionHistoryResponse(BaseModel):
    user_id: UUID
    course_id: UUID
    sessions: list[SessionOut]
    total: int


# ============================================================================
# Answer Schemas
# ============================================================================


class AnswerSubmitRequest(BaseModel):
    """Submit one answer; ``session_id`` ties it to an adaptive session."""

    user_id: UUID
    course_id: UUID
    question_id: UUID
    selected_option_index: int = Field(..., description="0-based index of the chosen option")
    session_id: UUID | None = None


class AnswerFeedbackResponse(BaseModel):
    """Correctness, the right answer and the mastery change."""

    model_config = ConfigDict(from_attributes=True)

    question_id: UUID
    kc_id: UUID
    is_correct: bool
    selected_option_index: int
    correct_option_index: int
    correct_option_text: str
    explanation: str
    p_mastery_before: float = Field(..., ge=0.0, le=1.0)
    p_mastery_after: float = Field(..., ge=0.0, le=1.0)
    is_newly_mastered: bool
    mastery_threshold: float
    session_id: UUID | None = None
    session_completed: bool = False
    duplicate: bool = Field(False, description="True when replaying an earlier submission")


# ============================================================================
# Pass Chance Schemas
# ============================================================================


class PassChanceResponse(BaseModel):
    """Pass probability, null when no KC has been attempted yet."""

    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    pass_probability: float | None = Field(None, ge=0.0, le=1.0)
    target_grade: float
    kc_count: int = Field(..., ge=0, description="KCs with a mastery record")
    undetermined: bool

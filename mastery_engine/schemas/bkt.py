"""Pydantic schemas for BKT API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MasteryStateResponse(BaseModel):
    """User mastery state response."""

    model_config = ConfigDict(from_attributes=True)

    kc_id: UUID
    p_mastery: float = Field(..., ge=0.0, le=1.0, description="Current mastery probability")
    total_attempts: int = Field(..., ge=0)
    total_correct: int = Field(..., ge=0)
    accuracy: float | None = None
    is_mastered: bool = Field(..., description="Whether mastery threshold is met")
    last_updated: datetime | None = None


class GetMasteryResponse(BaseModel):
    """Response with mastery states."""

    user_id: UUID
    course_id: UUID
    mastery_threshold: float
    states: list[MasteryStateResponse]
    total: int

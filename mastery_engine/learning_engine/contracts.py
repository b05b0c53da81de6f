"""Typed contracts for the engine's collaborators and results."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID


# ============================================================================
# Collaborators
# ============================================================================


@dataclass(frozen=True)
class QuestionDetail:
    """Full question content, including the answer key. Never sent to clients."""

    id: UUID
    kc_id: UUID
    stem: str
    options: list[str]
    correct_index: int
    explanations: list[str] = field(default_factory=list)
    difficulty_level: str = "medium"

    def explanation_for(self, index: int) -> str:
        if 0 <= index < len(self.explanations):
            return self.explanations[index] or ""
        return ""


class QuestionBank(Protocol):
    """Source of questions and their answer keys."""

    def get(self, question_id: UUID) -> QuestionDetail:
        """Return the question or raise NotFoundError."""
        ...

    def eligible(self, kc_id: UUID, excluding: set[UUID]) -> list[UUID]:
        """Question ids for a KC, minus ``excluding``."""
        ...


class CourseDirectory(Protocol):
    """Course structure: KCs in scope and the passing bar."""

    def kcs(self, course_id: UUID, topic_id: UUID | None = None) -> list[UUID]:
        """KC ids of a course (optionally one topic), in creation order."""
        ...

    def target_grade(self, course_id: UUID) -> float:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class QuestionPayload:
    """Client-facing question: no answer key, no explanations."""

    id: UUID
    kc_id: UUID
    stem: str
    options: list[str]
    difficulty_level: str

    @classmethod
    def from_detail(cls, detail: QuestionDetail) -> "QuestionPayload":
        return cls(
            id=detail.id,
            kc_id=detail.kc_id,
            stem=detail.stem,
            options=list(detail.options),
            difficulty_level=detail.difficulty_level,
        )


@dataclass(frozen=True)
class AnswerFeedback:
    """Outcome of one submitted answer."""

    question_id: UUID
    kc_id: UUID
    is_correct: bool
    selected_option_index: int
    correct_option_index: int
    correct_option_text: str
    explanation: str
    p_mastery_before: float
    p_mastery_after: float
    is_newly_mastered: bool
    mastery_threshold: float
    session_id: UUID | None = None
    session_completed: bool = False
    duplicate: bool = False


@dataclass(frozen=True)
class PassChanceResult:
    """Pass probability, or ``None`` when undetermined (no attempted KCs)."""

    course_id: UUID
    pass_probability: float | None
    target_grade: float
    kc_count: int

    @property
    def undetermined(self) -> bool:
        return self.pass_probability is None

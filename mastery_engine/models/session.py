"""Adaptive test session models."""

import uuid
from datetime import UTC, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from mastery_engine.db.base import Base
from mastery_engine.models.types import JSONType


class SessionStatus(str, PyEnum):
    """Test session status."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TestSession(Base):
    """Resumable adaptive test session.

    ``question_ids`` is fixed at creation and never rewritten, so a reload
    always sees the same test.
    """

    __tablename__ = "test_sessions"
    __test__ = False  # not a pytest test class

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[SessionStatus] = mapped_column(
        Enum(
            SessionStatus,
            name="test_session_status",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=SessionStatus.IN_PROGRESS,
    )

    question_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    answered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pass_chance: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_test_sessions_user_course", "user_id", "course_id"),
        Index("ix_test_sessions_created", "created_at"),
    )

    @property
    def question_uuids(self) -> list[uuid.UUID]:
        return [uuid.UUID(str(qid)) for qid in self.question_ids]


class TestSessionAnswer(Base):
    """One row per answered question in a session.

    The unique constraint makes a retried submission of the same question
    detectable so session counters are bumped exactly once.
    """

    __tablename__ = "test_session_answers"
    __test__ = False

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("test_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False
    )
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_test_session_answer"),
    )

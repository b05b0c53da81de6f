"""BKT (Bayesian Knowledge Tracing) models."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from mastery_engine.db.base import Base


class MasteryRecord(Base):
    """
    Per-user per-course per-KC mastery state.

    Stores the current belief plus the fixed 4-parameter model:
    - p_mastery: Current probability of mastery
    - p_learn: Probability of learning (transition)
    - p_slip: Probability of slip (learned but answers wrong)
    - p_guess: Probability of guess (unlearned but answers correct)

    ``version`` increases on every update and guards the conditional write.
    """

    __tablename__ = "mastery_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    kc_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("knowledge_components.id", ondelete="CASCADE"), nullable=False
    )

    p_mastery: Mapped[float] = mapped_column(
        Float, nullable=False, comment="Current mastery probability"
    )
    p_learn: Mapped[float] = mapped_column(Float, nullable=False)
    p_slip: Mapped[float] = mapped_column(Float, nullable=False)
    p_guess: Mapped[float] = mapped_column(Float, nullable=False)

    total_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "kc_id", name="uq_mastery_records_user_course_kc"),
        Index("idx_mastery_records_user_course", "user_id", "course_id"),
        Index("idx_mastery_records_kc", "kc_id"),
    )


class Attempt(Base):
    """Answer log (append-only).

    IMPORTANT: Do NOT update or delete attempts. They feed recently-seen
    filtering and auditing.
    """

    __tablename__ = "attempts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    kc_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    session_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    selected_option_index: Mapped[int] = mapped_column(Integer, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    p_mastery_before: Mapped[float] = mapped_column(Float, nullable=False)
    p_mastery_after: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_attempts_user_created", "user_id", "created_at"),
        Index("idx_attempts_session", "session_id"),
    )

"""Course catalog models: courses, knowledge components and questions.

These tables are owned by the ingestion and course-management side of the
platform. The engine only reads them through the QuestionBank and
CourseDirectory collaborators.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mastery_engine.db.base import Base
from mastery_engine.models.types import JSONType


class Course(Base):
    """A course with a normalized (0-1) target grade."""

    __tablename__ = "courses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_grade: Mapped[float] = mapped_column(
        Float, nullable=False, default=1.0, comment="Passing bar in [0, 1]"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


class KnowledgeComponent(Base):
    """Atomic trackable skill, scoped to a course and optionally a topic."""

    __tablename__ = "knowledge_components"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    course_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    topic_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_knowledge_components_course", "course_id", "created_at"),
        Index("idx_knowledge_components_topic", "topic_id"),
    )


class Question(Base):
    """Multiple-choice question with exactly one correct option."""

    __tablename__ = "questions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    kc_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("knowledge_components.id", ondelete="CASCADE"), nullable=False
    )
    stem: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    correct_index: Mapped[int] = mapped_column(Integer, nullable=False)
    explanations: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list, comment="One explanation per option"
    )
    difficulty_level: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("idx_questions_kc", "kc_id"),)

"""SQL-backed QuestionBank and CourseDirectory."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mastery_engine.core.exceptions import NotFoundError
from mastery_engine.db.errors import translate_db_errors
from mastery_engine.learning_engine.contracts import QuestionDetail
from mastery_engine.models.catalog import Course, KnowledgeComponent, Question


class SqlQuestionBank:
    """Questions stored in the ``questions`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, question_id: UUID) -> QuestionDetail:
        with translate_db_errors("reading question"):
            question = self.db.get(Question, question_id)
        if question is None:
            raise NotFoundError(
                "Question not found", details={"question_id": str(question_id)}
            )
        return QuestionDetail(
            id=question.id,
            kc_id=question.kc_id,
            stem=question.stem,
            options=list(question.options or []),
            correct_index=question.correct_index,
            explanations=list(question.explanations or []),
            difficulty_level=question.difficulty_level,
        )

    def eligible(self, kc_id: UUID, excluding: set[UUID]) -> list[UUID]:
        query = select(Question.id).where(Question.kc_id == kc_id)
        if excluding:
            query = query.where(Question.id.notin_(list(excluding)))
        # Stable order so a seeded pick is reproducible
        query = query.order_by(Question.created_at, Question.id)

        with translate_db_errors("reading eligible questions"):
            return [row[0] for row in self.db.execute(query).all()]


class SqlCourseDirectory:
    """Course structure from the ``courses`` and ``knowledge_components`` tables."""

    def __init__(self, db: Session):
        self.db = db

    def _course(self, course_id: UUID) -> Course:
        with translate_db_errors("reading course"):
            course = self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found", details={"course_id": str(course_id)})
        return course

    def kcs(self, course_id: UUID, topic_id: UUID | None = None) -> list[UUID]:
        self._course(course_id)

        query = select(KnowledgeComponent.id).where(KnowledgeComponent.course_id == course_id)
        if topic_id is not None:
            query = query.where(KnowledgeComponent.topic_id == topic_id)
        query = query.order_by(KnowledgeComponent.created_at, KnowledgeComponent.id)

        with translate_db_errors("reading knowledge components"):
            return [row[0] for row in self.db.execute(query).all()]

    def target_grade(self, course_id: UUID) -> float:
        return self._course(course_id).target_grade

"""Test data builders."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from mastery_engine.models import Course, KnowledgeComponent, MasteryRecord, Question

OPTIONS = ["Option A", "Option B", "Option C", "Option D"]
CORRECT_INDEX = 1


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@dataclass
class CourseFixture:
    course_id: UUID
    kc_ids: list[UUID] = field(default_factory=list)
    questions: dict[UUID, list[UUID]] = field(default_factory=dict)  # kc_id -> question ids

    def question_for(self, kc_id: UUID, n: int = 0) -> UUID:
        return self.questions[kc_id][n]

    @property
    def kc_by_question(self) -> dict[UUID, UUID]:
        return {qid: kc_id for kc_id, qids in self.questions.items() for qid in qids}


def seed_course(
    db: Session,
    kc_count: int = 3,
    questions_per_kc: int = 2,
    target_grade: float = 0.7,
    topic_id: UUID | None = None,
) -> CourseFixture:
    """Create a course with KCs and questions, creation times one minute apart."""
    base = datetime(2026, 1, 1, tzinfo=UTC)
    course = Course(id=uuid4(), name="Pharmacology", target_grade=target_grade, created_at=base)
    db.add(course)
    db.flush()

    fixture = CourseFixture(course_id=course.id)
    for i in range(kc_count):
        kc = KnowledgeComponent(
            id=uuid4(),
            course_id=course.id,
            topic_id=topic_id,
            name=f"KC {i + 1}",
            created_at=base + timedelta(minutes=i),
        )
        db.add(kc)
        db.flush()
        fixture.kc_ids.append(kc.id)
        fixture.questions[kc.id] = [
            add_question(db, kc.id, created_at=base + timedelta(minutes=i, seconds=j)).id
            for j in range(questions_per_kc)
        ]
    return fixture


def add_kc(db: Session, course_id: UUID, name: str = "Extra KC", topic_id: UUID | None = None):
    kc = KnowledgeComponent(id=uuid4(), course_id=course_id, topic_id=topic_id, name=name)
    db.add(kc)
    db.flush()
    return kc


def add_question(
    db: Session,
    kc_id: UUID,
    correct_index: int = CORRECT_INDEX,
    created_at: datetime | None = None,
) -> Question:
    question = Question(
        id=uuid4(),
        kc_id=kc_id,
        stem="Which drug class does this belong to?",
        options=list(OPTIONS),
        correct_index=correct_index,
        explanations=[f"Explanation for {option}" for option in OPTIONS],
        created_at=created_at or datetime.now(UTC),
    )
    db.add(question)
    db.flush()
    return question


def set_mastery(
    db: Session,
    user_id: UUID,
    course_id: UUID,
    kc_id: UUID,
    p_mastery: float,
    total_attempts: int = 1,
    p_slip: float = 0.1,
    p_guess: float = 0.25,
    p_learn: float = 0.1,
) -> MasteryRecord:
    record = MasteryRecord(
        id=uuid4(),
        user_id=user_id,
        course_id=course_id,
        kc_id=kc_id,
        p_mastery=p_mastery,
        p_learn=p_learn,
        p_slip=p_slip,
        p_guess=p_guess,
        total_attempts=total_attempts,
        total_correct=0,
        version=0,
    )
    db.add(record)
    db.flush()
    return record

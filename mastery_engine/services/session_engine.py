"""Session lifecycle for resumable adaptive tests.

States: in_progress -> completed (terminal). The question list is fixed at
creation. Counters move only through single SQL statements guarded on
``status = 'in_progress'``, so a closed session is never mutated.
"""

import logging
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from mastery_engine.core.exceptions import (
    NotFoundError,
    SessionClosedError,
    SessionNotResumableError,
    ValidationError,
)
from mastery_engine.db.errors import translate_db_errors
from mastery_engine.learning_engine.contracts import Clock
from mastery_engine.models.session import SessionStatus, TestSession, TestSessionAnswer

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """Create, resume, advance and complete test sessions."""

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock

    def create(self, user_id: UUID, course_id: UUID, question_ids: list[UUID]) -> TestSession:
        """Persist a new in-progress session with a fixed question order."""
        if not question_ids:
            raise ValidationError("A session needs at least one question")
        if len(set(question_ids)) != len(question_ids):
            raise ValidationError("A session cannot repeat a question")

        session = TestSession(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            status=SessionStatus.IN_PROGRESS,
            question_ids=[str(qid) for qid in question_ids],
            total_questions=len(question_ids),
            answered_count=0,
            correct_count=0,
            created_at=self.clock.now(),
        )
        with translate_db_errors("creating session"):
            self.db.add(session)
            self.db.flush()

        logger.info(
            f"Created session {session.id} for user {user_id}, course {course_id} "
            f"with {len(question_ids)} questions"
        )
        return session

    def get(self, session_id: UUID, for_update: bool = False) -> TestSession | None:
        query = (
            select(TestSession)
            .where(TestSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        with translate_db_errors("reading session"):
            return self.db.execute(query).scalar_one_or_none()

    def get_owned(self, session_id: UUID, user_id: UUID) -> TestSession:
        """
        Session belonging to ``user_id``.

        Raises:
            NotFoundError: If missing or owned by someone else
        """
        session = self.get(session_id)
        if session is None or session.user_id != user_id:
            raise NotFoundError("Session not found", details={"session_id": str(session_id)})
        return session

    def resume(self, session_id: UUID, user_id: UUID) -> TestSession:
        """
        Return an in-progress session unchanged: same question order, recorded counters.

        Raises:
            SessionNotResumableError: If the session is missing, foreign or completed
        """
        session = self.get(session_id)
        if session is None or session.user_id != user_id:
            raise SessionNotResumableError(
                "Session not found; start a new session",
                details={"session_id": str(session_id)},
            )
        if session.status != SessionStatus.IN_PROGRESS:
            raise SessionNotResumableError(
                "Session already completed; start a new session",
                details={"session_id": str(session_id), "status": session.status.value},
            )

        logger.info(
            f"Resumed session {session_id} at {session.answered_count}/{session.total_questions}"
        )
        return session

    def check_answerable(
        self, session_id: UUID, user_id: UUID, course_id: UUID, question_id: UUID
    ) -> TestSession:
        """
        Validate that an answer may be recorded against this session.

        A question that already has an answer in the session passes even after
        completion, so its feedback can be replayed.

        Raises:
            NotFoundError: If the session is missing or foreign
            ValidationError: If the course or question does not match the session
            SessionClosedError: If the session is completed and the question is unanswered
        """
        session = self.get_owned(session_id, user_id)
        if session.course_id != course_id:
            raise ValidationError(
                "Session belongs to a different course",
                details={"session_id": str(session_id), "course_id": str(course_id)},
            )
        if str(question_id) not in session.question_ids:
            raise ValidationError(
                "Question is not part of this session",
                details={"session_id": str(session_id), "question_id": str(question_id)},
            )
        if session.status != SessionStatus.IN_PROGRESS and (
            self.find_answer(session_id, question_id) is None
        ):
            raise SessionClosedError(
                "Session is closed", details={"session_id": str(session_id)}
            )
        return session

    def find_answer(self, session_id: UUID, question_id: UUID) -> TestSessionAnswer | None:
        with translate_db_errors("reading session answer"):
            return self.db.execute(
                select(TestSessionAnswer).where(
                    TestSessionAnswer.session_id == session_id,
                    TestSessionAnswer.question_id == question_id,
                )
            ).scalar_one_or_none()

    def record_answer(
        self, session_id: UUID, question_id: UUID, attempt_id: UUID, correct: bool
    ) -> bool:
        """
        Count one answer inside the caller's transaction.

        Inserts the per-question row (IntegrityError on a duplicate question),
        bumps the counters atomically and completes the session once every
        question is answered.

        Returns:
            True if this answer completed the session

        Raises:
            SessionClosedError: If the session closed concurrently
        """
        now = self.clock.now()

        with translate_db_errors("recording session answer"):
            self.db.add(
                TestSessionAnswer(
                    id=uuid4(),
                    session_id=session_id,
                    question_id=question_id,
                    attempt_id=attempt_id,
                    is_correct=correct,
                    created_at=now,
                )
            )
            self.db.flush()

            bumped = self.db.execute(
                update(TestSession)
                .where(
                    TestSession.id == session_id,
                    TestSession.status == SessionStatus.IN_PROGRESS,
                )
                .values(
                    answered_count=TestSession.answered_count + 1,
                    correct_count=TestSession.correct_count + (1 if correct else 0),
                )
                .execution_options(synchronize_session=False)
            )
            if bumped.rowcount != 1:
                raise SessionClosedError(
                    "Session is closed", details={"session_id": str(session_id)}
                )

            finished = self.db.execute(
                update(TestSession)
                .where(
                    TestSession.id == session_id,
                    TestSession.status == SessionStatus.IN_PROGRESS,
                    TestSession.answered_count >= TestSession.total_questions,
                )
                .values(status=SessionStatus.COMPLETED, completed_at=now)
                .execution_options(synchronize_session=False)
            )

        if finished.rowcount:
            logger.info(f"Session {session_id} completed after final answer")
        return bool(finished.rowcount)

    def complete(self, session_id: UUID, user_id: UUID) -> tuple[TestSession, bool]:
        """
        Mark a session completed. Idempotent.

        Returns:
            (session, transitioned) where transitioned is False on a repeat call

        Raises:
            NotFoundError: If the session is missing or foreign
        """
        self.get_owned(session_id, user_id)

        with translate_db_errors("completing session"):
            result = self.db.execute(
                update(TestSession)
                .where(
                    TestSession.id == session_id,
                    TestSession.status == SessionStatus.IN_PROGRESS,
                )
                .values(status=SessionStatus.COMPLETED, completed_at=self.clock.now())
                .execution_options(synchronize_session=False)
            )

        transitioned = bool(result.rowcount)
        if transitioned:
            logger.info(f"Session {session_id} completed explicitly")

        return self.get(session_id), transitioned

    def set_pass_chance(self, session_id: UUID, pass_chance: float | None) -> None:
        """Store the pass-chance snapshot taken at completion."""
        with translate_db_errors("storing pass chance snapshot"):
            self.db.execute(
                update(TestSession)
                .where(TestSession.id == session_id)
                .values(pass_chance=pass_chance)
                .execution_options(synchronize_session=False)
            )

    def history(self, user_id: UUID, course_id: UUID, limit: int = 50) -> list[TestSession]:
        """A user's sessions for a course, newest first."""
        with translate_db_errors("reading session history"):
            return list(
                self.db.execute(
                    select(TestSession)
                    .where(TestSession.user_id == user_id, TestSession.course_id == course_id)
                    .order_by(TestSession.created_at.desc(), TestSession.id)
                    .limit(limit)
                    .execution_options(populate_existing=True)
                )
                .scalars()
                .all()
            )

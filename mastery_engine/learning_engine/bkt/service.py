"""
BKT Service Layer - the answer pipeline.

Handles one submitted answer:
1. Resolve the question's KC and answer key
2. Determine correctness
3. Get-or-create and lock the mastery record
4. Apply the BKT update
5. Persist the posterior with a version-guarded write
6. Append the attempt
7. Count the answer against the session, if one was given

Steps 3-7 share one transaction. Success is returned only after commit; on
any failure the transaction is rolled back and the error is raised.
"""

import logging
import random
import time
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mastery_engine.core.config import settings
from mastery_engine.core.exceptions import (
    ConcurrencyConflict,
    EngineError,
    NotFoundError,
    ValidationError,
)
from mastery_engine.db.errors import translate_db_errors
from mastery_engine.learning_engine.bkt.core import BKTState, is_mastered, update
from mastery_engine.learning_engine.bkt.store import AttemptLog, MasteryStore
from mastery_engine.learning_engine.config import BKT_MASTERY_THRESHOLD
from mastery_engine.learning_engine.contracts import (
    AnswerFeedback,
    Clock,
    CourseDirectory,
    QuestionBank,
    QuestionDetail,
)
from mastery_engine.learning_engine.pass_chance.aggregator import PassChanceAggregator
from mastery_engine.services.session_engine import SessionLifecycleManager

logger = logging.getLogger(__name__)


class AnswerPipeline:
    """Validates, scores and persists one answer at a time."""

    def __init__(
        self,
        db: Session,
        question_bank: QuestionBank,
        course_directory: CourseDirectory,
        clock: Clock,
        max_retries: int | None = None,
        retry_base_delay_ms: int | None = None,
    ):
        self.db = db
        self.question_bank = question_bank
        self.course_directory = course_directory
        self.clock = clock
        self.store = MasteryStore(db, clock)
        self.attempts = AttemptLog(db, clock)
        self.sessions = SessionLifecycleManager(db, clock)
        self.aggregator = PassChanceAggregator(self.store, course_directory)
        self.max_retries = settings.ANSWER_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay_ms = (
            settings.ANSWER_RETRY_BASE_DELAY_MS
            if retry_base_delay_ms is None
            else retry_base_delay_ms
        )

    def _validate(
        self, course_id: UUID, question_id: UUID, selected_option_index: int
    ) -> QuestionDetail:
        """All checks that need no write. Raises before anything is mutated."""
        question = self.question_bank.get(question_id)

        if not isinstance(selected_option_index, int) or isinstance(selected_option_index, bool):
            raise ValidationError("selected_option_index must be an integer")
        if not 0 <= selected_option_index < len(question.options):
            raise ValidationError(
                f"selected_option_index must be between 0 and {len(question.options) - 1}",
                details={
                    "selected_option_index": selected_option_index,
                    "option_count": len(question.options),
                },
            )

        if question.kc_id not in set(self.course_directory.kcs(course_id)):
            raise NotFoundError(
                "Question does not belong to this course",
                details={"question_id": str(question_id), "course_id": str(course_id)},
            )
        return question

    def _feedback(
        self,
        question: QuestionDetail,
        selected_option_index: int,
        correct: bool,
        p_before: float,
        p_after: float,
        session_id: UUID | None,
        session_completed: bool = False,
        duplicate: bool = False,
    ) -> AnswerFeedback:
        return AnswerFeedback(
            question_id=question.id,
            kc_id=question.kc_id,
            is_correct=correct,
            selected_option_index=selected_option_index,
            correct_option_index=question.correct_index,
            correct_option_text=question.options[question.correct_index],
            explanation=question.explanation_for(question.correct_index),
            p_mastery_before=p_before,
            p_mastery_after=p_after,
            is_newly_mastered=not is_mastered(p_before) and is_mastered(p_after),
            mastery_threshold=BKT_MASTERY_THRESHOLD.value,
            session_id=session_id,
            session_completed=session_completed,
            duplicate=duplicate,
        )

    def _replay(self, question: QuestionDetail, session_id: UUID) -> AnswerFeedback | None:
        """Feedback for a question already answered in this session."""
        answer = self.sessions.find_answer(session_id, question.id)
        if answer is None:
            return None
        attempt = self.attempts.get(answer.attempt_id)
        session = self.sessions.get(session_id)
        logger.info(f"Duplicate answer for question {question.id} in session {session_id}")
        return self._feedback(
            question,
            attempt.selected_option_index,
            attempt.is_correct,
            attempt.p_mastery_before,
            attempt.p_mastery_after,
            session_id,
            session_completed=session is not None and session.completed_at is not None,
            duplicate=True,
        )

    def _apply(
        self,
        user_id: UUID,
        course_id: UUID,
        question: QuestionDetail,
        selected_option_index: int,
        session_id: UUID | None,
    ) -> AnswerFeedback:
        """One transactional attempt at steps 3-7. Caller commits or rolls back."""
        if session_id is not None:
            self.sessions.check_answerable(session_id, user_id, course_id, question.id)
            replay = self._replay(question, session_id)
            if replay is not None:
                return replay

        correct = selected_option_index == question.correct_index

        record = self.store.get_or_create_for_update(user_id, course_id, question.kc_id)
        read_version = record.version
        prior = BKTState.from_record(record)

        result = update(prior, correct)
        posterior = self.store.apply_update(record, read_version, result.posterior.p_mastery, correct)

        attempt = self.attempts.append(
            user_id=user_id,
            course_id=course_id,
            question_id=question.id,
            kc_id=question.kc_id,
            selected_option_index=selected_option_index,
            is_correct=correct,
            p_mastery_before=prior.p_mastery,
            p_mastery_after=posterior.p_mastery,
            session_id=session_id,
        )

        session_completed = False
        if session_id is not None:
            session_completed = self.sessions.record_answer(
                session_id, question.id, attempt.id, correct
            )
            if session_completed:
                snapshot = self.aggregator.compute(user_id, course_id)
                self.sessions.set_pass_chance(session_id, snapshot.pass_probability)

        logger.info(
            f"Updated mastery for user {user_id}, kc {question.kc_id}: "
            f"{prior.p_mastery:.3f} -> {posterior.p_mastery:.3f} (correct={correct}"
            f"{', degenerate' if result.degenerate else ''})"
        )

        return self._feedback(
            question,
            selected_option_index,
            correct,
            prior.p_mastery,
            posterior.p_mastery,
            session_id,
            session_completed=session_completed,
        )

    def _backoff(self, attempt: int) -> None:
        delay_ms = self.retry_base_delay_ms * (2**attempt)
        time.sleep((delay_ms + random.uniform(0, self.retry_base_delay_ms)) / 1000.0)

    def submit_answer(
        self,
        *,
        user_id: UUID,
        course_id: UUID,
        question_id: UUID,
        selected_option_index: int,
        session_id: UUID | None = None,
    ) -> AnswerFeedback:
        """
        Score an answer and update mastery.

        Raises:
            NotFoundError: Unknown question, course or session
            ValidationError: Bad option index, or question/course not in the session
            SessionClosedError: Session already completed and the question unanswered
            ConcurrencyConflict / PersistenceError: Still failing after retries
        """
        question = self._validate(course_id, question_id, selected_option_index)

        attempt = 0
        while True:
            try:
                feedback = self._apply(
                    user_id, course_id, question, selected_option_index, session_id
                )
                with translate_db_errors("committing answer"):
                    self.db.commit()
                return feedback
            except IntegrityError as exc:
                # Same question answered concurrently in this session
                self.db.rollback()
                if session_id is None:
                    raise ConcurrencyConflict("Conflicting write for this answer") from exc
                try:
                    with translate_db_errors("reading session answer"):
                        replay = self._replay(question, session_id)
                finally:
                    self.db.rollback()
                if replay is None:
                    raise ConcurrencyConflict("Conflicting write for this answer") from exc
                return replay
            except EngineError as exc:
                self.db.rollback()
                if not exc.retryable or attempt >= self.max_retries:
                    raise
                logger.warning(
                    f"Retrying answer for question {question_id} "
                    f"(attempt {attempt + 1}/{self.max_retries}): {exc.message}"
                )
                self._backoff(attempt)
                attempt += 1
            except Exception:
                self.db.rollback()
                raise

"""Adaptive Session Scheduler - weakest-first question selection.

Selection:
1. KCs in scope are ranked ascending by p_mastery (absent records use the
   default prior); ties go to fewer attempts, then course creation order
2. Up to ``max_questions`` KCs are taken in that order, one question each,
   so no KC appears twice in a session
3. Per KC, questions the user attempted inside the recent window are avoided
   unless nothing else is left; the pick among candidates is uniformly random

If every KC in a non-empty scope is mastered, no questions are returned and
``all_mastered`` is set.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import timedelta
from uuid import UUID

from mastery_engine.learning_engine.bkt.core import is_mastered
from mastery_engine.learning_engine.bkt.store import AttemptLog, MasteryStore
from mastery_engine.learning_engine.config import (
    BKT_DEFAULT_P_MASTERY,
    RECENT_ATTEMPT_WINDOW_HOURS,
    SESSION_MAX_QUESTIONS,
)
from mastery_engine.learning_engine.contracts import CourseDirectory, QuestionBank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KCCandidate:
    """A KC with the mastery figures used for ranking."""

    kc_id: UUID
    position: int  # creation order within the course
    p_mastery: float
    total_attempts: int

    @property
    def sort_key(self) -> tuple[float, int, int]:
        return (self.p_mastery, self.total_attempts, self.position)


@dataclass
class SchedulePlan:
    """Scheduler output: ordered question ids, or the all-mastered outcome."""

    question_ids: list[UUID] = field(default_factory=list)
    kc_ids: list[UUID] = field(default_factory=list)
    all_mastered: bool = False
    kcs_in_scope: int = 0


class AdaptiveSessionScheduler:
    """Selects a bounded, weakest-first question sequence for one user."""

    def __init__(
        self,
        store: MasteryStore,
        attempts: AttemptLog,
        question_bank: QuestionBank,
        course_directory: CourseDirectory,
        rng: random.Random | None = None,
        max_questions: int | None = None,
        recent_window: timedelta | None = None,
    ):
        self.store = store
        self.attempts = attempts
        self.question_bank = question_bank
        self.course_directory = course_directory
        self.rng = rng or random.Random()
        self.max_questions = (
            SESSION_MAX_QUESTIONS.value if max_questions is None else max_questions
        )
        self.recent_window = (
            timedelta(hours=RECENT_ATTEMPT_WINDOW_HOURS.value)
            if recent_window is None
            else recent_window
        )

    def rank(self, user_id: UUID, course_id: UUID, kc_ids: list[UUID]) -> list[KCCandidate]:
        """Candidates for every KC in scope, weakest first."""
        records = self.store.get_many(user_id, course_id, kc_ids)
        candidates = []
        for position, kc_id in enumerate(kc_ids):
            record = records.get(kc_id)
            candidates.append(
                KCCandidate(
                    kc_id=kc_id,
                    position=position,
                    p_mastery=record.p_mastery if record else BKT_DEFAULT_P_MASTERY.value,
                    total_attempts=record.total_attempts if record else 0,
                )
            )
        return sorted(candidates, key=lambda c: c.sort_key)

    def pick_question(self, kc_id: UUID, recently_seen: set[UUID]) -> UUID | None:
        """One question for a KC, preferring ones not seen recently."""
        fresh = self.question_bank.eligible(kc_id, excluding=recently_seen)
        if fresh:
            return self.rng.choice(fresh)

        # Everything was seen recently; allow reuse
        any_question = self.question_bank.eligible(kc_id, excluding=set())
        if any_question:
            return self.rng.choice(any_question)

        return None

    def plan(self, user_id: UUID, course_id: UUID, topic_id: UUID | None = None) -> SchedulePlan:
        """
        Build the question list for a new session.

        Raises:
            NotFoundError: If the course is unknown
        """
        # De-duplicate while keeping creation order
        kc_ids = list(dict.fromkeys(self.course_directory.kcs(course_id, topic_id)))
        if not kc_ids:
            logger.warning(f"No knowledge components in scope for course {course_id}")
            return SchedulePlan()

        candidates = self.rank(user_id, course_id, kc_ids)
        unmastered = [c for c in candidates if not is_mastered(c.p_mastery)]

        if not unmastered:
            logger.info(
                f"All {len(candidates)} KCs mastered for user {user_id}, course {course_id}"
            )
            return SchedulePlan(all_mastered=True, kcs_in_scope=len(candidates))

        recently_seen = self.attempts.recently_seen(user_id, self.recent_window)

        plan = SchedulePlan(kcs_in_scope=len(candidates))
        for candidate in candidates:
            if len(plan.question_ids) >= self.max_questions:
                break
            question_id = self.pick_question(candidate.kc_id, recently_seen)
            if question_id is None:
                logger.debug(f"KC {candidate.kc_id} has no questions; skipping")
                continue
            plan.question_ids.append(question_id)
            plan.kc_ids.append(candidate.kc_id)

        logger.info(
            f"Scheduled {len(plan.question_ids)} questions for user {user_id}, "
            f"course {course_id} ({len(unmastered)} unmastered of {len(candidates)} KCs, "
            f"{len(recently_seen)} recently seen)"
        )
        return plan

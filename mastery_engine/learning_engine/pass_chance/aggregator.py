"""
Pass Chance - Poisson-binomial aggregation of per-KC expected correctness.

A hypothetical assessment asks one question per attempted KC. Each answer is
an independent Bernoulli trial with success probability

    p_eff = p_mastery * (1 - p_slip) + (1 - p_mastery) * p_guess

and the pass probability is P(correct_count / K >= target_grade).
"""

import logging
import math
from typing import Sequence
from uuid import UUID

import numpy as np

from mastery_engine.learning_engine.bkt.core import BKTState, expected_correctness
from mastery_engine.learning_engine.bkt.store import MasteryStore
from mastery_engine.learning_engine.contracts import CourseDirectory, PassChanceResult

logger = logging.getLogger(__name__)

# Guards c / K >= target against float noise (e.g. 0.07 * 100 = 7.000000000000001)
GRADE_TOLERANCE = 1e-9


def poisson_binomial_pmf(probabilities: Sequence[float]) -> np.ndarray:
    """
    Distribution of the number of successes over independent, non-identical trials.

    dp[i][k] = dp[i-1][k] * (1 - p_i) + dp[i-1][k-1] * p_i, dp[0][0] = 1.
    Only the previous row is kept. O(K^2) time.

    Returns:
        Array of length K + 1 where entry c is P(total = c)
    """
    dp = np.zeros(len(probabilities) + 1, dtype=float)
    dp[0] = 1.0

    for i, p in enumerate(probabilities, start=1):
        p = min(1.0, max(0.0, float(p)))
        nxt = dp[: i + 1] * (1.0 - p)
        nxt[1:] += dp[:i] * p
        dp[: i + 1] = nxt

    return dp


def clamp_target_grade(target_grade: float) -> float:
    return min(1.0, max(0.0, float(target_grade)))


def pass_probability(probabilities: Sequence[float], target_grade: float) -> float | None:
    """
    P(successes / K >= target_grade), or None when there are no trials.

    A target of 0 always passes.
    """
    k = len(probabilities)
    if k == 0:
        return None

    target = clamp_target_grade(target_grade)
    if target <= 0.0:
        return 1.0

    min_correct = max(0, math.ceil(target * k - GRADE_TOLERANCE))
    pmf = poisson_binomial_pmf(probabilities)
    total = float(pmf[min_correct:].sum())
    return min(1.0, max(0.0, total))


class PassChanceAggregator:
    """Pass-probability estimate for a user's course from their mastery snapshot."""

    def __init__(self, store: MasteryStore, course_directory: CourseDirectory):
        self.store = store
        self.course_directory = course_directory

    def compute(
        self,
        user_id: UUID,
        course_id: UUID,
        target_grade: float | None = None,
    ) -> PassChanceResult:
        """
        Estimate the chance of meeting ``target_grade`` (course target if omitted).

        Only KCs with a mastery record take part; with none the result is
        undetermined.
        """
        if target_grade is None:
            target_grade = self.course_directory.target_grade(course_id)
        target = clamp_target_grade(target_grade)

        kc_ids = self.course_directory.kcs(course_id)
        records = self.store.get_many(user_id, course_id, kc_ids)
        # Course order keeps the float summation deterministic
        p_effs = [
            expected_correctness(BKTState.from_record(records[kc_id]))
            for kc_id in kc_ids
            if kc_id in records
        ]

        probability = pass_probability(p_effs, target)

        logger.debug(
            f"Pass chance for user {user_id}, course {course_id}: "
            f"{probability} over {len(p_effs)} KCs (target={target:.2f})"
        )

        return PassChanceResult(
            course_id=course_id,
            pass_probability=probability,
            target_grade=target,
            kc_count=len(p_effs),
        )

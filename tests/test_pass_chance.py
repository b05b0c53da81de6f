"""Tests for the Poisson-binomial pass-chance aggregation."""

import math
from uuid import uuid4

import numpy as np
import pytest

from mastery_engine.core.exceptions import NotFoundError
from mastery_engine.learning_engine.bkt.store import MasteryStore
from mastery_engine.learning_engine.catalog import SqlCourseDirectory
from mastery_engine.learning_engine.pass_chance.aggregator import (
    PassChanceAggregator,
    pass_probability,
    poisson_binomial_pmf,
)
from tests.helpers.seed import set_mastery


class TestPoissonBinomial:
    def test_pmf_two_trials(self):
        pmf = poisson_binomial_pmf([0.8, 0.6])
        np.testing.assert_allclose(pmf, [0.08, 0.44, 0.48])

    def test_pmf_sums_to_one(self):
        pmf = poisson_binomial_pmf([0.1, 0.5, 0.9, 0.33, 0.71])
        assert pmf.sum() == pytest.approx(1.0)
        assert len(pmf) == 6

    def test_pmf_matches_binomial_for_equal_trials(self):
        pmf = poisson_binomial_pmf([0.5] * 4)
        np.testing.assert_allclose(pmf, np.array([1, 4, 6, 4, 1]) / 16)


class TestPassProbability:
    def test_full_marks_required(self):
        assert pass_probability([0.8, 0.6], 1.0) == pytest.approx(0.48)

    def test_half_marks_required(self):
        assert pass_probability([0.8, 0.6], 0.5) == pytest.approx(0.92)

    def test_no_trials_is_undetermined(self):
        assert pass_probability([], 0.7) is None

    def test_zero_target_always_passes(self):
        assert pass_probability([0.0, 0.0], 0.0) == 1.0

    def test_exact_boundary_passes(self):
        # Exactly 7 of 10 correct meets a 0.7 target
        result = pass_probability([0.5] * 10, 0.7)
        expected = sum(math.comb(10, c) for c in range(7, 11)) / 2**10
        assert result == pytest.approx(expected)

    def test_target_is_clamped(self):
        assert pass_probability([0.8, 0.6], 1.5) == pytest.approx(0.48)


class TestPassChanceAggregator:
    @pytest.fixture
    def aggregator(self, db, clock):
        return PassChanceAggregator(MasteryStore(db, clock), SqlCourseDirectory(db))

    def test_undetermined_without_records(self, db, course, aggregator):
        result = aggregator.compute(uuid4(), course.course_id)

        assert result.undetermined
        assert result.pass_probability is None
        assert result.kc_count == 0
        assert result.target_grade == pytest.approx(0.7)

    def test_only_attempted_kcs_count(self, db, course, aggregator):
        user_id = uuid4()
        kc_a, kc_b, _ = course.kc_ids
        set_mastery(db, user_id, course.course_id, kc_a, p_mastery=1.0, p_slip=0.2)
        set_mastery(db, user_id, course.course_id, kc_b, p_mastery=1.0, p_slip=0.4)
        db.commit()

        full = aggregator.compute(user_id, course.course_id, target_grade=1.0)
        half = aggregator.compute(user_id, course.course_id, target_grade=0.5)

        assert full.kc_count == 2
        assert full.pass_probability == pytest.approx(0.48)
        assert half.pass_probability == pytest.approx(0.92)

    def test_course_target_grade_is_default(self, db, course, aggregator):
        user_id = uuid4()
        set_mastery(db, user_id, course.course_id, course.kc_ids[0], p_mastery=1.0, p_slip=0.2)
        db.commit()

        result = aggregator.compute(user_id, course.course_id)
        # K=1, target 0.7 -> needs the single answer right
        assert result.pass_probability == pytest.approx(0.8)

    def test_other_users_are_ignored(self, db, course, aggregator):
        set_mastery(db, uuid4(), course.course_id, course.kc_ids[0], p_mastery=0.9)
        db.commit()

        assert aggregator.compute(uuid4(), course.course_id).undetermined

    def test_unknown_course(self, aggregator):
        with pytest.raises(NotFoundError):
            aggregator.compute(uuid4(), uuid4())

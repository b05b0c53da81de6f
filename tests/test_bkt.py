"""Tests for BKT (Bayesian Knowledge Tracing) implementation."""

import math

import pytest

from mastery_engine.core.exceptions import ValidationError
from mastery_engine.learning_engine.bkt.core import (
    BKTState,
    apply_learning_transition,
    clamp_probability,
    expected_correctness,
    is_mastered,
    posterior_given_obs,
    predict_correct,
    update,
    validate_state,
)

DEFAULT_PRIOR = BKTState(p_mastery=0.3, p_learn=0.1, p_slip=0.1, p_guess=0.25)


class TestBKTCore:
    """Test core BKT math functions."""

    def test_clamp_probability(self):
        assert clamp_probability(0.5) == 0.5
        assert clamp_probability(-0.1) == 0.0
        assert clamp_probability(1.5) == 1.0

    def test_predict_correct(self):
        # P(Correct) = 0.8 * 0.9 + 0.2 * 0.2 = 0.76
        assert predict_correct(p_L=0.8, p_S=0.1, p_G=0.2) == pytest.approx(0.76)
        assert predict_correct(p_L=0.0, p_S=0.1, p_G=0.2) == pytest.approx(0.2)
        assert predict_correct(p_L=1.0, p_S=0.1, p_G=0.2) == pytest.approx(0.9)

    def test_posterior_given_correct(self):
        # 0.5 * 0.9 / (0.45 + 0.5 * 0.2) = 0.45 / 0.55
        posterior = posterior_given_obs(p_L=0.5, correct=True, p_S=0.1, p_G=0.2)
        assert posterior == pytest.approx(0.45 / 0.55)

    def test_posterior_given_wrong(self):
        # 0.5 * 0.1 / (0.05 + 0.5 * 0.8) = 0.05 / 0.45
        posterior = posterior_given_obs(p_L=0.5, correct=False, p_S=0.1, p_G=0.2)
        assert posterior == pytest.approx(0.05 / 0.45)

    def test_posterior_zero_denominator(self):
        # Never mastered and guessing impossible: a correct answer has zero likelihood
        assert posterior_given_obs(p_L=0.0, correct=True, p_S=0.1, p_G=0.0) is None

    def test_learning_transition(self):
        assert apply_learning_transition(0.5, 0.2) == pytest.approx(0.6)
        assert apply_learning_transition(1.0, 0.2) == pytest.approx(1.0)
        assert apply_learning_transition(0.4, 0.0) == pytest.approx(0.4)


class TestBKTUpdate:
    """Full update: evidence step plus learning transition."""

    def test_correct_answer_reference_values(self):
        result = update(DEFAULT_PRIOR, correct=True)

        assert result.p_evidence == pytest.approx(0.6067416, abs=1e-6)
        assert result.posterior.p_mastery == pytest.approx(0.6460674, abs=1e-6)
        assert not result.degenerate

    def test_incorrect_answer_reference_values(self):
        result = update(DEFAULT_PRIOR, correct=False)

        assert result.p_evidence == pytest.approx(0.0540541, abs=1e-6)
        assert result.posterior.p_mastery == pytest.approx(0.1486486, abs=1e-6)

    def test_parameters_pass_through(self):
        result = update(DEFAULT_PRIOR, correct=True)
        assert result.posterior.p_learn == DEFAULT_PRIOR.p_learn
        assert result.posterior.p_slip == DEFAULT_PRIOR.p_slip
        assert result.posterior.p_guess == DEFAULT_PRIOR.p_guess

    def test_degenerate_update_keeps_prior(self):
        prior = BKTState(p_mastery=0.0, p_learn=0.3, p_slip=0.1, p_guess=0.0)
        result = update(prior, correct=True)

        assert result.degenerate
        assert result.posterior == prior
        assert result.p_evidence is None

    def test_newly_mastered_flag(self):
        prior = BKTState(p_mastery=0.8, p_learn=0.1, p_slip=0.1, p_guess=0.25)
        assert update(prior, correct=True).is_newly_mastered

        already = BKTState(p_mastery=0.9, p_learn=0.1, p_slip=0.1, p_guess=0.25)
        assert not update(already, correct=True).is_newly_mastered

    def test_poor_parameters_are_not_corrected(self):
        # 1 - slip < guess: a wrong answer is stronger evidence of mastery
        prior = BKTState(p_mastery=0.5, p_learn=0.0, p_slip=0.7, p_guess=0.6)
        right = update(prior, correct=True).posterior.p_mastery
        wrong = update(prior, correct=False).posterior.p_mastery
        assert wrong > right

    @pytest.mark.parametrize(
        "field,value",
        [("p_mastery", 1.2), ("p_slip", -0.1), ("p_guess", math.nan), ("p_learn", 2.0)],
    )
    def test_invalid_state_rejected(self, field, value):
        params = {"p_mastery": 0.3, "p_learn": 0.1, "p_slip": 0.1, "p_guess": 0.25, field: value}
        with pytest.raises(ValidationError) as exc_info:
            update(BKTState(**params), correct=True)
        assert exc_info.value.details["field"] == field

    def test_validate_state_accepts_bounds(self):
        validate_state(BKTState(p_mastery=0.0, p_learn=1.0, p_slip=0.0, p_guess=1.0))


class TestMasteryHelpers:
    def test_threshold_is_inclusive(self):
        assert is_mastered(0.85)
        assert not is_mastered(0.8499)

    def test_expected_correctness(self):
        state = BKTState(p_mastery=1.0, p_learn=0.1, p_slip=0.2, p_guess=0.25)
        assert expected_correctness(state) == pytest.approx(0.8)

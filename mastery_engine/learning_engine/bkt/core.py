"""
BKT Core Math - Pure functions for Bayesian Knowledge Tracing.

Implements the standard 4-parameter BKT model:
- p_mastery: Current probability of mastery
- p_learn: Probability of learning (transition)
- p_slip: Probability of slip (learned but answers wrong)
- p_guess: Probability of guess (unlearned but answers correct)

An update is two steps: Bayes' rule on the observation, then the learning
transition. p_learn, p_slip and p_guess are fixed per KC and pass through
unchanged.
"""

import math
from dataclasses import dataclass, replace

from mastery_engine.core.exceptions import ValidationError
from mastery_engine.learning_engine.config import BKT_MASTERY_THRESHOLD, BKT_STABILITY_EPSILON


@dataclass(frozen=True)
class BKTState:
    """Belief and parameters for one (user, course, KC)."""

    p_mastery: float
    p_learn: float
    p_slip: float
    p_guess: float

    @classmethod
    def from_record(cls, record) -> "BKTState":
        return cls(
            p_mastery=record.p_mastery,
            p_learn=record.p_learn,
            p_slip=record.p_slip,
            p_guess=record.p_guess,
        )


@dataclass(frozen=True)
class BKTUpdate:
    """Result of one update, with the intermediate evidence-step value."""

    prior: BKTState
    posterior: BKTState
    correct: bool
    p_correct_predicted: float
    p_evidence: float | None  # None when the update was degenerate

    @property
    def degenerate(self) -> bool:
        return self.p_evidence is None

    @property
    def is_newly_mastered(self) -> bool:
        return not is_mastered(self.prior.p_mastery) and is_mastered(self.posterior.p_mastery)


def clamp_probability(p: float) -> float:
    """Clamp a probability value to [0, 1]."""
    return max(0.0, min(1.0, p))


def validate_state(state: BKTState) -> None:
    """
    Reject parameters that are not probabilities.

    Raises:
        ValidationError: If any field is NaN or outside [0, 1]
    """
    for name in ("p_mastery", "p_learn", "p_slip", "p_guess"):
        value = getattr(state, name)
        if value is None or math.isnan(value) or not (0.0 <= value <= 1.0):
            raise ValidationError(
                f"{name} must be a probability in [0, 1], got {value}",
                details={"field": name, "value": value},
            )


def predict_correct(p_L: float, p_S: float, p_G: float) -> float:
    """
    Predict probability of correct answer given current mastery state.

    Formula:
        P(Correct) = P(L) * (1 - P(S)) + (1 - P(L)) * P(G)

    Args:
        p_L: Current probability of mastery
        p_S: Probability of slip (learned but wrong)
        p_G: Probability of guess (unlearned but correct)

    Returns:
        Probability of correct answer
    """
    return clamp_probability(p_L * (1.0 - p_S) + (1.0 - p_L) * p_G)


def posterior_given_obs(p_L: float, correct: bool, p_S: float, p_G: float) -> float | None:
    """
    Update mastery probability given an observation (Bayesian update).

    Formulas:
        P(L | Correct) = [P(L) * (1 - P(S))] / [P(L) * (1 - P(S)) + (1 - P(L)) * P(G)]
        P(L | Wrong)   = [P(L) * P(S)] / [P(L) * P(S) + (1 - P(L)) * (1 - P(G))]

    Args:
        p_L: Prior probability of mastery
        correct: Whether the answer was correct
        p_S: Probability of slip
        p_G: Probability of guess

    Returns:
        Posterior probability of mastery, or None when the denominator is zero
    """
    if correct:
        numerator = p_L * (1.0 - p_S)
        denominator = numerator + (1.0 - p_L) * p_G
    else:
        numerator = p_L * p_S
        denominator = numerator + (1.0 - p_L) * (1.0 - p_G)

    if denominator < BKT_STABILITY_EPSILON.value:
        return None

    return clamp_probability(numerator / denominator)


def apply_learning_transition(p_L_given_obs: float, p_T: float) -> float:
    """
    Apply learning transition to get next mastery state.

    Formula:
        P(L_next) = P(L | obs) + (1 - P(L | obs)) * P(T)

    Args:
        p_L_given_obs: Posterior probability after observation
        p_T: Probability of learning (transition)

    Returns:
        Updated probability of mastery after learning transition
    """
    return clamp_probability(p_L_given_obs + (1.0 - p_L_given_obs) * p_T)


def update(prior: BKTState, correct: bool) -> BKTUpdate:
    """
    Complete BKT update: observation + learning transition.

    When the evidence denominator is zero the prior mastery is returned
    unchanged. That is defined behavior, not an error.

    Note: with badly chosen slip/guess (1 - p_slip < p_guess) a wrong answer
    can raise mastery more than a right one. The model is applied as is.

    Raises:
        ValidationError: If the prior holds a non-probability
    """
    validate_state(prior)

    p_correct_predicted = predict_correct(prior.p_mastery, prior.p_slip, prior.p_guess)
    p_evidence = posterior_given_obs(prior.p_mastery, correct, prior.p_slip, prior.p_guess)

    if p_evidence is None:
        return BKTUpdate(
            prior=prior,
            posterior=prior,
            correct=correct,
            p_correct_predicted=p_correct_predicted,
            p_evidence=None,
        )

    p_next = apply_learning_transition(p_evidence, prior.p_learn)

    return BKTUpdate(
        prior=prior,
        posterior=replace(prior, p_mastery=p_next),
        correct=correct,
        p_correct_predicted=p_correct_predicted,
        p_evidence=p_evidence,
    )


def is_mastered(p_mastery: float) -> bool:
    """Whether a mastery probability meets the mastery threshold."""
    return p_mastery >= BKT_MASTERY_THRESHOLD.value


def expected_correctness(state: BKTState) -> float:
    """Probability of a correct answer on one fresh question for this KC."""
    return predict_correct(state.p_mastery, state.p_slip, state.p_guess)

"""
Learning Engine Configuration - Central Constants Registry.

All constants used by the mastery algorithms are defined here with provenance.
No magic numbers in algorithm implementations.

Each constant includes:
- value: The actual constant value
- source: Citation (paper, schema default, product decision)
- notes: Rationale and context
- validated: Whether the value has been validated against source
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SourcedValue:
    """
    A constant value with documented provenance.

    All learning algorithm constants must use this type to enforce documentation.
    """

    value: Any
    source: str
    notes: str = ""
    validated: bool = False

    def __post_init__(self):
        if not self.source or self.source.strip() == "":
            raise ValueError(f"SourcedValue must have non-empty source. Got: {self.source}")


# =============================================================================
# BKT (Bayesian Knowledge Tracing) Constants
# =============================================================================

# Default parameters for a lazily created mastery record.
# Source: Corbett & Anderson (1995) standard 4-parameter model; values match the
# bkt_mastery column defaults.
BKT_DEFAULT_P_MASTERY = SourcedValue(
    value=0.3,
    source="bkt_mastery schema default (p_mastery)",
    notes="Initial belief that the learner already knows the KC (L0).",
    validated=True,
)

BKT_DEFAULT_P_LEARN = SourcedValue(
    value=0.1,
    source="bkt_mastery schema default (p_learn)",
    notes="Probability of moving not-mastered -> mastered after one practice opportunity (T).",
    validated=True,
)

BKT_DEFAULT_P_SLIP = SourcedValue(
    value=0.1,
    source="bkt_mastery schema default (p_slip)",
    notes="Probability of answering wrong despite mastery (S).",
    validated=True,
)

BKT_DEFAULT_P_GUESS = SourcedValue(
    value=0.25,
    source="bkt_mastery schema default (p_guess)",
    notes="Probability of answering right without mastery (G). 1/4 matches four-option MCQs.",
    validated=True,
)

BKT_MASTERY_THRESHOLD = SourcedValue(
    value=0.85,
    source="Product decision: mastery cutoff used by study and test flows",
    notes="A KC counts as mastered once p_mastery >= threshold.",
    validated=True,
)

BKT_STABILITY_EPSILON = SourcedValue(
    value=1e-12,
    source="Numerical stability: evidence denominator treated as zero below this",
    notes="Degenerate slip/guess at p_mastery in {0, 1}; the update returns the prior unchanged.",
    validated=False,
)

# =============================================================================
# Adaptive Session Constants
# =============================================================================

SESSION_MAX_QUESTIONS = SourcedValue(
    value=10,
    source="MASTERY_CONFIG.MAX_QUESTIONS_PER_SESSION in the study client",
    notes="Upper bound on questions per session; one question per KC.",
    validated=True,
)

RECENT_ATTEMPT_WINDOW_HOURS = SourcedValue(
    value=24,
    source="Product decision: anti-repeat window for session question picks",
    notes="Questions attempted inside this window are avoided unless no alternative exists.",
    validated=True,
)


def default_bkt_params() -> dict[str, float]:
    """Default parameters for a new mastery record."""
    return {
        "p_mastery": BKT_DEFAULT_P_MASTERY.value,
        "p_learn": BKT_DEFAULT_P_LEARN.value,
        "p_slip": BKT_DEFAULT_P_SLIP.value,
        "p_guess": BKT_DEFAULT_P_GUESS.value,
    }

"""
BKT (Bayesian Knowledge Tracing) Module.

Implements the 4-parameter BKT model for tracking learner mastery:
- p_mastery: probability of mastery
- p_learn: probability of learning per practice opportunity
- p_slip: probability of a wrong answer despite mastery
- p_guess: probability of a right answer without mastery
"""

from mastery_engine.learning_engine.bkt.core import BKTState, BKTUpdate, update

__all__ = ["BKTState", "BKTUpdate", "update"]

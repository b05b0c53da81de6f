"""Database models."""

# Import all models here so metadata.create_all sees them
from mastery_engine.models.bkt import Attempt, MasteryRecord
from mastery_engine.models.catalog import Course, KnowledgeComponent, Question
from mastery_engine.models.session import SessionStatus, TestSession, TestSessionAnswer

__all__ = [
    "Course",
    "KnowledgeComponent",
    "Question",
    "MasteryRecord",
    "Attempt",
    "SessionStatus",
    "TestSession",
    "TestSessionAnswer",
]

"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from mastery_engine.db.session import get_db
from mastery_engine.learning_engine.contracts import Clock, SystemClock
from mastery_engine.services.adaptive_test import AdaptiveTestService


def get_clock() -> Clock:
    """Clock used for timestamps and the recent-attempt window."""
    return SystemClock()


def get_test_service(
    db: Annotated[Session, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> AdaptiveTestService:
    return AdaptiveTestService(db, clock=clock)

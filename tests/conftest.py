"""Pytest configuration and shared fixtures."""

import os
import tempfile
from collections.abc import Generator

# Point the app at SQLite before any mastery_engine module reads settings
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(tempfile.gettempdir(), 'mastery_engine_test.db')}"
os.environ["ENV"] = "test"

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from mastery_engine.db.base import Base  # noqa: E402
from mastery_engine.db.engine import create_db_engine  # noqa: E402
from tests.helpers.seed import CourseFixture, FrozenClock, seed_course  # noqa: E402


@pytest.fixture(scope="function")
def engine(tmp_path) -> Generator[Engine, None, None]:
    """Fresh SQLite file database per test."""
    test_engine = create_db_engine(f"sqlite:///{tmp_path / 'engine.db'}", timeout_ms=30000)
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def course(db: Session) -> CourseFixture:
    """Course with three KCs, two questions each."""
    fixture = seed_course(db, kc_count=3, questions_per_kc=2)
    db.commit()
    return fixture

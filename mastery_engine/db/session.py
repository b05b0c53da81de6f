"""Database session management."""

from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from mastery_engine.db.engine import engine

# Objects stay readable after commit; services re-read with populate_existing
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session. Anything left uncommitted is rolled back."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

"""Database base and model registry."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


# Import all models here so metadata.create_all sees them
from mastery_engine import models  # noqa: E402, F401

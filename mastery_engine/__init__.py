"""Mastery tracking and adaptive assessment engine."""

__version__ = "1.0.0"

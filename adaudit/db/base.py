"""Declarative base shared by all models."""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this clock."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

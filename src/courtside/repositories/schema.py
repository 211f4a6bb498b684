"""Schema bootstrap."""

from __future__ import annotations

from sqlalchemy.engine import Engine

from courtside.models import Base


def ensure_schema(engine: Engine) -> None:
    """Create all engine tables and their indexes if they do not exist."""
    Base.metadata.create_all(bind=engine)

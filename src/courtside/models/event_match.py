"""event_matches table model (matchmaking proposals)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Index, Integer, String, false
from sqlalchemy.orm import Mapped, mapped_column

from courtside.domain.common import MatchStatus
from courtside.models.base import Base
from courtside.models.mixins import TimestampMixin


class EventMatch(TimestampMixin, Base):
    """One proposed pairing inside an event, optionally pinned and placed on a court."""

    __tablename__ = "event_matches"
    __table_args__ = (
        Index("idx_event_matches_event_status", "event_id", "status"),
        Index("idx_event_matches_court", "event_id", "court_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    player1_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player2_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pair_key: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*[status.value for status in MatchStatus], name="event_match_status", native_enum=False),
        nullable=False,
        default=MatchStatus.PROPOSED.value,
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    court_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scheduled_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    estimated_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    skill_difference: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_quality: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

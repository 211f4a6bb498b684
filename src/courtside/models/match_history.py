"""match_history table model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from courtside.domain.common import MatchResult
from courtside.models.base import Base
from courtside.models.mixins import CreatedAtMixin, JSONDocument


class MatchHistory(CreatedAtMixin, Base):
    """Append-only record of one head-to-head result with MMR snapshots."""

    __tablename__ = "match_history"
    __table_args__ = (
        UniqueConstraint("event_id", "pair_key", name="uq_match_history_event_pair"),
        Index("idx_match_history_player1", "player1_id", "sport_id"),
        Index("idx_match_history_player2", "player2_id", "sport_id"),
        Index("idx_match_history_match_date", "match_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    sport_id: Mapped[int] = mapped_column(ForeignKey("sports.id"), nullable=False)
    player1_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player2_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pair_key: Mapped[str] = mapped_column(String(64), nullable=False)
    result: Mapped[str] = mapped_column(
        Enum(*[result.value for result in MatchResult], name="match_result", native_enum=False),
        nullable=False,
    )
    match_score: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)
    player1_mmr_before: Mapped[int] = mapped_column(Integer, nullable=False)
    player1_mmr_after: Mapped[int] = mapped_column(Integer, nullable=False)
    player2_mmr_before: Mapped[int] = mapped_column(Integer, nullable=False)
    player2_mmr_after: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_by_host_id: Mapped[int] = mapped_column(Integer, nullable=False)
    event_match_id: Mapped[int | None] = mapped_column(ForeignKey("event_matches.id"), nullable=True)
    match_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    match_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

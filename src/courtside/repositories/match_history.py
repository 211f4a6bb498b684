"""Persistence helpers for the append-only match_history table."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from courtside.models import MatchHistory


def find_by_pair(session: Session, event_id: int, key: str) -> MatchHistory | None:
    statement = select(MatchHistory).where(
        MatchHistory.event_id == event_id,
        MatchHistory.pair_key == key,
    )
    return session.execute(statement).scalar_one_or_none()


def recorded_pair_keys(session: Session, event_id: int) -> set[str]:
    statement = select(MatchHistory.pair_key).where(MatchHistory.event_id == event_id)
    return set(session.execute(statement).scalars().all())


def insert_match(
    session: Session,
    *,
    event_id: int,
    sport_id: int,
    player1_id: int,
    player2_id: int,
    key: str,
    result: str,
    match_score: dict[str, Any],
    player1_mmr_before: int,
    player1_mmr_after: int,
    player2_mmr_before: int,
    player2_mmr_after: int,
    recorded_by_host_id: int,
    match_date: datetime,
    event_match_id: int | None = None,
    match_notes: str | None = None,
) -> MatchHistory:
    row = MatchHistory(
        event_id=event_id,
        sport_id=sport_id,
        player1_id=player1_id,
        player2_id=player2_id,
        pair_key=key,
        result=result,
        match_score=match_score,
        player1_mmr_before=player1_mmr_before,
        player1_mmr_after=player1_mmr_after,
        player2_mmr_before=player2_mmr_before,
        player2_mmr_after=player2_mmr_after,
        recorded_by_host_id=recorded_by_host_id,
        event_match_id=event_match_id,
        match_notes=match_notes,
        match_date=match_date,
    )
    session.add(row)
    return row


def list_for_user(
    session: Session,
    user_id: int,
    *,
    sport_id: int | None = None,
    limit: int | None = None,
) -> Sequence[MatchHistory]:
    """Matches involving ``user_id``, newest first."""
    statement = select(MatchHistory).where(
        or_(MatchHistory.player1_id == user_id, MatchHistory.player2_id == user_id)
    )
    if sport_id is not None:
        statement = statement.where(MatchHistory.sport_id == sport_id)
    statement = statement.order_by(MatchHistory.match_date.desc(), MatchHistory.id.desc())
    if limit is not None:
        statement = statement.limit(limit)
    return session.execute(statement).scalars().all()


__all__ = ["find_by_pair", "insert_match", "list_for_user", "recorded_pair_keys"]

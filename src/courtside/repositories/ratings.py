"""Persistence helpers for user_sport_ratings."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from courtside.models import UserSportRating


def get_rating_row(
    session: Session,
    user_id: int,
    sport_id: int,
    *,
    for_update: bool = False,
) -> UserSportRating | None:
    statement = select(UserSportRating).where(
        UserSportRating.user_id == user_id,
        UserSportRating.sport_id == sport_id,
    )
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalar_one_or_none()


def fetch_mmr_by_user(session: Session, sport_id: int, user_ids: list[int]) -> dict[int, int]:
    """Stored MMR for the given users; users without a row are absent."""
    if not user_ids:
        return {}
    statement = select(UserSportRating.user_id, UserSportRating.mmr).where(
        UserSportRating.sport_id == sport_id,
        UserSportRating.user_id.in_(user_ids),
    )
    return {int(user_id): int(mmr) for user_id, mmr in session.execute(statement).all()}


def add_rating_row(session: Session, *, user_id: int, sport_id: int, mmr: int, level: int) -> UserSportRating:
    row = UserSportRating(
        user_id=user_id,
        sport_id=sport_id,
        mmr=mmr,
        level=level,
        matches_played=0,
        wins=0,
        losses=0,
        draws=0,
        win_rate=0.0,
    )
    session.add(row)
    return row


__all__ = ["add_rating_row", "fetch_mmr_by_user", "get_rating_row"]

"""Persistence helpers for event_matches (matchmaking proposals)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from courtside.domain.common import ACTIVE_MATCH_STATUSES, OPEN_MATCH_STATUSES, MatchStatus
from courtside.models import EventMatch

_ACTIVE_VALUES = [status.value for status in ACTIVE_MATCH_STATUSES]
_OPEN_VALUES = [status.value for status in OPEN_MATCH_STATUSES]


def get_match(session: Session, match_id: int, *, for_update: bool = False) -> EventMatch | None:
    statement = select(EventMatch).where(EventMatch.id == match_id)
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalar_one_or_none()


def list_matches(
    session: Session,
    event_id: int,
    *,
    active_only: bool = True,
    for_update: bool = False,
) -> Sequence[EventMatch]:
    statement = select(EventMatch).where(EventMatch.event_id == event_id)
    if active_only:
        statement = statement.where(EventMatch.status.in_(_ACTIVE_VALUES))
    statement = statement.order_by(EventMatch.id)
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalars().all()


def find_open_for_pair(session: Session, event_id: int, key: str) -> EventMatch | None:
    """The proposed, running or ended match of a pair that still awaits its result."""
    statement = (
        select(EventMatch)
        .where(
            EventMatch.event_id == event_id,
            EventMatch.pair_key == key,
            EventMatch.status.in_(_OPEN_VALUES),
        )
        .order_by(EventMatch.id)
        .limit(1)
    )
    return session.execute(statement).scalar_one_or_none()


def find_active_for_player(
    session: Session,
    event_id: int,
    user_id: int,
    *,
    exclude_match_id: int | None = None,
) -> EventMatch | None:
    statement = select(EventMatch).where(
        EventMatch.event_id == event_id,
        EventMatch.status.in_(_ACTIVE_VALUES),
        or_(EventMatch.player1_id == user_id, EventMatch.player2_id == user_id),
    )
    if exclude_match_id is not None:
        statement = statement.where(EventMatch.id != exclude_match_id)
    return session.execute(statement.order_by(EventMatch.id).limit(1)).scalar_one_or_none()


def list_active_on_court(
    session: Session,
    event_id: int,
    court_number: int,
    *,
    exclude_match_id: int | None = None,
) -> Sequence[EventMatch]:
    statement = select(EventMatch).where(
        EventMatch.event_id == event_id,
        EventMatch.court_number == court_number,
        EventMatch.status.in_(_ACTIVE_VALUES),
    )
    if exclude_match_id is not None:
        statement = statement.where(EventMatch.id != exclude_match_id)
    return session.execute(statement.order_by(EventMatch.id)).scalars().all()


def list_pair_keys(session: Session, event_id: int, statuses: Iterable[MatchStatus]) -> set[str]:
    statement = select(EventMatch.pair_key).where(
        EventMatch.event_id == event_id,
        EventMatch.status.in_([status.value for status in statuses]),
    )
    return set(session.execute(statement).scalars().all())


def add_match(
    session: Session,
    *,
    event_id: int,
    player1_id: int,
    player2_id: int,
    key: str,
    skill_difference: int,
    match_quality: float,
    estimated_duration_minutes: int,
) -> EventMatch:
    row = EventMatch(
        event_id=event_id,
        player1_id=player1_id,
        player2_id=player2_id,
        pair_key=key,
        status=MatchStatus.PROPOSED.value,
        is_locked=False,
        skill_difference=skill_difference,
        match_quality=match_quality,
        estimated_duration_minutes=estimated_duration_minutes,
    )
    session.add(row)
    return row


__all__ = [
    "add_match",
    "find_active_for_player",
    "find_open_for_pair",
    "get_match",
    "list_active_on_court",
    "list_matches",
    "list_pair_keys",
]

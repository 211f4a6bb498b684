"""Persistence helpers for sports, events and participants."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from courtside.domain.common import ParticipantStatus
from courtside.errors import NotFoundError
from courtside.models import Event, EventParticipant, Sport


def get_sport(session: Session, sport_id: int) -> Sport | None:
    return session.get(Sport, sport_id)


def get_event(session: Session, event_id: int, *, for_update: bool = False) -> Event | None:
    statement = select(Event).where(Event.id == event_id)
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalar_one_or_none()


def require_event(session: Session, event_id: int, *, for_update: bool = False) -> Event:
    event = get_event(session, event_id, for_update=for_update)
    if event is None:
        raise NotFoundError("event", event_id)
    return event


def get_participant(
    session: Session,
    event_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> EventParticipant | None:
    statement = select(EventParticipant).where(
        EventParticipant.event_id == event_id,
        EventParticipant.user_id == user_id,
    )
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalar_one_or_none()


def list_participants(
    session: Session,
    event_id: int,
    statuses: Iterable[ParticipantStatus] | None = None,
) -> Sequence[EventParticipant]:
    """Participants of one event in registration order."""
    statement = select(EventParticipant).where(EventParticipant.event_id == event_id)
    if statuses is not None:
        statement = statement.where(EventParticipant.status.in_([status.value for status in statuses]))
    statement = statement.order_by(EventParticipant.registered_at, EventParticipant.id)
    return session.execute(statement).scalars().all()


def count_joins_since(session: Session, user_id: int, since: datetime) -> int:
    """Count non-cancelled registrations made by ``user_id`` since ``since``."""
    statement = select(func.count(EventParticipant.id)).where(
        EventParticipant.user_id == user_id,
        EventParticipant.registered_at >= since,
        EventParticipant.status != ParticipantStatus.CANCELLED.value,
    )
    return int(session.scalar(statement) or 0)


__all__ = [
    "count_joins_since",
    "get_event",
    "get_participant",
    "get_sport",
    "list_participants",
    "require_event",
]

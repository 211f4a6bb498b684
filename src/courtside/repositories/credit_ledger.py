"""Persistence helpers for the append-only credit_score_logs table."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from courtside.domain.credit import CreditChangeType
from courtside.models import CreditScoreLog


def latest_entry(session: Session, user_id: int) -> CreditScoreLog | None:
    statement = (
        select(CreditScoreLog)
        .where(CreditScoreLog.user_id == user_id)
        .order_by(CreditScoreLog.sequence.desc())
        .limit(1)
    )
    return session.execute(statement).scalar_one_or_none()


def insert_entry(
    session: Session,
    *,
    user_id: int,
    sequence: int,
    change_type: CreditChangeType,
    old_score: int,
    new_score: int,
    change_amount: int,
    description: str,
    details: dict[str, Any],
    event_id: int | None = None,
    created_at: datetime | None = None,
) -> CreditScoreLog:
    row = CreditScoreLog(
        user_id=user_id,
        sequence=sequence,
        event_id=event_id,
        type=change_type.value,
        old_score=old_score,
        new_score=new_score,
        change_amount=change_amount,
        description=description,
        details=details,
    )
    if created_at is not None:
        row.created_at = created_at
    session.add(row)
    return row


def list_entries(
    session: Session,
    user_id: int,
    *,
    newest_first: bool = True,
    limit: int | None = None,
) -> Sequence[CreditScoreLog]:
    order = CreditScoreLog.sequence.desc() if newest_first else CreditScoreLog.sequence.asc()
    statement = select(CreditScoreLog).where(CreditScoreLog.user_id == user_id).order_by(order)
    if limit is not None:
        statement = statement.limit(limit)
    return session.execute(statement).scalars().all()


def has_event_entry(session: Session, user_id: int, event_id: int, change_type: CreditChangeType) -> bool:
    statement = select(func.count(CreditScoreLog.id)).where(
        CreditScoreLog.user_id == user_id,
        CreditScoreLog.event_id == event_id,
        CreditScoreLog.type == change_type.value,
    )
    return int(session.scalar(statement) or 0) > 0


def change_types_newest_first(session: Session, user_id: int) -> list[CreditChangeType]:
    statement = (
        select(CreditScoreLog.type)
        .where(CreditScoreLog.user_id == user_id)
        .order_by(CreditScoreLog.sequence.desc())
    )
    return [CreditChangeType(value) for value in session.execute(statement).scalars().all()]


def sum_changes_since(session: Session, user_id: int, since: datetime) -> int:
    """Net applied change (new - old) over entries created at or after ``since``."""
    statement = select(func.coalesce(func.sum(CreditScoreLog.new_score - CreditScoreLog.old_score), 0)).where(
        CreditScoreLog.user_id == user_id,
        CreditScoreLog.created_at >= since,
    )
    return int(session.scalar(statement) or 0)


__all__ = [
    "change_types_newest_first",
    "has_event_entry",
    "insert_entry",
    "latest_entry",
    "list_entries",
    "sum_changes_since",
]

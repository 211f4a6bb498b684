"""Append-only credit-score ledger with restriction lookup."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from courtside.db import session_scope
from courtside.domain.common import utcnow
from courtside.domain.credit import (
    CreditChangeType,
    CreditDirection,
    CreditEntry,
    CreditParameters,
    CreditStatistics,
    RestrictionSet,
    clamp_score,
    default_description,
    direction_of,
    restrictions_for,
    validate_change,
    verify_chain,
)
from courtside.errors import ConflictError, ValidationError
from courtside.models import CreditScoreLog
from courtside.repositories import credit_ledger as ledger_repo

logger = logging.getLogger(__name__)


class CreditLedger:
    """Each user's score is the ``new_score`` of their latest entry, or the default.

    Writers are serialised by the unique (user_id, sequence) constraint: a
    writer that loses the race rolls back its savepoint and retries against
    the fresh latest entry.
    """

    def __init__(self, session_factory: sessionmaker[Session], params: CreditParameters) -> None:
        self.session_factory = session_factory
        self.params = params

    def apply_adjustment(
        self,
        user_id: int,
        change_type: CreditChangeType | str,
        raw_change: int,
        *,
        metadata: dict[str, Any] | None = None,
        event_id: int | None = None,
        description: str | None = None,
        at: datetime | None = None,
        session: Session | None = None,
    ) -> CreditEntry:
        """Append one entry; the applied change is clamped into the score range."""
        change_type = CreditChangeType.parse(change_type)
        validate_change(change_type, raw_change, self.params)
        details = dict(metadata or {})
        text = description or default_description(change_type)

        with session_scope(self.session_factory, session) as active:
            for attempt in range(1, self.params.max_write_attempts + 1):
                latest = ledger_repo.latest_entry(active, user_id)
                old_score = self.params.default_score if latest is None else latest.new_score
                sequence = 1 if latest is None else latest.sequence + 1
                new_score = clamp_score(old_score + raw_change, self.params)
                try:
                    with active.begin_nested():
                        row = ledger_repo.insert_entry(
                            active,
                            user_id=user_id,
                            sequence=sequence,
                            change_type=change_type,
                            old_score=old_score,
                            new_score=new_score,
                            change_amount=new_score - old_score,
                            description=text,
                            details=details,
                            event_id=event_id,
                            created_at=at,
                        )
                        active.flush()
                except IntegrityError:
                    logger.warning(
                        "Credit write collision for user_id=%s at sequence=%s (attempt %s/%s)",
                        user_id,
                        sequence,
                        attempt,
                        self.params.max_write_attempts,
                    )
                    continue

                logger.info(
                    "Credit %s for user_id=%s: %s -> %s (%+d requested)",
                    change_type.value,
                    user_id,
                    old_score,
                    new_score,
                    raw_change,
                )
                return _to_entry(row)

        raise ConflictError(
            f"Could not append a credit entry for user_id={user_id} after "
            f"{self.params.max_write_attempts} attempts",
            "Your credit score is being updated. Please retry.",
        )

    def apply_event_adjustment(
        self,
        user_id: int,
        event_id: int,
        change_type: CreditChangeType,
        raw_change: int,
        *,
        metadata: dict[str, Any] | None = None,
        description: str | None = None,
        at: datetime | None = None,
        session: Session | None = None,
    ) -> CreditEntry | None:
        """Apply an event-triggered change at most once per user, event and type.

        Returns ``None`` when the change was already applied.
        """
        with session_scope(self.session_factory, session) as active:
            if ledger_repo.has_event_entry(active, user_id, event_id, change_type):
                logger.debug(
                    "Skipping %s for user_id=%s event_id=%s: already applied",
                    change_type.value,
                    user_id,
                    event_id,
                )
                return None
            return self.apply_adjustment(
                user_id,
                change_type,
                raw_change,
                metadata=metadata,
                event_id=event_id,
                description=description,
                at=at,
                session=active,
            )

    def current_score(self, user_id: int, *, session: Session | None = None) -> int:
        with session_scope(self.session_factory, session) as active:
            latest = ledger_repo.latest_entry(active, user_id)
            return self.params.default_score if latest is None else latest.new_score

    def history(self, user_id: int, *, limit: int | None = None) -> list[CreditEntry]:
        """Entries for ``user_id``, newest first."""
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be positive")
        with session_scope(self.session_factory) as session:
            return [_to_entry(row) for row in ledger_repo.list_entries(session, user_id, limit=limit)]

    def change_types(self, user_id: int, *, session: Session | None = None) -> list[CreditChangeType]:
        with session_scope(self.session_factory, session) as active:
            return ledger_repo.change_types_newest_first(active, user_id)

    def statistics(self, user_id: int, *, now: datetime | None = None) -> CreditStatistics:
        now = now or utcnow()
        with session_scope(self.session_factory) as session:
            rows = ledger_repo.list_entries(session, user_id)
            last_30_days = ledger_repo.sum_changes_since(session, user_id, now - timedelta(days=30))

        total_earned = sum(row.change_amount for row in rows if row.change_amount > 0)
        total_lost = -sum(row.change_amount for row in rows if row.change_amount < 0)
        directions = [direction_of(CreditChangeType(row.type)) for row in rows]
        return CreditStatistics(
            user_id=user_id,
            current_score=rows[0].new_score if rows else self.params.default_score,
            total_earned=total_earned,
            total_lost=total_lost,
            total_transactions=len(rows),
            penalties_count=directions.count(CreditDirection.PENALTY),
            bonuses_count=directions.count(CreditDirection.BONUS),
            last_30_days_change=last_30_days,
        )

    def verify_chain(self, user_id: int) -> bool:
        """Check the user's entries link up from the default score without gaps."""
        with session_scope(self.session_factory) as session:
            rows = ledger_repo.list_entries(session, user_id, newest_first=False)
            entries = [_to_entry(row) for row in rows]
        valid = verify_chain(entries, self.params)
        if not valid:
            logger.error("Credit chain for user_id=%s is inconsistent", user_id)
        return valid

    def get_restrictions(self, user_id: int, *, session: Session | None = None) -> RestrictionSet:
        return restrictions_for(self.current_score(user_id, session=session), self.params.restrictions)


def _to_entry(row: CreditScoreLog) -> CreditEntry:
    return CreditEntry(
        id=row.id,
        user_id=row.user_id,
        sequence=row.sequence,
        change_type=CreditChangeType(row.type),
        old_score=row.old_score,
        new_score=row.new_score,
        change_amount=row.change_amount,
        description=row.description,
        metadata=dict(row.details or {}),
        created_at=row.created_at,
        event_id=row.event_id,
    )


__all__ = ["CreditLedger"]

"""Per-user, per-sport MMR aggregate."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from courtside.db import session_scope
from courtside.domain.common import Outcome, Rating, utcnow
from courtside.domain.rating import (
    RatingParameters,
    calculate_win_rate,
    level_for_mmr,
    next_counters,
    skill_label_for_mmr,
)
from courtside.errors import ConflictError, ValidationError
from courtside.models import UserSportRating
from courtside.repositories import ratings as rating_repo

logger = logging.getLogger(__name__)


class RatingStore:
    """Reads and updates ``user_sport_ratings`` rows.

    Both operations accept an optional caller-owned ``session`` so a match can
    update two ratings and insert its history row in one transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session], params: RatingParameters) -> None:
        self.session_factory = session_factory
        self.params = params

    def default_rating(self, user_id: int, sport_id: int) -> Rating:
        mmr = self.params.initial_mmr
        return Rating(
            user_id=user_id,
            sport_id=sport_id,
            mmr=mmr,
            level=level_for_mmr(mmr, self.params.level_thresholds),
            skill_label=skill_label_for_mmr(mmr),
            matches_played=0,
            wins=0,
            losses=0,
            draws=0,
            win_rate=0.0,
        )

    def get_rating(self, user_id: int, sport_id: int, *, session: Session | None = None) -> Rating:
        """Stored rating, or the default snapshot when the user has none yet."""
        with session_scope(self.session_factory, session) as active:
            row = rating_repo.get_rating_row(active, user_id, sport_id)
            if row is None:
                return self.default_rating(user_id, sport_id)
            return _snapshot(row)

    def apply_result(
        self,
        user_id: int,
        sport_id: int,
        delta: int,
        outcome: Outcome | str,
        *,
        at: datetime | None = None,
        session: Session | None = None,
    ) -> Rating:
        """Add ``delta`` to the user's MMR and count one more result.

        Raises ``ValidationError`` when the new MMR would fall below the floor
        and ``ConflictError`` when another writer updated the row first.
        """
        outcome = _parse_outcome(outcome)
        with session_scope(self.session_factory, session) as active:
            row = rating_repo.get_rating_row(active, user_id, sport_id, for_update=True)
            current_mmr = self.params.initial_mmr if row is None else row.mmr
            new_mmr = current_mmr + delta
            if new_mmr < self.params.mmr_floor:
                raise ValidationError(
                    f"user_id={user_id} sport_id={sport_id}: mmr {current_mmr}{delta:+d} is below "
                    f"the floor {self.params.mmr_floor}"
                )

            if row is None:
                row = rating_repo.add_rating_row(
                    active,
                    user_id=user_id,
                    sport_id=sport_id,
                    mmr=current_mmr,
                    level=level_for_mmr(current_mmr, self.params.level_thresholds),
                )

            matches_played, wins, losses, draws = next_counters(
                matches_played=row.matches_played,
                wins=row.wins,
                losses=row.losses,
                draws=row.draws,
                outcome=outcome,
            )
            row.mmr = new_mmr
            row.level = level_for_mmr(new_mmr, self.params.level_thresholds)
            row.matches_played = matches_played
            row.wins = wins
            row.losses = losses
            row.draws = draws
            row.win_rate = calculate_win_rate(wins, matches_played)
            row.last_match_at = at or utcnow()

            try:
                active.flush()
            except (StaleDataError, IntegrityError) as exc:
                raise ConflictError(
                    f"rating for user_id={user_id} sport_id={sport_id} changed concurrently",
                    "Rating was updated by someone else. Please retry.",
                ) from exc

            logger.debug(
                "Applied %s %+d to user_id=%s sport_id=%s (mmr=%s)",
                outcome.value,
                delta,
                user_id,
                sport_id,
                new_mmr,
            )
            return _snapshot(row)


def _parse_outcome(value: Outcome | str) -> Outcome:
    if isinstance(value, Outcome):
        return value
    try:
        return Outcome(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown outcome {value!r}; expected win, loss or draw") from exc


def _snapshot(row: UserSportRating) -> Rating:
    return Rating(
        user_id=row.user_id,
        sport_id=row.sport_id,
        mmr=row.mmr,
        level=row.level,
        skill_label=skill_label_for_mmr(row.mmr),
        matches_played=row.matches_played,
        wins=row.wins,
        losses=row.losses,
        draws=row.draws,
        win_rate=row.win_rate,
        last_match_at=row.last_match_at,
        persisted=True,
    )


__all__ = ["RatingStore"]

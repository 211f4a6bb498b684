"""Atomic recording of head-to-head match results."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from courtside.db import session_scope
from courtside.domain.common import (
    MatchRecord,
    MatchResult,
    MatchScore,
    MatchStatus,
    ParticipantStatus,
    PlayerMatchStats,
    outcomes_for,
    pair_key,
    utcnow,
)
from courtside.domain.rating import RatingParameters, calculate_win_rate, compute_match_deltas
from courtside.errors import ConflictError, PermissionDeniedError, ValidationError
from courtside.models import MatchHistory
from courtside.repositories import event_matches as event_match_repo
from courtside.repositories import events as event_repo
from courtside.repositories import match_history as history_repo
from courtside.services.rating_store import RatingStore

logger = logging.getLogger(__name__)


class MatchRecorder:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        rating_store: RatingStore,
        params: RatingParameters,
    ) -> None:
        self.session_factory = session_factory
        self.rating_store = rating_store
        self.params = params

    def record_match(
        self,
        *,
        event_id: int,
        player1_id: int,
        player2_id: int,
        sport_id: int,
        result: MatchResult | str,
        recorded_by_host_id: int,
        score: MatchScore | dict[str, Any] | None = None,
        notes: str | None = None,
        match_date: datetime | None = None,
        session: Session | None = None,
    ) -> MatchRecord:
        """Record one result and move both players' ratings in one transaction.

        Everything is validated before the first write. Recording the same
        unordered pair twice in an event raises ``ValidationError``; the unique
        (event_id, pair_key) constraint settles concurrent attempts.
        """
        result = MatchResult.parse(result)
        if isinstance(score, MatchScore):
            match_score = score
        else:
            match_score = MatchScore.from_json(score)
        if player1_id == player2_id:
            raise ValidationError(f"player1_id and player2_id are both {player1_id}")
        match_score.validate_against(result)

        key = pair_key(player1_id, player2_id)
        with session_scope(self.session_factory, session) as active:
            event = event_repo.require_event(active, event_id)
            if recorded_by_host_id != event.host_id:
                raise PermissionDeniedError(
                    f"user_id={recorded_by_host_id} is not the host of event_id={event_id}",
                    "Only the event host can record results.",
                )
            if event.sport_id != sport_id:
                raise ValidationError(
                    f"event_id={event_id} is for sport_id={event.sport_id}, not sport_id={sport_id}"
                )
            for player_id in (player1_id, player2_id):
                participant = event_repo.get_participant(active, event_id, player_id)
                if participant is None or participant.status != ParticipantStatus.CHECKED_IN.value:
                    raise ValidationError(
                        f"user_id={player_id} is not a checked-in participant of event_id={event_id}",
                        "Both players must be checked in to the event.",
                    )
            if history_repo.find_by_pair(active, event_id, key) is not None:
                raise ValidationError(
                    f"A result for players {key} was already recorded in event_id={event_id}",
                    "This match has already been recorded.",
                )

            player1_before = self.rating_store.get_rating(player1_id, sport_id, session=active).mmr
            player2_before = self.rating_store.get_rating(player2_id, sport_id, session=active).mmr
            deltas = compute_match_deltas(result, player1_before, player2_before, self.params)
            player1_outcome, player2_outcome = outcomes_for(result)
            recorded_at = match_date or utcnow()

            player1_after = self.rating_store.apply_result(
                player1_id, sport_id, deltas.player1_delta, player1_outcome, at=recorded_at, session=active
            ).mmr
            player2_after = self.rating_store.apply_result(
                player2_id, sport_id, deltas.player2_delta, player2_outcome, at=recorded_at, session=active
            ).mmr

            proposed = event_match_repo.find_open_for_pair(active, event_id, key)
            if proposed is not None:
                proposed.status = MatchStatus.FINALIZED.value

            row = history_repo.insert_match(
                active,
                event_id=event_id,
                sport_id=sport_id,
                player1_id=player1_id,
                player2_id=player2_id,
                key=key,
                result=result.value,
                match_score=match_score.as_json(),
                player1_mmr_before=player1_before,
                player1_mmr_after=player1_after,
                player2_mmr_before=player2_before,
                player2_mmr_after=player2_after,
                recorded_by_host_id=recorded_by_host_id,
                event_match_id=None if proposed is None else proposed.id,
                match_notes=notes,
                match_date=recorded_at,
            )
            try:
                active.flush()
            except IntegrityError as exc:
                raise ValidationError(
                    f"A result for players {key} was already recorded in event_id={event_id}",
                    "This match has already been recorded.",
                ) from exc
            except StaleDataError as exc:
                raise ConflictError(
                    f"Proposed match for players {key} changed while recording",
                    "The match changed while recording. Please retry.",
                ) from exc

            logger.info(
                "Recorded %s for event_id=%s players=%s (%s->%s, %s->%s)",
                result.value,
                event_id,
                key,
                player1_before,
                player1_after,
                player2_before,
                player2_after,
            )
            return _to_record(row)

    def list_matches(
        self,
        user_id: int,
        *,
        sport_id: int | None = None,
        limit: int | None = None,
    ) -> list[MatchRecord]:
        """Matches involving ``user_id``, newest first."""
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be positive")
        with session_scope(self.session_factory) as session:
            rows = history_repo.list_for_user(session, user_id, sport_id=sport_id, limit=limit)
            return [_to_record(row) for row in rows]

    def get_stats(self, user_id: int, *, sport_id: int | None = None, recent: int = 5) -> PlayerMatchStats:
        with session_scope(self.session_factory) as session:
            rows = history_repo.list_for_user(session, user_id, sport_id=sport_id)
            records = [_to_record(row) for row in rows]

        wins = losses = draws = 0
        for record in records:
            if record.result is MatchResult.DRAW:
                draws += 1
            elif (record.result is MatchResult.PLAYER1_WIN) == (record.player1_id == user_id):
                wins += 1
            else:
                losses += 1

        decided = wins + losses
        return PlayerMatchStats(
            user_id=user_id,
            sport_id=sport_id,
            total_matches=len(records),
            wins=wins,
            losses=losses,
            draws=draws,
            win_rate=calculate_win_rate(wins, decided),
            recent_matches=tuple(records[:recent]),
        )


def _to_record(row: MatchHistory) -> MatchRecord:
    return MatchRecord(
        id=row.id,
        event_id=row.event_id,
        sport_id=row.sport_id,
        player1_id=row.player1_id,
        player2_id=row.player2_id,
        result=MatchResult(row.result),
        score=MatchScore.from_json(row.match_score),
        player1_mmr_before=row.player1_mmr_before,
        player1_mmr_after=row.player1_mmr_after,
        player2_mmr_before=row.player2_mmr_before,
        player2_mmr_after=row.player2_mmr_after,
        recorded_by_host_id=row.recorded_by_host_id,
        match_date=row.match_date,
        event_match_id=row.event_match_id,
        notes=row.match_notes,
    )


__all__ = ["MatchRecorder"]

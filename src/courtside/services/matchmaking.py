"""Proposed-match management for one event: pairing, overrides, locks, courts and play."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from courtside.db import session_scope
from courtside.domain.common import (
    PROPOSAL_STATUSES,
    EventStatus,
    MatchStatus,
    ParticipantStatus,
    ProposedMatch,
    pair_key,
    utcnow,
)
from courtside.domain.pairing import (
    MatchmakingParameters,
    PairingCandidate,
    calculate_match_quality,
    pair_adjacent,
    rank_candidates,
)
from courtside.errors import ConflictError, NotFoundError, ValidationError
from courtside.models import Event, EventMatch
from courtside.repositories import event_matches as event_match_repo
from courtside.repositories import events as event_repo
from courtside.repositories import match_history as history_repo
from courtside.services.rating_store import RatingStore

logger = logging.getLogger(__name__)

MATCHMAKING_STATUSES = frozenset({EventStatus.PUBLISHED, EventStatus.FULL, EventStatus.ONGOING})


@dataclass(frozen=True)
class WaitingPlayer:
    user_id: int
    mmr: int


@dataclass(frozen=True)
class MatchmakingRun:
    """Outcome of one ``create_fair_matches`` call."""

    event_id: int
    matches: tuple[ProposedMatch, ...]
    waiting: tuple[WaitingPlayer, ...]
    # Locked and running matches left untouched.
    locked_kept: int
    reused: int
    created: int
    removed: int


@dataclass(frozen=True)
class CourtSlot:
    court_number: int
    match: ProposedMatch | None

    @property
    def is_free(self) -> bool:
        return self.match is None


@dataclass(frozen=True)
class CourtSuggestion:
    court_number: int
    player1: WaitingPlayer
    player2: WaitingPlayer
    skill_difference: int
    match_quality: float


@dataclass(frozen=True)
class MatchmakingStatus:
    event_id: int
    event_status: EventStatus
    matches: tuple[ProposedMatch, ...]
    waiting: tuple[WaitingPlayer, ...]
    courts: tuple[CourtSlot, ...]


class MatchmakingEngine:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        rating_store: RatingStore,
        params: MatchmakingParameters,
    ) -> None:
        self.session_factory = session_factory
        self.rating_store = rating_store
        self.params = params

    def create_fair_matches(self, event_id: int, *, session: Session | None = None) -> MatchmakingRun:
        """Pair checked-in players by MMR, keeping locked and running matches as they are.

        Pairs that already played in this event are never proposed again.
        Unlocked proposals whose pair is proposed again keep their row
        (id, court, version); all other unlocked proposals are removed.
        """
        with self._transaction(session) as active:
            event = event_repo.require_event(active, event_id, for_update=True)
            _require_matchmaking_status(event)

            current = event_match_repo.list_matches(active, event_id, for_update=True)
            held = [match for match in current if _is_held(match)]
            unlocked_by_key: dict[str, EventMatch] = {}
            duplicates: list[EventMatch] = []
            for match in current:
                if _is_held(match):
                    continue
                if match.pair_key in unlocked_by_key:
                    duplicates.append(match)
                else:
                    unlocked_by_key[match.pair_key] = match
            held_players = {player for match in held for player in (match.player1_id, match.player2_id)}

            pool = [
                candidate
                for candidate in self._checked_in_candidates(active, event)
                if candidate.user_id not in held_players
            ]
            plan = pair_adjacent(
                pool,
                skill_tolerance=self.params.skill_tolerance,
                excluded_keys=_played_pair_keys(active, event_id),
            )

            reused = created = 0
            kept: list[EventMatch] = list(held)
            for pairing in plan.pairs:
                existing = unlocked_by_key.pop(pairing.key, None)
                if existing is not None:
                    kept.append(existing)
                    reused += 1
                    continue
                kept.append(
                    event_match_repo.add_match(
                        active,
                        event_id=event_id,
                        player1_id=pairing.player1.user_id,
                        player2_id=pairing.player2.user_id,
                        key=pairing.key,
                        skill_difference=pairing.skill_difference,
                        match_quality=pairing.match_quality,
                        estimated_duration_minutes=self.params.estimated_duration_minutes,
                    )
                )
                created += 1

            removed = [*unlocked_by_key.values(), *duplicates]
            for stale in removed:
                active.delete(stale)
            active.flush()

            logger.info(
                "Matchmaking for event_id=%s: %s held, %s reused, %s created, %s removed, %s waiting",
                event_id,
                len(held),
                reused,
                created,
                len(removed),
                len(plan.waiting),
            )
            return MatchmakingRun(
                event_id=event_id,
                matches=tuple(_snapshot(match) for match in sorted(kept, key=lambda match: match.id)),
                waiting=tuple(WaitingPlayer(candidate.user_id, candidate.mmr) for candidate in plan.waiting),
                locked_kept=len(held),
                reused=reused,
                created=created,
                removed=len(removed),
            )

    def override_player(
        self,
        event_id: int,
        match_id: int,
        old_player_id: int,
        new_player_id: int,
        *,
        expected_version: int | None = None,
        session: Session | None = None,
    ) -> ProposedMatch:
        """Replace one player of an unlocked active match."""
        with self._transaction(session) as active:
            event = event_repo.require_event(active, event_id)
            match = self._require_match(active, event_id, match_id, expected_version)
            _require_mutable(match)

            if old_player_id not in (match.player1_id, match.player2_id):
                raise ValidationError(f"user_id={old_player_id} is not in match_id={match_id}")
            if new_player_id in (match.player1_id, match.player2_id):
                raise ValidationError(f"user_id={new_player_id} is already in match_id={match_id}")

            outgoing = event_repo.get_participant(active, event_id, old_player_id)
            if outgoing is not None and outgoing.is_premium_protected:
                raise ValidationError(
                    f"user_id={old_player_id} is premium-protected in event_id={event_id}",
                    "This player cannot be replaced.",
                )
            incoming = event_repo.get_participant(active, event_id, new_player_id)
            if incoming is None or incoming.status != ParticipantStatus.CHECKED_IN.value:
                raise ValidationError(
                    f"user_id={new_player_id} is not a checked-in participant of event_id={event_id}",
                    "The replacement player must be checked in.",
                )
            if event_match_repo.find_active_for_player(
                active, event_id, new_player_id, exclude_match_id=match.id
            ) is not None:
                raise ConflictError(
                    f"user_id={new_player_id} is already in another active match",
                    "The replacement player is already playing another match.",
                )

            player1_id, player2_id = match.player1_id, match.player2_id
            if player1_id == old_player_id:
                player1_id = new_player_id
            else:
                player2_id = new_player_id
            new_key = pair_key(player1_id, player2_id)
            if new_key in _played_pair_keys(active, event_id):
                raise ConflictError(
                    f"players {new_key} already played in event_id={event_id}",
                    "These two players have already played each other in this event.",
                )

            match.player1_id, match.player2_id = player1_id, player2_id
            match.pair_key = new_key
            player1_mmr = self.rating_store.get_rating(match.player1_id, event.sport_id, session=active).mmr
            player2_mmr = self.rating_store.get_rating(match.player2_id, event.sport_id, session=active).mmr
            match.skill_difference = abs(player1_mmr - player2_mmr)
            match.match_quality = calculate_match_quality(match.skill_difference)
            match.status = MatchStatus.OVERRIDDEN.value
            active.flush()

            logger.info(
                "Overrode match_id=%s in event_id=%s: user_id=%s -> user_id=%s",
                match_id,
                event_id,
                old_player_id,
                new_player_id,
            )
            return _snapshot(match)

    def toggle_match_lock(
        self,
        event_id: int,
        match_id: int,
        *,
        expected_version: int | None = None,
        session: Session | None = None,
    ) -> ProposedMatch:
        """Flip the lock pin of an active match."""
        with self._transaction(session) as active:
            match = self._require_match(active, event_id, match_id, expected_version)
            if match.status in _FINISHED_VALUES:
                raise ConflictError(
                    f"match_id={match_id} is {match.status}",
                    "A finished match cannot be locked or unlocked.",
                )
            match.is_locked = not match.is_locked
            active.flush()
            logger.info("match_id=%s is_locked=%s", match_id, match.is_locked)
            return _snapshot(match)

    def assign_court(
        self,
        event_id: int,
        match_id: int,
        court_number: int,
        *,
        starts_at: datetime | None = None,
        expected_version: int | None = None,
        session: Session | None = None,
    ) -> ProposedMatch:
        """Place an active match on a court for ``[start, start + duration)``."""
        with self._transaction(session) as active:
            event = event_repo.require_event(active, event_id)
            match = self._require_match(active, event_id, match_id, expected_version)
            if MatchStatus(match.status) not in PROPOSAL_STATUSES:
                raise ConflictError(
                    f"match_id={match_id} is {match.status}",
                    "A match that has started cannot be moved.",
                )
            if not 1 <= court_number <= event.max_courts:
                raise ValidationError(
                    f"court_number={court_number} is outside 1..{event.max_courts}",
                    f"Court must be between 1 and {event.max_courts}.",
                )

            start = starts_at or match.scheduled_start or event.starts_at
            end = start + timedelta(minutes=match.estimated_duration_minutes)
            for other in event_match_repo.list_active_on_court(
                active, event_id, court_number, exclude_match_id=match.id
            ):
                if other.scheduled_start is None:
                    continue
                other_end = other.scheduled_start + timedelta(minutes=other.estimated_duration_minutes)
                if start < other_end and other.scheduled_start < end:
                    raise ConflictError(
                        f"court {court_number} is taken by match_id={other.id} "
                        f"from {other.scheduled_start.isoformat()} to {other_end.isoformat()}",
                        f"Court {court_number} is already booked at that time.",
                    )

            match.court_number = court_number
            match.scheduled_start = start
            active.flush()
            logger.info("match_id=%s assigned to court %s at %s", match_id, court_number, start.isoformat())
            return _snapshot(match)

    def start_match(
        self,
        event_id: int,
        match_id: int,
        *,
        at: datetime | None = None,
        expected_version: int | None = None,
        session: Session | None = None,
    ) -> ProposedMatch:
        """Put a match that has a court into play."""
        with self._transaction(session) as active:
            event = event_repo.require_event(active, event_id)
            if EventStatus(event.status) is not EventStatus.ONGOING:
                raise ValidationError(
                    f"event_id={event_id} is {event.status}; matches start once the event is ongoing",
                    "Matches can only start while the event is ongoing.",
                )
            match = self._require_match(active, event_id, match_id, expected_version)
            if MatchStatus(match.status) not in PROPOSAL_STATUSES:
                raise ConflictError(
                    f"match_id={match_id} is {match.status}",
                    "This match has already started or finished.",
                )
            if match.court_number is None:
                raise ValidationError(
                    f"match_id={match_id} has no court",
                    "Assign a court before starting the match.",
                )
            for other in event_match_repo.list_active_on_court(
                active, event_id, match.court_number, exclude_match_id=match.id
            ):
                if other.status == MatchStatus.IN_PROGRESS.value:
                    raise ConflictError(
                        f"court {match.court_number} is in use by match_id={other.id}",
                        f"Court {match.court_number} is still in use.",
                    )

            match.status = MatchStatus.IN_PROGRESS.value
            match.started_at = at or utcnow()
            active.flush()
            logger.info("match_id=%s started on court %s", match_id, match.court_number)
            return _snapshot(match)

    def end_match(
        self,
        event_id: int,
        match_id: int,
        *,
        at: datetime | None = None,
        expected_version: int | None = None,
        session: Session | None = None,
    ) -> ProposedMatch:
        """Take a running match off its court; the result is recorded separately."""
        with self._transaction(session) as active:
            match = self._require_match(active, event_id, match_id, expected_version)
            if match.status != MatchStatus.IN_PROGRESS.value:
                raise ConflictError(
                    f"match_id={match_id} is {match.status}, not in_progress",
                    "Only a match in play can be ended.",
                )
            match.status = MatchStatus.COMPLETED.value
            match.ended_at = at or utcnow()
            active.flush()
            logger.info("match_id=%s ended, court %s is free", match_id, match.court_number)
            return _snapshot(match)

    def get_status(self, event_id: int) -> MatchmakingStatus:
        """Active matches, players still waiting and the court board of one event."""
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id)
            matches = [_snapshot(match) for match in event_match_repo.list_matches(session, event_id)]
            waiting = tuple(
                WaitingPlayer(candidate.user_id, candidate.mmr)
                for candidate in self._waiting_candidates(session, event, matches)
            )

            by_court: dict[int, ProposedMatch] = {}
            for match in sorted(matches, key=lambda match: _court_order(match, event)):
                if match.court_number is not None:
                    by_court.setdefault(match.court_number, match)
            courts = tuple(
                CourtSlot(court_number=number, match=by_court.get(number))
                for number in range(1, event.max_courts + 1)
            )
            return MatchmakingStatus(
                event_id=event_id,
                event_status=EventStatus(event.status),
                matches=tuple(matches),
                waiting=waiting,
                courts=courts,
            )

    def suggest_next_round(self, event_id: int) -> tuple[CourtSuggestion, ...]:
        """Pair waiting players onto free courts without writing anything.

        Courts holding any active match count as busy. Pairs that already
        played in this event are skipped, as in ``create_fair_matches``.
        """
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id)
            _require_matchmaking_status(event)
            matches = [_snapshot(match) for match in event_match_repo.list_matches(session, event_id)]
            busy = {match.court_number for match in matches if match.court_number is not None}
            free_courts = [number for number in range(1, event.max_courts + 1) if number not in busy]

            plan = pair_adjacent(
                self._waiting_candidates(session, event, matches),
                skill_tolerance=self.params.skill_tolerance,
                excluded_keys=_played_pair_keys(session, event_id),
            )

        suggestions = tuple(
            CourtSuggestion(
                court_number=court_number,
                player1=WaitingPlayer(pairing.player1.user_id, pairing.player1.mmr),
                player2=WaitingPlayer(pairing.player2.user_id, pairing.player2.mmr),
                skill_difference=pairing.skill_difference,
                match_quality=pairing.match_quality,
            )
            for court_number, pairing in zip(free_courts, plan.pairs)
        )
        logger.info(
            "Next round for event_id=%s: %s suggestions over %s free courts",
            event_id,
            len(suggestions),
            len(free_courts),
        )
        return suggestions

    @contextmanager
    def _transaction(self, session: Session | None) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory, session) as active:
                yield active
        except StaleDataError as exc:
            raise ConflictError(
                "Proposed match changed concurrently",
                "The match was changed by someone else. Please refresh and retry.",
            ) from exc

    def _checked_in_candidates(self, session: Session, event: Event) -> list[PairingCandidate]:
        participants = event_repo.list_participants(session, event.id, [ParticipantStatus.CHECKED_IN])
        return [
            PairingCandidate(
                user_id=participant.user_id,
                mmr=self.rating_store.get_rating(participant.user_id, event.sport_id, session=session).mmr,
            )
            for participant in participants
        ]

    def _waiting_candidates(
        self,
        session: Session,
        event: Event,
        matches: list[ProposedMatch],
    ) -> list[PairingCandidate]:
        """Checked-in players outside every active match, in rank order."""
        playing = {player for match in matches for player in match.player_ids}
        return [
            candidate
            for candidate in rank_candidates(self._checked_in_candidates(session, event))
            if candidate.user_id not in playing
        ]

    @staticmethod
    def _require_match(
        session: Session,
        event_id: int,
        match_id: int,
        expected_version: int | None,
    ) -> EventMatch:
        match = event_match_repo.get_match(session, match_id, for_update=True)
        if match is None or match.event_id != event_id:
            raise NotFoundError("match", match_id)
        if expected_version is not None and match.version_id != expected_version:
            raise ConflictError(
                f"match_id={match_id} is at version {match.version_id}, expected {expected_version}",
                "The match was changed by someone else. Please refresh and retry.",
            )
        return match


_FINISHED_VALUES = frozenset({MatchStatus.COMPLETED.value, MatchStatus.FINALIZED.value})


def _played_pair_keys(session: Session, event_id: int) -> set[str]:
    """Pairs with a recorded result, plus ended matches whose result is still pending."""
    recorded = history_repo.recorded_pair_keys(session, event_id)
    ended = event_match_repo.list_pair_keys(session, event_id, [MatchStatus.COMPLETED])
    return recorded | ended


def _is_held(match: EventMatch) -> bool:
    return match.is_locked or match.status == MatchStatus.IN_PROGRESS.value


def _court_order(match: ProposedMatch, event: Event) -> tuple[bool, datetime, int]:
    # A match in play owns its court ahead of anything scheduled there.
    return (match.status is not MatchStatus.IN_PROGRESS, match.scheduled_start or event.starts_at, match.id)


def _require_matchmaking_status(event: Event) -> None:
    status = EventStatus(event.status)
    if status not in MATCHMAKING_STATUSES:
        raise ValidationError(
            f"event_id={event.id} is {status.value}; matchmaking needs published, full or ongoing",
            "Matchmaking is not available for this event.",
        )


def _require_mutable(match: EventMatch) -> None:
    if match.is_locked:
        raise ConflictError(f"match_id={match.id} is locked", "This match is locked.")
    if MatchStatus(match.status) not in PROPOSAL_STATUSES:
        raise ConflictError(
            f"match_id={match.id} is {match.status}",
            "A match that has started cannot be changed.",
        )


def _snapshot(match: EventMatch) -> ProposedMatch:
    return ProposedMatch(
        id=match.id,
        event_id=match.event_id,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        status=MatchStatus(match.status),
        is_locked=match.is_locked,
        court_number=match.court_number,
        scheduled_start=match.scheduled_start,
        estimated_duration_minutes=match.estimated_duration_minutes,
        skill_difference=match.skill_difference,
        match_quality=match.match_quality,
        version=match.version_id,
        started_at=match.started_at,
        ended_at=match.ended_at,
    )


__all__ = [
    "CourtSlot",
    "CourtSuggestion",
    "MatchmakingEngine",
    "MatchmakingRun",
    "MatchmakingStatus",
    "WaitingPlayer",
]

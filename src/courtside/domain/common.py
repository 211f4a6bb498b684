"""Shared enums and snapshot types for the matchmaking and credit engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from courtside.errors import ValidationError


class EventStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    FULL = "full"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantStatus(str, Enum):
    REGISTERED = "registered"
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"


# Participants that hold a slot against Event.max_participants.
SEAT_HOLDING_STATUSES = frozenset(
    {
        ParticipantStatus.REGISTERED,
        ParticipantStatus.CONFIRMED,
        ParticipantStatus.CHECKED_IN,
    }
)


class MatchResult(str, Enum):
    """Outcome of one recorded head-to-head match."""

    PLAYER1_WIN = "player1_win"
    PLAYER2_WIN = "player2_win"
    DRAW = "draw"

    @classmethod
    def parse(cls, value: str | MatchResult) -> MatchResult:
        if isinstance(value, MatchResult):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(f"Unknown match result {value!r}; expected one of: {allowed}") from exc


class Outcome(str, Enum):
    """Outcome from a single player's point of view."""

    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


def outcomes_for(result: MatchResult) -> tuple[Outcome, Outcome]:
    """Split a match result into (player1, player2) outcomes."""
    if result is MatchResult.PLAYER1_WIN:
        return Outcome.WIN, Outcome.LOSS
    if result is MatchResult.PLAYER2_WIN:
        return Outcome.LOSS, Outcome.WIN
    return Outcome.DRAW, Outcome.DRAW


class MatchStatus(str, Enum):
    """Lifecycle of a proposed match; locking is tracked separately.

    proposed/overridden -> in_progress -> completed -> finalized, where
    ``finalized`` means the result is in match_history. A proposal can also be
    finalized directly by recording its result.
    """

    PROPOSED = "proposed"
    OVERRIDDEN = "overridden"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FINALIZED = "finalized"


# Matches that hold their players and their court.
ACTIVE_MATCH_STATUSES = frozenset({MatchStatus.PROPOSED, MatchStatus.OVERRIDDEN, MatchStatus.IN_PROGRESS})
# Matches still waiting for a result to be recorded.
OPEN_MATCH_STATUSES = ACTIVE_MATCH_STATUSES | {MatchStatus.COMPLETED}
# Matches the pairing step may still replace.
PROPOSAL_STATUSES = frozenset({MatchStatus.PROPOSED, MatchStatus.OVERRIDDEN})


def pair_key(player_a_id: int, player_b_id: int) -> str:
    """Order-independent key for an unordered player pair."""
    low, high = sorted((player_a_id, player_b_id))
    return f"{low}:{high}"


@dataclass(frozen=True)
class SetScore:
    player1: int
    player2: int


@dataclass(frozen=True)
class MatchScore:
    """Per-set score detail attached to a recorded match."""

    sets: tuple[SetScore, ...] = ()

    @classmethod
    def from_json(cls, raw: dict[str, Any] | None) -> MatchScore:
        if not raw:
            return cls()
        sets_raw = raw.get("sets", [])
        if not isinstance(sets_raw, list):
            raise ValidationError("match_score.sets must be a list")
        sets: list[SetScore] = []
        for index, item in enumerate(sets_raw, start=1):
            try:
                sets.append(SetScore(player1=int(item["player1"]), player2=int(item["player2"])))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"match_score.sets[{index}] is malformed: {item!r}") from exc
        return cls(sets=tuple(sets))

    def as_json(self) -> dict[str, Any]:
        return {"sets": [{"player1": s.player1, "player2": s.player2} for s in self.sets]}

    def sets_won(self) -> tuple[int, int]:
        player1 = sum(1 for s in self.sets if s.player1 > s.player2)
        player2 = sum(1 for s in self.sets if s.player2 > s.player1)
        return player1, player2

    def validate_against(self, result: MatchResult) -> None:
        """Reject negative scores and set tallies that contradict the result."""
        for index, set_score in enumerate(self.sets, start=1):
            if set_score.player1 < 0 or set_score.player2 < 0:
                raise ValidationError(f"set {index} has a negative score")
        if not self.sets:
            return

        player1_sets, player2_sets = self.sets_won()
        if result is MatchResult.PLAYER1_WIN and player1_sets <= player2_sets:
            raise ValidationError("set scores do not show player1 winning")
        if result is MatchResult.PLAYER2_WIN and player2_sets <= player1_sets:
            raise ValidationError("set scores do not show player2 winning")
        if result is MatchResult.DRAW and player1_sets != player2_sets:
            raise ValidationError("set scores do not show a draw")


@dataclass(frozen=True)
class Rating:
    """Snapshot of one user's rating in one sport."""

    user_id: int
    sport_id: int
    mmr: int
    level: int
    skill_label: str
    matches_played: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    last_match_at: datetime | None = None
    persisted: bool = False


@dataclass(frozen=True)
class MatchRecord:
    """Snapshot of one immutable match_history row."""

    id: int
    event_id: int
    sport_id: int
    player1_id: int
    player2_id: int
    result: MatchResult
    score: MatchScore
    player1_mmr_before: int
    player1_mmr_after: int
    player2_mmr_before: int
    player2_mmr_after: int
    recorded_by_host_id: int
    match_date: datetime
    event_match_id: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PlayerMatchStats:
    user_id: int
    sport_id: int | None
    total_matches: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    recent_matches: tuple[MatchRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ProposedMatch:
    """Snapshot of one event_matches row."""

    id: int
    event_id: int
    player1_id: int
    player2_id: int
    status: MatchStatus
    is_locked: bool
    court_number: int | None
    scheduled_start: datetime | None
    estimated_duration_minutes: int
    skill_difference: int
    match_quality: float
    version: int
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def player_ids(self) -> tuple[int, int]:
        return self.player1_id, self.player2_id

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_MATCH_STATUSES


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime(timezone=False) columns."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class Participation:
    """Snapshot of one event_participants row."""

    event_id: int
    user_id: int
    status: ParticipantStatus
    registered_at: datetime
    checked_in_at: datetime | None = None
    is_premium_protected: bool = False
    credit_score_penalty: int = 0

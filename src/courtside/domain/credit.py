"""Credit-score rules: change types, clamping, penalty tiers and restriction tiers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from courtside.errors import ValidationError


class CreditChangeType(str, Enum):
    PENALTY = "penalty"
    BONUS = "bonus"
    CANCELLATION_PENALTY = "cancellation_penalty"
    NO_SHOW_PENALTY = "no_show_penalty"
    EVENT_COMPLETION_BONUS = "event_completion_bonus"
    GOOD_RATING_BONUS = "good_rating_bonus"
    CONSECUTIVE_EVENTS_BONUS = "consecutive_events_bonus"

    @classmethod
    def parse(cls, value: str | CreditChangeType) -> CreditChangeType:
        if isinstance(value, CreditChangeType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(f"Unknown credit change type {value!r}; expected one of: {allowed}") from exc


class CreditDirection(str, Enum):
    PENALTY = "penalty"
    BONUS = "bonus"


_DIRECTIONS: dict[CreditChangeType, CreditDirection] = {
    CreditChangeType.PENALTY: CreditDirection.PENALTY,
    CreditChangeType.BONUS: CreditDirection.BONUS,
    CreditChangeType.CANCELLATION_PENALTY: CreditDirection.PENALTY,
    CreditChangeType.NO_SHOW_PENALTY: CreditDirection.PENALTY,
    CreditChangeType.EVENT_COMPLETION_BONUS: CreditDirection.BONUS,
    CreditChangeType.GOOD_RATING_BONUS: CreditDirection.BONUS,
    CreditChangeType.CONSECUTIVE_EVENTS_BONUS: CreditDirection.BONUS,
}

_DEFAULT_DESCRIPTIONS: dict[CreditChangeType, str] = {
    CreditChangeType.PENALTY: "Manual penalty",
    CreditChangeType.BONUS: "Manual bonus",
    CreditChangeType.CANCELLATION_PENALTY: "Event cancellation penalty",
    CreditChangeType.NO_SHOW_PENALTY: "No-show penalty",
    CreditChangeType.EVENT_COMPLETION_BONUS: "Event completion bonus",
    CreditChangeType.GOOD_RATING_BONUS: "Good rating bonus",
    CreditChangeType.CONSECUTIVE_EVENTS_BONUS: "Consecutive events bonus",
}

if set(_DIRECTIONS) != set(CreditChangeType) or set(_DEFAULT_DESCRIPTIONS) != set(CreditChangeType):
    raise RuntimeError("Every CreditChangeType needs a direction and a default description")

ADMIN_CHANGE_TYPES = frozenset({CreditChangeType.PENALTY, CreditChangeType.BONUS})

# Entries that end a run of attended events.
STREAK_BREAKERS = frozenset(
    {
        CreditChangeType.CONSECUTIVE_EVENTS_BONUS,
        CreditChangeType.CANCELLATION_PENALTY,
        CreditChangeType.NO_SHOW_PENALTY,
    }
)


def direction_of(change_type: CreditChangeType) -> CreditDirection:
    return _DIRECTIONS[change_type]


def default_description(change_type: CreditChangeType) -> str:
    return _DEFAULT_DESCRIPTIONS[change_type]


class RestrictionTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    WARNING = "warning"
    RESTRICTED = "restricted"


@dataclass(frozen=True)
class RestrictionThresholds:
    excellent_min: int = 80
    good_min: int = 60
    warning_min: int = 40
    join_min: int = 40
    premium_min: int = 60
    create_event_min: int = 30
    host_approval_below: int = 50
    good_max_events_per_week: int = 10
    warning_max_events_per_week: int = 3


@dataclass(frozen=True)
class CreditParameters:
    default_score: int = 100
    min_score: int = 0
    max_score: int = 100
    no_show_penalty: int = 30
    completion_bonus: int = 2
    good_rating_bonus: int = 1
    good_rating_threshold: float = 4.0
    consecutive_events_bonus: int = 5
    consecutive_events_required: int = 5
    admin_min_adjustment: int = 1
    admin_max_adjustment: int = 100
    max_write_attempts: int = 3
    # (minimum hours before start, penalty points), checked in order.
    cancellation_tiers: tuple[tuple[float, int], ...] = (
        (48.0, 5),
        (24.0, 10),
        (12.0, 15),
        (2.0, 20),
        (0.0, 25),
    )
    restrictions: RestrictionThresholds = field(default_factory=RestrictionThresholds)


@dataclass(frozen=True)
class CreditEntry:
    """Snapshot of one immutable credit_score_logs row."""

    id: int
    user_id: int
    sequence: int
    change_type: CreditChangeType
    old_score: int
    new_score: int
    change_amount: int
    description: str
    metadata: dict[str, Any]
    created_at: datetime
    event_id: int | None = None


@dataclass(frozen=True)
class RestrictionSet:
    score: int
    tier: RestrictionTier
    can_join_events: bool
    can_join_premium_events: bool
    can_create_events: bool
    requires_host_approval: bool
    max_events_per_week: int | None
    restrictions: tuple[str, ...]
    warning_message: str = ""


@dataclass(frozen=True)
class CreditStatistics:
    user_id: int
    current_score: int
    total_earned: int
    total_lost: int
    total_transactions: int
    penalties_count: int
    bonuses_count: int
    last_30_days_change: int


def clamp_score(value: int, params: CreditParameters) -> int:
    return max(params.min_score, min(value, params.max_score))


def validate_change(change_type: CreditChangeType, raw_change: int, params: CreditParameters) -> None:
    """Reject changes whose sign or size does not fit the change type."""
    direction = direction_of(change_type)
    if direction is CreditDirection.PENALTY and raw_change > 0:
        raise ValidationError(f"{change_type.value} must not increase the score (got {raw_change:+d})")
    if direction is CreditDirection.BONUS and raw_change < 0:
        raise ValidationError(f"{change_type.value} must not decrease the score (got {raw_change:+d})")

    if change_type in ADMIN_CHANGE_TYPES:
        magnitude = abs(raw_change)
        if magnitude < params.admin_min_adjustment or magnitude > params.admin_max_adjustment:
            raise ValidationError(
                f"Manual adjustments must be between {params.admin_min_adjustment} and "
                f"{params.admin_max_adjustment} points (got {magnitude})"
            )


def hours_before(starts_at: datetime, now: datetime) -> float:
    return max(0.0, (starts_at - now).total_seconds() / 3600.0)


def cancellation_penalty(hours_before_start: float, params: CreditParameters) -> int:
    for minimum_hours, penalty in params.cancellation_tiers:
        if hours_before_start >= minimum_hours:
            return penalty
    return params.cancellation_tiers[-1][1]


class PenaltyLevel(str, Enum):
    NONE = "no_penalty"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CancellationPreview:
    """What cancelling now would cost, before the user commits to it."""

    event_id: int
    hours_remaining: float
    penalty_amount: int
    penalty_level: PenaltyLevel
    can_cancel_free: bool
    warning_message: str


def penalty_level(penalty: int) -> PenaltyLevel:
    if penalty <= 0:
        return PenaltyLevel.NONE
    if penalty <= 10:
        return PenaltyLevel.LOW
    if penalty <= 20:
        return PenaltyLevel.MEDIUM
    return PenaltyLevel.HIGH


def preview_cancellation(event_id: int, hours_before_start: float, params: CreditParameters) -> CancellationPreview:
    penalty = cancellation_penalty(hours_before_start, params)
    if penalty == 0:
        message = "Cancelling now is free."
    else:
        message = f"Cancelling now costs {penalty} credit points ({hours_before_start:.0f}h before start)."
    return CancellationPreview(
        event_id=event_id,
        hours_remaining=hours_before_start,
        penalty_amount=penalty,
        penalty_level=penalty_level(penalty),
        can_cancel_free=penalty == 0,
        warning_message=message,
    )


def completion_streak(types_newest_first: Iterable[CreditChangeType]) -> int:
    """Completion bonuses since the last streak bonus, cancellation or no-show."""
    streak = 0
    for change_type in types_newest_first:
        if change_type in STREAK_BREAKERS:
            break
        if change_type is CreditChangeType.EVENT_COMPLETION_BONUS:
            streak += 1
    return streak


def restriction_tier(score: int, thresholds: RestrictionThresholds) -> RestrictionTier:
    if score >= thresholds.excellent_min:
        return RestrictionTier.EXCELLENT
    if score >= thresholds.good_min:
        return RestrictionTier.GOOD
    if score >= thresholds.warning_min:
        return RestrictionTier.WARNING
    return RestrictionTier.RESTRICTED


def restriction_warning(tier: RestrictionTier, weekly_limit: int | None) -> str:
    if weekly_limit == 0:
        return "Very low credit score. You cannot join new events; contact an admin."
    if tier is RestrictionTier.EXCELLENT:
        return "Excellent credit score. No restrictions."
    if tier is RestrictionTier.GOOD:
        return f"Good credit score. Up to {weekly_limit} events per week."
    if tier is RestrictionTier.WARNING:
        return f"Low credit score. Up to {weekly_limit} events per week and no premium events."
    return "Very low credit score. Your account is under review."


def restrictions_for(score: int, thresholds: RestrictionThresholds) -> RestrictionSet:
    tier = restriction_tier(score, thresholds)
    can_join = score >= thresholds.join_min
    can_join_premium = score >= thresholds.premium_min
    can_create = score >= thresholds.create_event_min
    needs_approval = score < thresholds.host_approval_below

    if not can_join:
        weekly_limit: int | None = 0
    elif tier is RestrictionTier.EXCELLENT:
        weekly_limit = None
    elif tier is RestrictionTier.GOOD:
        weekly_limit = thresholds.good_max_events_per_week
    else:
        weekly_limit = thresholds.warning_max_events_per_week

    codes: list[str] = []
    if not can_join:
        codes.append("no_event_joins")
    elif weekly_limit is not None:
        codes.append("limited_event_joins")
    if not can_join_premium:
        codes.append("no_premium_events")
    if not can_create:
        codes.append("no_event_creation")
    if needs_approval:
        codes.append("host_approval_required")
    if tier is RestrictionTier.RESTRICTED:
        codes.append("account_review")

    return RestrictionSet(
        score=score,
        tier=tier,
        can_join_events=can_join,
        can_join_premium_events=can_join_premium,
        can_create_events=can_create,
        requires_host_approval=needs_approval,
        max_events_per_week=weekly_limit,
        restrictions=tuple(codes),
        warning_message=restriction_warning(tier, weekly_limit),
    )


def verify_chain(entries_oldest_first: Sequence[CreditEntry], params: CreditParameters) -> bool:
    """Check that every entry links to its predecessor and clamps correctly."""
    previous_score = params.default_score
    previous_sequence = 0
    for entry in entries_oldest_first:
        if entry.sequence != previous_sequence + 1:
            return False
        if entry.old_score != previous_score:
            return False
        if entry.new_score != clamp_score(entry.old_score + entry.change_amount, params):
            return False
        previous_score = entry.new_score
        previous_sequence = entry.sequence
    return True

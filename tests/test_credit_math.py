"""Tests for credit clamping, penalty tiers, streaks and restriction tiers."""

from __future__ import annotations

from datetime import datetime

import pytest

from courtside.domain.credit import (
    CreditChangeType,
    CreditEntry,
    CreditParameters,
    PenaltyLevel,
    RestrictionThresholds,
    RestrictionTier,
    cancellation_penalty,
    clamp_score,
    completion_streak,
    preview_cancellation,
    restrictions_for,
    validate_change,
    verify_chain,
)
from courtside.errors import ValidationError

PARAMS = CreditParameters()
THRESHOLDS = RestrictionThresholds()


def test_scores_are_clamped_into_range() -> None:
    assert clamp_score(90 - 30, PARAMS) == 60
    assert clamp_score(10 - 25, PARAMS) == 0
    assert clamp_score(98 + 5, PARAMS) == 100


@pytest.mark.parametrize(
    ("hours", "penalty"),
    [(72.0, 5), (48.0, 5), (30.0, 10), (12.0, 15), (5.0, 20), (2.0, 20), (1.5, 25), (0.0, 25)],
)
def test_cancellation_penalty_grows_as_start_approaches(hours: float, penalty: int) -> None:
    assert cancellation_penalty(hours, PARAMS) == penalty


def test_change_direction_must_match_type() -> None:
    with pytest.raises(ValidationError):
        validate_change(CreditChangeType.NO_SHOW_PENALTY, 30, PARAMS)
    with pytest.raises(ValidationError):
        validate_change(CreditChangeType.EVENT_COMPLETION_BONUS, -2, PARAMS)

    validate_change(CreditChangeType.NO_SHOW_PENALTY, -30, PARAMS)
    validate_change(CreditChangeType.GOOD_RATING_BONUS, 1, PARAMS)


def test_manual_adjustments_must_be_between_one_and_hundred() -> None:
    with pytest.raises(ValidationError):
        validate_change(CreditChangeType.PENALTY, 0, PARAMS)
    with pytest.raises(ValidationError):
        validate_change(CreditChangeType.BONUS, 101, PARAMS)

    validate_change(CreditChangeType.PENALTY, -100, PARAMS)


def test_unknown_change_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        CreditChangeType.parse("refund")
    assert CreditChangeType.parse(" Bonus ") is CreditChangeType.BONUS


def test_completion_streak_stops_at_breakers() -> None:
    completion = CreditChangeType.EVENT_COMPLETION_BONUS
    assert completion_streak([completion] * 5) == 5
    assert completion_streak([completion, CreditChangeType.GOOD_RATING_BONUS, completion]) == 2
    assert completion_streak([completion, completion, CreditChangeType.NO_SHOW_PENALTY, completion]) == 2
    assert completion_streak([CreditChangeType.CONSECUTIVE_EVENTS_BONUS, completion]) == 0


def test_full_score_has_no_restrictions() -> None:
    result = restrictions_for(100, THRESHOLDS)

    assert result.tier is RestrictionTier.EXCELLENT
    assert result.max_events_per_week is None
    assert result.restrictions == ()


def test_good_tier_limits_weekly_joins() -> None:
    result = restrictions_for(65, THRESHOLDS)

    assert result.tier is RestrictionTier.GOOD
    assert result.can_join_premium_events
    assert result.max_events_per_week == 10
    assert result.restrictions == ("limited_event_joins",)


def test_warning_tier_needs_host_approval() -> None:
    result = restrictions_for(45, THRESHOLDS)

    assert result.tier is RestrictionTier.WARNING
    assert result.can_join_events
    assert not result.can_join_premium_events
    assert result.requires_host_approval
    assert result.max_events_per_week == 3


def test_restricted_tier_blocks_joins_but_not_creation_above_thirty() -> None:
    restricted = restrictions_for(35, THRESHOLDS)
    assert restricted.tier is RestrictionTier.RESTRICTED
    assert not restricted.can_join_events
    assert restricted.can_create_events
    assert restricted.max_events_per_week == 0
    assert "account_review" in restricted.restrictions

    assert not restrictions_for(29, THRESHOLDS).can_create_events


def _entry(sequence: int, old: int, new: int, change: int) -> CreditEntry:
    return CreditEntry(
        id=sequence,
        user_id=1,
        sequence=sequence,
        change_type=CreditChangeType.PENALTY if change < 0 else CreditChangeType.BONUS,
        old_score=old,
        new_score=new,
        change_amount=change,
        description="",
        metadata={},
        created_at=datetime(2026, 1, sequence),
    )


def test_verify_chain_detects_gaps_and_bad_links() -> None:
    good = [_entry(1, 100, 70, -30), _entry(2, 70, 80, 10)]
    assert verify_chain(good, PARAMS)
    assert verify_chain([], PARAMS)

    assert not verify_chain([_entry(1, 100, 70, -30), _entry(3, 70, 80, 10)], PARAMS)
    assert not verify_chain([_entry(1, 100, 70, -30), _entry(2, 75, 85, 10)], PARAMS)
    assert not verify_chain([_entry(1, 90, 60, -30)], PARAMS)


@pytest.mark.parametrize(
    ("hours", "amount", "level"),
    [(72.0, 5, PenaltyLevel.LOW), (13.0, 15, PenaltyLevel.MEDIUM), (1.0, 25, PenaltyLevel.HIGH)],
)
def test_cancellation_preview_levels(hours: float, amount: int, level: PenaltyLevel) -> None:
    preview = preview_cancellation(7, hours, PARAMS)

    assert preview.event_id == 7
    assert preview.penalty_amount == amount
    assert preview.penalty_level is level
    assert not preview.can_cancel_free
    assert f"{amount} credit points" in preview.warning_message


def test_cancellation_preview_with_a_free_tier() -> None:
    params = CreditParameters(cancellation_tiers=((24.0, 0), (0.0, 10)))

    preview = preview_cancellation(1, 30.0, params)

    assert preview.can_cancel_free
    assert preview.penalty_level is PenaltyLevel.NONE
    assert preview.warning_message == "Cancelling now is free."


@pytest.mark.parametrize(
    ("score", "fragment"),
    [(95, "No restrictions"), (70, "Up to 10 events"), (45, "Up to 3 events"), (20, "cannot join")],
)
def test_restrictions_carry_a_warning_message(score: int, fragment: str) -> None:
    assert fragment in restrictions_for(score, THRESHOLDS).warning_message

"""Tests for event status changes and participation credit triggers."""

from __future__ import annotations

from datetime import timedelta

import pytest

from courtside.domain.common import EventStatus, ParticipantStatus
from courtside.domain.credit import CreditChangeType
from courtside.errors import ConflictError, PermissionDeniedError, ValidationError
from courtside.services import Services

from conftest import NOW, Seed


def test_status_machine_rejects_illegal_moves(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.DRAFT)

    with pytest.raises(ValidationError):
        services.lifecycle.transition(event_id, "completed")

    result = services.lifecycle.transition(event_id, EventStatus.PUBLISHED)
    assert (result.old_status, result.new_status) == (EventStatus.DRAFT, EventStatus.PUBLISHED)

    services.lifecycle.transition(event_id, "cancelled")
    with pytest.raises(ValidationError):
        services.lifecycle.transition(event_id, "published")
    with pytest.raises(ValidationError):
        services.lifecycle.transition(event_id, "postponed")


def test_starting_an_event_runs_matchmaking(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    event_id = seed.event(sport_id, status=EventStatus.PUBLISHED)
    seed.players(event_id, sport_id, {1: 1300, 2: 1250, 3: 900})

    result = services.lifecycle.transition(event_id, "ongoing")

    assert result.matchmaking is not None
    assert [match.player_ids for match in result.matchmaking.matches] == [(1, 2)]
    assert [player.user_id for player in result.matchmaking.waiting] == [3]


def test_join_confirms_and_fills_event(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.PUBLISHED, max_participants=2)

    first = services.lifecycle.join_event(event_id, 1, now=NOW)
    services.lifecycle.join_event(event_id, 2, now=NOW)

    assert first.status is ParticipantStatus.CONFIRMED
    assert services.matchmaking.get_status(event_id).event_status is EventStatus.FULL
    with pytest.raises(ConflictError):
        services.lifecycle.join_event(event_id, 3, now=NOW)
    with pytest.raises(ConflictError):
        services.lifecycle.join_event(event_id, 1, now=NOW)


def test_join_enforces_credit_restrictions(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    regular = seed.event(sport_id, status=EventStatus.PUBLISHED)
    premium = seed.event(sport_id, status=EventStatus.PUBLISHED, is_premium=True)
    services.ledger.apply_adjustment(7, "penalty", -65)
    services.ledger.apply_adjustment(8, "penalty", -55)

    with pytest.raises(PermissionDeniedError):
        services.lifecycle.join_event(regular, 7, now=NOW)
    with pytest.raises(PermissionDeniedError):
        services.lifecycle.join_event(premium, 8, now=NOW)

    joined = services.lifecycle.join_event(regular, 8, now=NOW)
    assert joined.status is ParticipantStatus.REGISTERED


def test_join_enforces_weekly_limit(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    events = [seed.event(sport_id, status=EventStatus.PUBLISHED) for _ in range(4)]
    services.ledger.apply_adjustment(8, "penalty", -55)

    for event_id in events[:3]:
        services.lifecycle.join_event(event_id, 8, now=NOW)
    with pytest.raises(PermissionDeniedError):
        services.lifecycle.join_event(events[3], 8, now=NOW)

    services.lifecycle.join_event(events[3], 8, now=NOW + timedelta(days=8))


def test_join_enforces_skill_level(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    event_id = seed.event(sport_id, status=EventStatus.PUBLISHED, skill_level_required=3)
    seed.rating(2, sport_id, 1250)

    with pytest.raises(ValidationError):
        services.lifecycle.join_event(event_id, 1, now=NOW)
    services.lifecycle.join_event(event_id, 2, now=NOW)


def test_check_in_requires_registration(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.PUBLISHED)
    services.lifecycle.join_event(event_id, 1, now=NOW)

    checked_in = services.lifecycle.check_in(event_id, 1, at=NOW)

    assert checked_in.status is ParticipantStatus.CHECKED_IN
    assert checked_in.checked_in_at == NOW
    with pytest.raises(ValidationError):
        services.lifecycle.check_in(event_id, 1)
    with pytest.raises(ValidationError):
        services.lifecycle.check_in(event_id, 2)


@pytest.mark.parametrize(("hours_before", "penalty"), [(72, 5), (30, 10), (13, 15), (3, 20), (1, 25)])
def test_cancellation_penalty_depends_on_notice(
    services: Services,
    seed: Seed,
    hours_before: int,
    penalty: int,
) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.PUBLISHED, starts_at=NOW + timedelta(hours=hours_before))
    services.lifecycle.join_event(event_id, 1, now=NOW)

    entry = services.lifecycle.cancel_participation(event_id, 1, reason="injury", now=NOW)

    assert entry is not None
    assert entry.change_type is CreditChangeType.CANCELLATION_PENALTY
    assert entry.change_amount == -penalty
    assert entry.metadata["cancellation_hours_before"] == pytest.approx(hours_before)


def test_cancellation_frees_the_seat(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.PUBLISHED, max_participants=1)
    services.lifecycle.join_event(event_id, 1, now=NOW)
    assert services.matchmaking.get_status(event_id).event_status is EventStatus.FULL

    services.lifecycle.cancel_participation(event_id, 1, now=NOW)

    assert services.matchmaking.get_status(event_id).event_status is EventStatus.PUBLISHED
    assert services.ledger.current_score(1) == 95


def test_rejoining_and_cancelling_late_is_charged_again(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.PUBLISHED, starts_at=NOW + timedelta(hours=72))
    services.lifecycle.join_event(event_id, 1, now=NOW)
    early = services.lifecycle.cancel_participation(event_id, 1, now=NOW)

    services.lifecycle.join_event(event_id, 1, now=NOW + timedelta(hours=70))
    late = services.lifecycle.cancel_participation(event_id, 1, now=NOW + timedelta(hours=71))

    assert early is not None and early.change_amount == -5
    assert late is not None and late.change_amount == -25
    assert (late.old_score, late.new_score) == (95, 70)
    assert services.ledger.current_score(1) == 70
    assert services.ledger.verify_chain(1)


@pytest.mark.parametrize(("hours_before", "penalty"), [(72, 5), (1, 25)])
def test_cancellation_preview_matches_the_charge(
    services: Services,
    seed: Seed,
    hours_before: int,
    penalty: int,
) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.PUBLISHED, starts_at=NOW + timedelta(hours=hours_before))
    services.lifecycle.join_event(event_id, 1, now=NOW)

    preview = services.lifecycle.cancellation_preview(event_id, now=NOW)
    entry = services.lifecycle.cancel_participation(event_id, 1, now=NOW)

    assert preview.hours_remaining == pytest.approx(hours_before)
    assert preview.penalty_amount == penalty
    assert entry is not None
    assert entry.change_amount == -preview.penalty_amount


def test_no_show_costs_thirty_points_once(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.ONGOING)
    seed.participant(event_id, 4, status=ParticipantStatus.CONFIRMED)

    entry = services.lifecycle.report_no_show(event_id, 4, reported_by=1, reason="did not arrive")
    repeat = services.lifecycle.report_no_show(event_id, 4, reported_by=1)

    assert entry is not None
    assert (entry.old_score, entry.new_score) == (100, 70)
    assert entry.metadata == {"reported_by": 1, "reason": "did not arrive"}
    assert repeat is None
    assert services.ledger.current_score(4) == 70


def test_no_show_requires_started_event_and_absent_player(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    upcoming = seed.event(sport_id, status=EventStatus.PUBLISHED)
    started = seed.event(sport_id, status=EventStatus.ONGOING)
    seed.participant(upcoming, 4, status=ParticipantStatus.CONFIRMED)
    seed.participant(started, 5)

    with pytest.raises(ValidationError):
        services.lifecycle.report_no_show(upcoming, 4, reported_by=1)
    with pytest.raises(ValidationError):
        services.lifecycle.report_no_show(started, 5, reported_by=1)


def test_completion_awards_attendees_and_streak_bonus(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    services.ledger.apply_adjustment(3, "penalty", -50)

    for _ in range(5):
        event_id = seed.event(sport_id, status=EventStatus.ONGOING)
        seed.participant(event_id, 3)
        seed.participant(event_id, 4, status=ParticipantStatus.NO_SHOW)
        result = services.lifecycle.transition(event_id, "completed", now=NOW)

    kinds = [entry.change_type for entry in result.credit_entries]
    assert kinds == [CreditChangeType.EVENT_COMPLETION_BONUS, CreditChangeType.CONSECUTIVE_EVENTS_BONUS]
    assert services.ledger.current_score(3) == 50 + 5 * 2 + 5
    assert services.ledger.history(4) == []


def test_good_rating_bonus(services: Services, seed: Seed) -> None:
    event_id = seed.event(seed.sport(), status=EventStatus.COMPLETED)
    seed.participant(event_id, 3)
    services.ledger.apply_adjustment(3, "penalty", -10)

    assert services.lifecycle.record_good_rating(event_id, 3, overall_rating=3.5, rated_by=9) is None
    entry = services.lifecycle.record_good_rating(event_id, 3, overall_rating=4.5, rated_by=9)
    assert entry is not None and entry.new_score == 91
    assert services.lifecycle.record_good_rating(event_id, 3, overall_rating=5.0, rated_by=8) is None

    with pytest.raises(ValidationError):
        services.lifecycle.record_good_rating(event_id, 3, overall_rating=4.5, rated_by=3)
    with pytest.raises(ValidationError):
        services.lifecycle.record_good_rating(event_id, 3, overall_rating=6.0, rated_by=9)

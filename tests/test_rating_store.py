"""Tests for reading and updating stored ratings."""

from __future__ import annotations

import pytest

from courtside.domain.common import Outcome
from courtside.errors import ValidationError
from courtside.services import Services

from conftest import Seed


def test_unrated_user_gets_default_snapshot(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()

    rating = services.ratings.get_rating(42, sport_id)

    assert rating.mmr == 1000
    assert rating.level == 1
    assert rating.skill_label == "Beginner"
    assert rating.matches_played == 0
    assert not rating.persisted


def test_loss_creates_row_and_counts_decided_match(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()

    rating = services.ratings.apply_result(42, sport_id, -20, Outcome.LOSS)

    assert rating.persisted
    assert rating.mmr == 980
    assert (rating.matches_played, rating.wins, rating.losses, rating.draws) == (1, 0, 1, 0)
    assert rating.win_rate == 0.0
    assert services.ratings.get_rating(42, sport_id).mmr == 980


def test_draw_only_increments_draws(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()
    services.ratings.apply_result(42, sport_id, 20, "win")

    rating = services.ratings.apply_result(42, sport_id, 0, "draw")

    assert (rating.matches_played, rating.wins, rating.losses, rating.draws) == (1, 1, 0, 1)
    assert rating.win_rate == pytest.approx(100.0)


def test_level_is_recomputed_from_new_mmr(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()

    rating = services.ratings.apply_result(42, sport_id, 150, Outcome.WIN)

    assert rating.mmr == 1150
    assert rating.level == 2


def test_result_below_floor_is_rejected_without_writing(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()

    with pytest.raises(ValidationError):
        services.ratings.apply_result(42, sport_id, -1001, Outcome.LOSS)

    assert not services.ratings.get_rating(42, sport_id).persisted


def test_unknown_outcome_is_rejected(services: Services, seed: Seed) -> None:
    sport_id = seed.sport()

    with pytest.raises(ValidationError):
        services.ratings.apply_result(42, sport_id, 10, "forfeit")

"""Tests for adjacent MMR pairing."""

from __future__ import annotations

import pytest

from courtside.domain.pairing import PairingCandidate, calculate_match_quality, pair_adjacent
from courtside.errors import ValidationError


def _candidates(mmr_by_user: dict[int, int]) -> list[PairingCandidate]:
    return [PairingCandidate(user_id=user_id, mmr=mmr) for user_id, mmr in mmr_by_user.items()]


def test_five_players_pair_neighbours_and_lowest_waits() -> None:
    plan = pair_adjacent(_candidates({5: 1000, 1: 1800, 3: 1500, 2: 1600, 4: 1200}))

    assert [(pair.player1.user_id, pair.player2.user_id) for pair in plan.pairs] == [(1, 2), (3, 4)]
    assert [candidate.user_id for candidate in plan.waiting] == [5]
    assert [pair.skill_difference for pair in plan.pairs] == [200, 300]
    assert [pair.match_quality for pair in plan.pairs] == [pytest.approx(80.0), pytest.approx(70.0)]


def test_equal_mmr_breaks_ties_by_user_id() -> None:
    plan = pair_adjacent(_candidates({7: 1500, 3: 1500, 5: 1400}))

    assert plan.pairs[0].key == "3:7"
    assert plan.pairs[0].player1.user_id == 3
    assert [candidate.user_id for candidate in plan.waiting] == [5]


def test_skill_tolerance_leaves_outlier_waiting() -> None:
    plan = pair_adjacent(_candidates({1: 1800, 2: 1200, 3: 1150}), skill_tolerance=100)

    assert [pair.key for pair in plan.pairs] == ["2:3"]
    assert [candidate.user_id for candidate in plan.waiting] == [1]


def test_empty_and_single_pools() -> None:
    assert pair_adjacent([]).pairs == ()
    single = pair_adjacent(_candidates({9: 1000}))
    assert single.pairs == ()
    assert [candidate.user_id for candidate in single.waiting] == [9]


def test_duplicate_user_is_rejected() -> None:
    with pytest.raises(ValidationError):
        pair_adjacent([PairingCandidate(1, 1000), PairingCandidate(1, 1100)])


def test_match_quality_bottoms_out_at_zero() -> None:
    assert calculate_match_quality(0) == pytest.approx(100.0)
    assert calculate_match_quality(55) == pytest.approx(94.5)
    assert calculate_match_quality(1500) == pytest.approx(0.0)


def test_played_pairs_are_paired_around() -> None:
    plan = pair_adjacent(
        _candidates({1: 1800, 2: 1600, 3: 1500, 4: 1200}),
        excluded_keys={"1:2", "3:4"},
    )

    assert [pair.key for pair in plan.pairs] == ["1:3", "2:4"]
    assert plan.waiting == ()


def test_player_who_met_everyone_in_range_waits() -> None:
    plan = pair_adjacent(
        _candidates({1: 1800, 2: 1750, 3: 1000, 4: 990}),
        skill_tolerance=100,
        excluded_keys={"1:2"},
    )

    assert [pair.key for pair in plan.pairs] == ["3:4"]
    assert [candidate.user_id for candidate in plan.waiting] == [1, 2]

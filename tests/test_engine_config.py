"""Tests for TOML-based engine config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from courtside.domain.config import (
    DEFAULT_CONFIG_PATH,
    default_engine_config,
    load_engine_config,
    load_engine_configs,
)


def test_bundled_default_config_matches_built_in_defaults() -> None:
    loaded = load_engine_config(DEFAULT_CONFIG_PATH)
    built_in = default_engine_config()

    assert loaded.name == "default"
    assert loaded.rating == built_in.rating
    assert loaded.matchmaking == built_in.matchmaking
    assert loaded.credit == built_in.credit


def test_load_engine_configs_from_directory(tmp_path: Path) -> None:
    (tmp_path / "club.toml").write_text(
        """
[system]
name = "club"
description = "Fixed deltas and strict pairing"

[rating]
delta_policy = "fixed"
fixed_delta = 25

[matchmaking]
skill_tolerance = 250
estimated_duration_minutes = 45

[credit]
no_show_penalty = 40
cancellation_tiers = [[24, 5], [0, 15]]

[credit.restrictions]
join_min = 50
""".strip()
    )

    configs = load_engine_configs(tmp_path)
    assert len(configs) == 1

    config = configs[0]
    assert config.name == "club"
    assert config.description == "Fixed deltas and strict pairing"
    assert config.rating.delta_policy == "fixed"
    assert config.rating.fixed_delta == 25
    assert config.rating.k_factor == pytest.approx(40.0)
    assert config.matchmaking.skill_tolerance == 250
    assert config.matchmaking.estimated_duration_minutes == 45
    assert config.credit.no_show_penalty == 40
    assert config.credit.cancellation_tiers == ((24.0, 5), (0.0, 15))
    assert config.credit.restrictions.join_min == 50
    assert config.credit.restrictions.premium_min == 60
    assert config.as_config_json()["matchmaking"]["skill_tolerance"] == 250


def test_duplicate_names_are_rejected(tmp_path: Path) -> None:
    for file_name in ("a.toml", "b.toml"):
        (tmp_path / file_name).write_text('[system]\nname = "same"\n')

    with pytest.raises(ValueError, match="Duplicate"):
        load_engine_configs(tmp_path)


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ('[system]\nname = ""\n', r"\[system\].name"),
        ('[system]\nname = "x"\n[rating]\nmmr_floor = -1\n', r"\[rating\].mmr_floor"),
        ('[system]\nname = "x"\n[rating]\ndelta_policy = "glicko"\n', r"\[rating\].delta_policy"),
        ('[system]\nname = "x"\n[rating]\nlevel_thresholds = [0, 1200, 1100]\n', r"level_thresholds"),
        ('[system]\nname = "x"\n[matchmaking]\nestimated_duration_minutes = 0\n', r"estimated_duration"),
        ('[system]\nname = "x"\n[credit]\ncancellation_tiers = [[24, 5], [2, 10]]\n', r"cancellation_tiers"),
        ('[system]\nname = "x"\n[credit]\ndefault_score = 120\n', r"default_score"),
    ],
)
def test_invalid_values_are_reported_with_file_path(tmp_path: Path, body: str, message: str) -> None:
    config_path = tmp_path / "broken.toml"
    config_path.write_text(body)

    with pytest.raises(ValueError, match=message) as excinfo:
        load_engine_config(config_path)
    assert str(config_path) in str(excinfo.value)

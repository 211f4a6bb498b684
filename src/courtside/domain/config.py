"""Load engine configuration (rating, matchmaking, credit) from TOML files."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from courtside.domain.config_base import BaseConfig, load_config_dir, load_config_file
from courtside.domain.credit import CreditParameters, RestrictionThresholds
from courtside.domain.pairing import MatchmakingParameters
from courtside.domain.rating import DELTA_POLICIES, RatingParameters

ROOT_DIR = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_PATH = ROOT_DIR / "configs" / "engine" / "default.toml"


@dataclass(frozen=True)
class EngineConfig(BaseConfig):
    """Configuration for one engine deployment."""

    rating: RatingParameters = field(default_factory=RatingParameters)
    matchmaking: MatchmakingParameters = field(default_factory=MatchmakingParameters)
    credit: CreditParameters = field(default_factory=CreditParameters)

    def as_config_json(self) -> dict[str, Any]:
        return {
            "rating": asdict(self.rating),
            "matchmaking": asdict(self.matchmaking),
            "credit": asdict(self.credit),
        }


def default_engine_config() -> EngineConfig:
    return EngineConfig(name="default", description=None, file_path=DEFAULT_CONFIG_PATH)


def load_engine_config(file_path: Path = DEFAULT_CONFIG_PATH) -> EngineConfig:
    """Load and validate one engine TOML config file."""
    return load_config_file(file_path, _parse_engine_config)


def load_engine_configs(config_dir: Path) -> list[EngineConfig]:
    """Load and validate all engine TOML config files in a directory."""
    return load_config_dir(config_dir, _parse_engine_config, duplicate_name_label="engine")


def _parse_engine_config(raw: dict[str, Any], file_path: Path) -> EngineConfig:
    system_raw = raw.get("system", {})

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)

    return EngineConfig(
        name=name,
        description=description,
        file_path=file_path,
        rating=_parse_rating(raw.get("rating", {}), file_path),
        matchmaking=_parse_matchmaking(raw.get("matchmaking", {}), file_path),
        credit=_parse_credit(raw.get("credit", {}), file_path),
    )


def _parse_rating(rating_raw: dict[str, Any], file_path: Path) -> RatingParameters:
    defaults = RatingParameters()
    parameters = RatingParameters(
        initial_mmr=int(rating_raw.get("initial_mmr", defaults.initial_mmr)),
        mmr_floor=int(rating_raw.get("mmr_floor", defaults.mmr_floor)),
        delta_policy=str(rating_raw.get("delta_policy", defaults.delta_policy)).strip().lower(),
        fixed_delta=int(rating_raw.get("fixed_delta", defaults.fixed_delta)),
        k_factor=float(rating_raw.get("k_factor", defaults.k_factor)),
        scale_factor=float(rating_raw.get("scale_factor", defaults.scale_factor)),
        min_delta=int(rating_raw.get("min_delta", defaults.min_delta)),
        max_delta=int(rating_raw.get("max_delta", defaults.max_delta)),
        level_thresholds=tuple(
            int(value) for value in rating_raw.get("level_thresholds", defaults.level_thresholds)
        ),
    )

    if parameters.mmr_floor < 0:
        raise ValueError(f"{file_path}: [rating].mmr_floor must be >= 0")
    if parameters.initial_mmr < parameters.mmr_floor:
        raise ValueError(f"{file_path}: [rating].initial_mmr must be >= mmr_floor")
    if parameters.delta_policy not in DELTA_POLICIES:
        raise ValueError(f"{file_path}: [rating].delta_policy must be one of {DELTA_POLICIES}")
    if parameters.k_factor <= 0.0:
        raise ValueError(f"{file_path}: [rating].k_factor must be > 0")
    if parameters.scale_factor <= 0.0:
        raise ValueError(f"{file_path}: [rating].scale_factor must be > 0")
    if parameters.min_delta <= 0 or parameters.max_delta < parameters.min_delta:
        raise ValueError(f"{file_path}: [rating] requires 0 < min_delta <= max_delta")
    if not parameters.min_delta <= parameters.fixed_delta <= parameters.max_delta:
        raise ValueError(f"{file_path}: [rating].fixed_delta must lie within [min_delta, max_delta]")
    if not parameters.level_thresholds:
        raise ValueError(f"{file_path}: [rating].level_thresholds must not be empty")
    if list(parameters.level_thresholds) != sorted(set(parameters.level_thresholds)):
        raise ValueError(f"{file_path}: [rating].level_thresholds must be strictly ascending")
    return parameters


def _parse_matchmaking(matchmaking_raw: dict[str, Any], file_path: Path) -> MatchmakingParameters:
    defaults = MatchmakingParameters()
    tolerance_value = matchmaking_raw.get("skill_tolerance")
    parameters = MatchmakingParameters(
        skill_tolerance=None if tolerance_value is None else int(tolerance_value),
        estimated_duration_minutes=int(
            matchmaking_raw.get("estimated_duration_minutes", defaults.estimated_duration_minutes)
        ),
    )

    if parameters.skill_tolerance is not None and parameters.skill_tolerance < 0:
        raise ValueError(f"{file_path}: [matchmaking].skill_tolerance must be >= 0")
    if parameters.estimated_duration_minutes <= 0:
        raise ValueError(f"{file_path}: [matchmaking].estimated_duration_minutes must be > 0")
    return parameters


def _parse_credit(credit_raw: dict[str, Any], file_path: Path) -> CreditParameters:
    defaults = CreditParameters()
    tiers_raw = credit_raw.get("cancellation_tiers")
    if tiers_raw is None:
        cancellation_tiers = defaults.cancellation_tiers
    else:
        try:
            cancellation_tiers = tuple((float(hours), int(points)) for hours, points in tiers_raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"{file_path}: [credit].cancellation_tiers must be a list of [hours, penalty] pairs"
            ) from exc

    parameters = CreditParameters(
        default_score=int(credit_raw.get("default_score", defaults.default_score)),
        min_score=int(credit_raw.get("min_score", defaults.min_score)),
        max_score=int(credit_raw.get("max_score", defaults.max_score)),
        no_show_penalty=int(credit_raw.get("no_show_penalty", defaults.no_show_penalty)),
        completion_bonus=int(credit_raw.get("completion_bonus", defaults.completion_bonus)),
        good_rating_bonus=int(credit_raw.get("good_rating_bonus", defaults.good_rating_bonus)),
        good_rating_threshold=float(
            credit_raw.get("good_rating_threshold", defaults.good_rating_threshold)
        ),
        consecutive_events_bonus=int(
            credit_raw.get("consecutive_events_bonus", defaults.consecutive_events_bonus)
        ),
        consecutive_events_required=int(
            credit_raw.get("consecutive_events_required", defaults.consecutive_events_required)
        ),
        admin_min_adjustment=int(credit_raw.get("admin_min_adjustment", defaults.admin_min_adjustment)),
        admin_max_adjustment=int(credit_raw.get("admin_max_adjustment", defaults.admin_max_adjustment)),
        max_write_attempts=int(credit_raw.get("max_write_attempts", defaults.max_write_attempts)),
        cancellation_tiers=cancellation_tiers,
        restrictions=_parse_restrictions(credit_raw.get("restrictions", {})),
    )

    if parameters.min_score >= parameters.max_score:
        raise ValueError(f"{file_path}: [credit] requires min_score < max_score")
    if not parameters.min_score <= parameters.default_score <= parameters.max_score:
        raise ValueError(f"{file_path}: [credit].default_score must lie within [min_score, max_score]")
    for key in ("no_show_penalty", "completion_bonus", "good_rating_bonus", "consecutive_events_bonus"):
        if getattr(parameters, key) < 0:
            raise ValueError(f"{file_path}: [credit].{key} must be >= 0")
    if parameters.consecutive_events_required <= 0:
        raise ValueError(f"{file_path}: [credit].consecutive_events_required must be > 0")
    if parameters.admin_min_adjustment <= 0 or parameters.admin_max_adjustment < parameters.admin_min_adjustment:
        raise ValueError(
            f"{file_path}: [credit] requires 0 < admin_min_adjustment <= admin_max_adjustment"
        )
    if parameters.max_write_attempts <= 0:
        raise ValueError(f"{file_path}: [credit].max_write_attempts must be > 0")
    if not parameters.cancellation_tiers:
        raise ValueError(f"{file_path}: [credit].cancellation_tiers must not be empty")
    tier_hours = [hours for hours, _ in parameters.cancellation_tiers]
    if tier_hours != sorted(tier_hours, reverse=True) or tier_hours[-1] != 0.0:
        raise ValueError(
            f"{file_path}: [credit].cancellation_tiers must be ordered by descending hours and end at 0"
        )
    if any(points < 0 for _, points in parameters.cancellation_tiers):
        raise ValueError(f"{file_path}: [credit].cancellation_tiers penalties must be >= 0")
    return parameters


def _parse_restrictions(restrictions_raw: dict[str, Any]) -> RestrictionThresholds:
    defaults = RestrictionThresholds()
    return RestrictionThresholds(
        **{
            key: int(restrictions_raw.get(key, getattr(defaults, key)))
            for key in asdict(defaults)
        }
    )


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "default_engine_config",
    "load_engine_config",
    "load_engine_configs",
]

"""Fair 1v1 pairing of checked-in participants by MMR."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass

from courtside.domain.common import pair_key
from courtside.errors import ValidationError


@dataclass(frozen=True)
class MatchmakingParameters:
    skill_tolerance: int | None = None
    estimated_duration_minutes: int = 60


@dataclass(frozen=True)
class PairingCandidate:
    user_id: int
    mmr: int


@dataclass(frozen=True)
class Pairing:
    player1: PairingCandidate
    player2: PairingCandidate

    @property
    def key(self) -> str:
        return pair_key(self.player1.user_id, self.player2.user_id)

    @property
    def skill_difference(self) -> int:
        return abs(self.player1.mmr - self.player2.mmr)

    @property
    def match_quality(self) -> float:
        return calculate_match_quality(self.skill_difference)


@dataclass(frozen=True)
class PairingPlan:
    pairs: tuple[Pairing, ...]
    waiting: tuple[PairingCandidate, ...]


def calculate_match_quality(skill_difference: int) -> float:
    """0-100 score, 100 for identical ratings, losing one point per 10 MMR of gap."""
    return round(max(0.0, 100.0 - (skill_difference / 10.0)), 1)


def rank_candidates(candidates: Iterable[PairingCandidate]) -> list[PairingCandidate]:
    """Order by MMR descending; equal MMR breaks by ascending user id."""
    return sorted(candidates, key=lambda candidate: (-candidate.mmr, candidate.user_id))


def pair_adjacent(
    candidates: Iterable[PairingCandidate],
    *,
    skill_tolerance: int | None = None,
    excluded_keys: Collection[str] = (),
) -> PairingPlan:
    """Pair 1st with 2nd, 3rd with 4th, ... in rank order.

    With ``skill_tolerance`` set, a neighbour pair whose gap exceeds it is not
    formed: the higher-ranked player waits and pairing resumes from the next
    entry. An odd player out also waits.

    Pairs in ``excluded_keys`` (already played) are skipped: the top remaining
    player takes the closest-ranked opponent they have not met yet, and waits
    when there is none within tolerance.
    """
    ranked = rank_candidates(candidates)
    seen: set[int] = set()
    for candidate in ranked:
        if candidate.user_id in seen:
            raise ValidationError(f"user_id={candidate.user_id} appears twice in the pairing pool")
        seen.add(candidate.user_id)

    pairs: list[Pairing] = []
    waiting: list[PairingCandidate] = []
    remaining = list(ranked)
    while len(remaining) > 1:
        first = remaining.pop(0)
        partner_index = _first_partner(first, remaining, skill_tolerance, excluded_keys)
        if partner_index is None:
            waiting.append(first)
            continue
        pairs.append(Pairing(player1=first, player2=remaining.pop(partner_index)))

    waiting.extend(remaining)
    return PairingPlan(pairs=tuple(pairs), waiting=tuple(waiting))


def _first_partner(
    first: PairingCandidate,
    remaining: list[PairingCandidate],
    skill_tolerance: int | None,
    excluded_keys: Collection[str],
) -> int | None:
    # ``remaining`` is in rank order, so gaps only grow from here.
    for index, candidate in enumerate(remaining):
        if skill_tolerance is not None and abs(first.mmr - candidate.mmr) > skill_tolerance:
            return None
        if pair_key(first.user_id, candidate.user_id) not in excluded_keys:
            return index
    return None


__all__ = [
    "MatchmakingParameters",
    "Pairing",
    "PairingCandidate",
    "PairingPlan",
    "calculate_match_quality",
    "pair_adjacent",
    "rank_candidates",
]

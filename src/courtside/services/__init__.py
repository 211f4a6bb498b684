"""Engine services wired from one session factory and one engine config."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from courtside.domain.config import EngineConfig
from courtside.services.credit_ledger import CreditLedger
from courtside.services.event_lifecycle import EventLifecycle, TransitionResult
from courtside.services.match_recorder import MatchRecorder
from courtside.services.matchmaking import (
    CourtSlot,
    MatchmakingEngine,
    MatchmakingRun,
    MatchmakingStatus,
    WaitingPlayer,
)
from courtside.services.rating_store import RatingStore


@dataclass(frozen=True)
class Services:
    ratings: RatingStore
    recorder: MatchRecorder
    matchmaking: MatchmakingEngine
    ledger: CreditLedger
    lifecycle: EventLifecycle


def build_services(session_factory: sessionmaker[Session], config: EngineConfig) -> Services:
    ratings = RatingStore(session_factory, config.rating)
    matchmaking = MatchmakingEngine(session_factory, ratings, config.matchmaking)
    ledger = CreditLedger(session_factory, config.credit)
    return Services(
        ratings=ratings,
        recorder=MatchRecorder(session_factory, ratings, config.rating),
        matchmaking=matchmaking,
        ledger=ledger,
        lifecycle=EventLifecycle(
            session_factory,
            ledger=ledger,
            matchmaking=matchmaking,
            rating_store=ratings,
            params=config.credit,
        ),
    )


__all__ = [
    "CourtSlot",
    "CreditLedger",
    "EventLifecycle",
    "MatchRecorder",
    "MatchmakingEngine",
    "MatchmakingRun",
    "MatchmakingStatus",
    "RatingStore",
    "Services",
    "TransitionResult",
    "WaitingPlayer",
    "build_services",
]

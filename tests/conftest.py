"""Shared fixtures: an in-memory SQLite database and seed helpers."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from courtside.db import create_session_factory
from courtside.domain.common import SEAT_HOLDING_STATUSES, EventStatus, ParticipantStatus
from courtside.domain.config import EngineConfig, default_engine_config
from courtside.domain.rating import RatingParameters, level_for_mmr
from courtside.models import Event, EventParticipant, Sport, UserSportRating
from courtside.repositories import ensure_schema
from courtside.services import Services, build_services

NOW = datetime(2026, 5, 1, 12, 0)


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection) -> None:  # type: ignore[no-untyped-def]
        connection.exec_driver_sql("BEGIN")

    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def config() -> EngineConfig:
    return default_engine_config()


@pytest.fixture
def services(session_factory: sessionmaker[Session], config: EngineConfig) -> Services:
    return build_services(session_factory, config)


class Seed:
    """Direct inserts for test setup, bypassing the services."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def sport(self, code: str = "badminton") -> int:
        with self.session_factory.begin() as session:
            sport = Sport(code=code, name=code.capitalize())
            session.add(sport)
            session.flush()
            return sport.id

    def event(
        self,
        sport_id: int,
        *,
        host_id: int = 1,
        status: EventStatus = EventStatus.ONGOING,
        starts_at: datetime | None = None,
        max_participants: int = 16,
        max_courts: int = 4,
        is_premium: bool = False,
        auto_confirm: bool = True,
        skill_level_required: int | None = None,
    ) -> int:
        with self.session_factory.begin() as session:
            row = Event(
                sport_id=sport_id,
                host_id=host_id,
                title="Thursday doubles night",
                status=status.value,
                starts_at=starts_at or NOW + timedelta(hours=72),
                max_participants=max_participants,
                current_participants=0,
                max_courts=max_courts,
                is_premium=is_premium,
                auto_confirm_participants=auto_confirm,
                skill_level_required=skill_level_required,
            )
            session.add(row)
            session.flush()
            return row.id

    def participant(
        self,
        event_id: int,
        user_id: int,
        *,
        status: ParticipantStatus = ParticipantStatus.CHECKED_IN,
        premium_protected: bool = False,
    ) -> None:
        with self.session_factory.begin() as session:
            session.add(
                EventParticipant(
                    event_id=event_id,
                    user_id=user_id,
                    status=status.value,
                    is_premium_protected=premium_protected,
                    registered_at=NOW - timedelta(days=10),
                    checked_in_at=NOW if status is ParticipantStatus.CHECKED_IN else None,
                )
            )
            if status in SEAT_HOLDING_STATUSES:
                row = session.get(Event, event_id)
                assert row is not None
                row.current_participants += 1

    def rating(self, user_id: int, sport_id: int, mmr: int) -> None:
        with self.session_factory.begin() as session:
            session.add(
                UserSportRating(
                    user_id=user_id,
                    sport_id=sport_id,
                    mmr=mmr,
                    level=level_for_mmr(mmr, RatingParameters().level_thresholds),
                    matches_played=0,
                    wins=0,
                    losses=0,
                    draws=0,
                    win_rate=0.0,
                )
            )

    def players(self, event_id: int, sport_id: int, mmr_by_user: dict[int, int]) -> None:
        """Check in each user with the given stored MMR."""
        for user_id, mmr in mmr_by_user.items():
            self.rating(user_id, sport_id, mmr)
            self.participant(event_id, user_id)


@pytest.fixture
def seed(session_factory: sessionmaker[Session]) -> Seed:
    return Seed(session_factory)

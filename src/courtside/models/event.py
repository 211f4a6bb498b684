"""events and event_participants table models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from courtside.domain.common import EventStatus, ParticipantStatus, utcnow
from courtside.models.base import Base
from courtside.models.mixins import TimestampMixin


class Event(TimestampMixin, Base):
    """A hosted sports event whose participants are matched and scored."""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(
            "current_participants >= 0 AND current_participants <= max_participants",
            name="ck_events_participant_capacity",
        ),
        CheckConstraint("max_courts > 0", name="ck_events_max_courts"),
        Index("idx_events_host", "host_id"),
        Index("idx_events_status", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sport_id: Mapped[int] = mapped_column(ForeignKey("sports.id"), nullable=False)
    host_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[str] = mapped_column(
        Enum(*[status.value for status in EventStatus], name="event_status", native_enum=False),
        nullable=False,
        default=EventStatus.DRAFT.value,
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_courts: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    skill_level_required: Mapped[int | None] = mapped_column(Integer, nullable=True)
    auto_confirm_participants: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())


class EventParticipant(TimestampMixin, Base):
    """One user's registration for one event."""

    __tablename__ = "event_participants"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
        Index("idx_event_participants_user", "user_id", "registered_at"),
        Index("idx_event_participants_status", "event_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*[status.value for status in ParticipantStatus], name="participant_status", native_enum=False),
        nullable=False,
        default=ParticipantStatus.REGISTERED.value,
    )
    is_premium_protected: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    credit_score_penalty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

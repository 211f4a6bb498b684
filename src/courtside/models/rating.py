"""user_sport_ratings table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from courtside.models.base import Base
from courtside.models.mixins import TimestampMixin


class UserSportRating(TimestampMixin, Base):
    """Current MMR aggregate for one user in one sport.

    Rows are created on a user's first recorded match and only ever updated by
    the match recorder. ``version_id`` makes concurrent updates fail loudly.
    """

    __tablename__ = "user_sport_ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "sport_id", name="uq_user_sport_ratings_user_sport"),
        CheckConstraint("wins + losses = matches_played", name="ck_user_sport_ratings_decided"),
        CheckConstraint("mmr >= 0", name="ck_user_sport_ratings_mmr"),
        Index("idx_user_sport_ratings_mmr", "sport_id", "mmr"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sport_id: Mapped[int] = mapped_column(ForeignKey("sports.id"), nullable=False)
    mmr: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    draws: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_match_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

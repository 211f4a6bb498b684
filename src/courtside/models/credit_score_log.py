"""credit_score_logs table model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from courtside.domain.credit import CreditChangeType
from courtside.models.base import Base
from courtside.models.mixins import CreatedAtMixin, JSONDocument


class CreditScoreLog(CreatedAtMixin, Base):
    """Append-only credit-score ledger entry.

    ``sequence`` numbers each user's entries 1, 2, 3, ...; the unique
    constraint makes two writers racing on the same predecessor collide.
    """

    __tablename__ = "credit_score_logs"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence", name="uq_credit_score_logs_user_sequence"),
        CheckConstraint("new_score >= 0 AND new_score <= 100", name="ck_credit_score_logs_new_score"),
        Index("idx_credit_score_logs_user_created", "user_id", "created_at"),
        Index("idx_credit_score_logs_type", "type"),
        Index("idx_credit_score_logs_event", "event_id", "user_id", "type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event_id: Mapped[int | None] = mapped_column(ForeignKey("events.id"), nullable=True)
    type: Mapped[str] = mapped_column(
        Enum(*[change.value for change in CreditChangeType], name="credit_change_type", native_enum=False),
        nullable=False,
    )
    old_score: Mapped[int] = mapped_column(Integer, nullable=False)
    new_score: Mapped[int] = mapped_column(Integer, nullable=False)
    change_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes.
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSONDocument, nullable=False, default=dict)

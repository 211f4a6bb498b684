"""Event status machine and the participation triggers that feed the credit ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from courtside.db import session_scope
from courtside.domain.common import (
    SEAT_HOLDING_STATUSES,
    EventStatus,
    Participation,
    ParticipantStatus,
    utcnow,
)
from courtside.domain.credit import (
    CancellationPreview,
    CreditChangeType,
    CreditEntry,
    CreditParameters,
    cancellation_penalty,
    completion_streak,
    hours_before,
    preview_cancellation,
)
from courtside.errors import ConflictError, PermissionDeniedError, ValidationError
from courtside.models import Event, EventParticipant
from courtside.repositories import events as event_repo
from courtside.services.credit_ledger import CreditLedger
from courtside.services.matchmaking import MatchmakingEngine, MatchmakingRun
from courtside.services.rating_store import RatingStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.DRAFT: frozenset({EventStatus.PUBLISHED, EventStatus.CANCELLED}),
    EventStatus.PUBLISHED: frozenset({EventStatus.FULL, EventStatus.ONGOING, EventStatus.CANCELLED}),
    EventStatus.FULL: frozenset({EventStatus.PUBLISHED, EventStatus.ONGOING, EventStatus.CANCELLED}),
    EventStatus.ONGOING: frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED}),
    EventStatus.COMPLETED: frozenset(),
    EventStatus.CANCELLED: frozenset(),
}

JOINABLE_STATUSES = frozenset({EventStatus.PUBLISHED})
CANCELLABLE_STATUSES = frozenset({EventStatus.PUBLISHED, EventStatus.FULL})
CHECK_IN_STATUSES = frozenset({EventStatus.PUBLISHED, EventStatus.FULL, EventStatus.ONGOING})
NO_SHOW_STATUSES = frozenset({EventStatus.ONGOING, EventStatus.COMPLETED})

MIN_OVERALL_RATING = 1.0
MAX_OVERALL_RATING = 5.0


@dataclass(frozen=True)
class TransitionResult:
    event_id: int
    old_status: EventStatus
    new_status: EventStatus
    matchmaking: MatchmakingRun | None = None
    credit_entries: tuple[CreditEntry, ...] = ()


class EventLifecycle:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        ledger: CreditLedger,
        matchmaking: MatchmakingEngine,
        rating_store: RatingStore,
        params: CreditParameters,
    ) -> None:
        self.session_factory = session_factory
        self.ledger = ledger
        self.matchmaking = matchmaking
        self.rating_store = rating_store
        self.params = params

    def transition(
        self,
        event_id: int,
        new_status: EventStatus | str,
        *,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Move an event to ``new_status``.

        Entering ``ongoing`` runs matchmaking; entering ``completed`` awards
        completion (and streak) bonuses to every checked-in participant.
        """
        target = _parse_status(new_status)
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id, for_update=True)
            current = EventStatus(event.status)
            if target not in ALLOWED_TRANSITIONS[current]:
                raise ValidationError(
                    f"event_id={event_id} cannot move from {current.value} to {target.value}",
                    f"An event that is {current.value} cannot become {target.value}.",
                )
            event.status = target.value
            session.flush()
            logger.info("event_id=%s: %s -> %s", event_id, current.value, target.value)

            run: MatchmakingRun | None = None
            entries: tuple[CreditEntry, ...] = ()
            if target is EventStatus.ONGOING:
                run = self.matchmaking.create_fair_matches(event_id, session=session)
            elif target is EventStatus.COMPLETED:
                entries = self._award_completion(session, event, now or utcnow())
            return TransitionResult(
                event_id=event_id,
                old_status=current,
                new_status=target,
                matchmaking=run,
                credit_entries=entries,
            )

    def join_event(self, event_id: int, user_id: int, *, now: datetime | None = None) -> Participation:
        """Register ``user_id`` for an event, enforcing credit restrictions and capacity."""
        now = now or utcnow()
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id, for_update=True)
            status = EventStatus(event.status)
            if status is EventStatus.FULL:
                raise ConflictError(f"event_id={event_id} is full", "This event is full.")
            if status not in JOINABLE_STATUSES:
                raise ValidationError(
                    f"event_id={event_id} is {status.value}; it does not accept participants",
                    "This event is not open for registration.",
                )

            participant = event_repo.get_participant(session, event_id, user_id, for_update=True)
            if participant is not None and participant.status != ParticipantStatus.CANCELLED.value:
                raise ConflictError(
                    f"user_id={user_id} is already {participant.status} in event_id={event_id}",
                    "You are already registered for this event.",
                )

            restrictions = self.ledger.get_restrictions(user_id, session=session)
            if not restrictions.can_join_events:
                raise PermissionDeniedError(
                    f"user_id={user_id} credit score {restrictions.score} is too low to join events",
                    "Your credit score is too low to join events.",
                )
            if event.is_premium and not restrictions.can_join_premium_events:
                raise PermissionDeniedError(
                    f"user_id={user_id} credit score {restrictions.score} is too low for premium events",
                    "Your credit score is too low to join premium events.",
                )
            if restrictions.max_events_per_week is not None:
                joined = event_repo.count_joins_since(session, user_id, now - timedelta(days=7))
                if joined >= restrictions.max_events_per_week:
                    raise PermissionDeniedError(
                        f"user_id={user_id} reached the weekly limit of {restrictions.max_events_per_week} events",
                        "You have reached your weekly event limit.",
                    )
            if event.skill_level_required is not None:
                level = self.rating_store.get_rating(user_id, event.sport_id, session=session).level
                if level < event.skill_level_required:
                    raise ValidationError(
                        f"user_id={user_id} level {level} is below the required {event.skill_level_required}",
                        "Your skill level is below what this event requires.",
                    )
            if event.current_participants >= event.max_participants:
                raise ConflictError(f"event_id={event_id} is full", "This event is full.")

            confirmed = event.auto_confirm_participants and not restrictions.requires_host_approval
            new_status = ParticipantStatus.CONFIRMED if confirmed else ParticipantStatus.REGISTERED
            if participant is None:
                participant = EventParticipant(event_id=event_id, user_id=user_id)
                session.add(participant)
            participant.status = new_status.value
            participant.registered_at = now
            participant.checked_in_at = None
            participant.cancellation_reason = None
            participant.credit_score_penalty = 0

            event.current_participants += 1
            if event.current_participants >= event.max_participants:
                event.status = EventStatus.FULL.value
            try:
                session.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    f"user_id={user_id} registered concurrently for event_id={event_id}",
                    "You are already registered for this event.",
                ) from exc

            logger.info("user_id=%s joined event_id=%s as %s", user_id, event_id, new_status.value)
            return _participation(participant)

    def check_in(self, event_id: int, user_id: int, *, at: datetime | None = None) -> Participation:
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id)
            status = EventStatus(event.status)
            if status not in CHECK_IN_STATUSES:
                raise ValidationError(
                    f"event_id={event_id} is {status.value}; check-in is closed",
                    "Check-in is not open for this event.",
                )
            participant = self._require_participant(session, event_id, user_id)
            if participant.status not in (ParticipantStatus.REGISTERED.value, ParticipantStatus.CONFIRMED.value):
                raise ValidationError(
                    f"user_id={user_id} is {participant.status} in event_id={event_id}; cannot check in",
                    "You cannot check in to this event.",
                )
            participant.status = ParticipantStatus.CHECKED_IN.value
            participant.checked_in_at = at or utcnow()
            session.flush()
            logger.info("user_id=%s checked in to event_id=%s", user_id, event_id)
            return _participation(participant)

    def cancel_participation(
        self,
        event_id: int,
        user_id: int,
        *,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> CreditEntry | None:
        """Withdraw from an event; the penalty grows as the start approaches."""
        now = now or utcnow()
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id, for_update=True)
            status = EventStatus(event.status)
            if status not in CANCELLABLE_STATUSES:
                raise ValidationError(
                    f"event_id={event_id} is {status.value}; participation can no longer be cancelled",
                    "You can no longer cancel for this event.",
                )
            participant = self._require_participant(session, event_id, user_id)
            held_seat = ParticipantStatus(participant.status) in SEAT_HOLDING_STATUSES
            if not held_seat and participant.status != ParticipantStatus.WAITING.value:
                raise ValidationError(
                    f"user_id={user_id} is {participant.status} in event_id={event_id}; nothing to cancel",
                    "You are not registered for this event.",
                )

            participant.status = ParticipantStatus.CANCELLED.value
            participant.cancellation_reason = reason
            if held_seat:
                event.current_participants -= 1
                if status is EventStatus.FULL:
                    event.status = EventStatus.PUBLISHED.value
            if not held_seat:
                session.flush()
                logger.info("user_id=%s left the waiting list of event_id=%s", user_id, event_id)
                return None

            # Every cancellation of a held seat is charged, including after a rejoin.
            hours = hours_before(event.starts_at, now)
            penalty = cancellation_penalty(hours, self.params)
            entry = self.ledger.apply_adjustment(
                user_id,
                CreditChangeType.CANCELLATION_PENALTY,
                -penalty,
                metadata={"cancellation_hours_before": round(hours, 2), "reason": reason},
                event_id=event_id,
                at=now,
                session=session,
            )
            participant.credit_score_penalty = -entry.change_amount
            session.flush()
            logger.info(
                "user_id=%s cancelled event_id=%s %.1fh before start (penalty %s)",
                user_id,
                event_id,
                hours,
                participant.credit_score_penalty,
            )
            return entry

    def cancellation_preview(self, event_id: int, *, now: datetime | None = None) -> CancellationPreview:
        """The penalty ``cancel_participation`` would charge at ``now``."""
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id)
            starts_at = event.starts_at
        return preview_cancellation(event_id, hours_before(starts_at, now or utcnow()), self.params)

    def report_no_show(
        self,
        event_id: int,
        user_id: int,
        *,
        reported_by: int,
        reason: str | None = None,
    ) -> CreditEntry | None:
        with session_scope(self.session_factory) as session:
            event = event_repo.require_event(session, event_id, for_update=True)
            status = EventStatus(event.status)
            if status not in NO_SHOW_STATUSES:
                raise ValidationError(
                    f"event_id={event_id} is {status.value}; no-shows are reported once it has started",
                    "No-shows can only be reported after the event starts.",
                )
            participant = self._require_participant(session, event_id, user_id)
            if participant.status not in (
                ParticipantStatus.REGISTERED.value,
                ParticipantStatus.CONFIRMED.value,
                ParticipantStatus.NO_SHOW.value,
            ):
                raise ValidationError(
                    f"user_id={user_id} is {participant.status} in event_id={event_id}; not a no-show",
                    "This participant cannot be reported as a no-show.",
                )
            if participant.status != ParticipantStatus.NO_SHOW.value:
                participant.status = ParticipantStatus.NO_SHOW.value
                event.current_participants -= 1

            entry = self.ledger.apply_event_adjustment(
                user_id,
                event_id,
                CreditChangeType.NO_SHOW_PENALTY,
                -self.params.no_show_penalty,
                metadata={"reported_by": reported_by, "reason": reason},
                session=session,
            )
            if entry is not None:
                participant.credit_score_penalty = -entry.change_amount
            session.flush()
            logger.info(
                "user_id=%s reported as no-show in event_id=%s by user_id=%s", user_id, event_id, reported_by
            )
            return entry

    def record_good_rating(
        self,
        event_id: int,
        user_id: int,
        *,
        overall_rating: float,
        rated_by: int,
    ) -> CreditEntry | None:
        """Award the good-rating bonus when ``overall_rating`` reaches the threshold."""
        if not MIN_OVERALL_RATING <= overall_rating <= MAX_OVERALL_RATING:
            raise ValidationError(
                f"overall_rating={overall_rating} is outside {MIN_OVERALL_RATING}..{MAX_OVERALL_RATING}"
            )
        if rated_by == user_id:
            raise ValidationError("Participants cannot rate themselves")
        if overall_rating < self.params.good_rating_threshold:
            return None

        with session_scope(self.session_factory) as session:
            event_repo.require_event(session, event_id)
            participant = self._require_participant(session, event_id, user_id)
            if participant.status != ParticipantStatus.CHECKED_IN.value:
                raise ValidationError(
                    f"user_id={user_id} did not attend event_id={event_id}",
                    "Only attendees can receive rating bonuses.",
                )
            return self.ledger.apply_event_adjustment(
                user_id,
                event_id,
                CreditChangeType.GOOD_RATING_BONUS,
                self.params.good_rating_bonus,
                metadata={"rated_by": rated_by, "overall_rating": overall_rating},
                session=session,
            )

    def _award_completion(self, session: Session, event: Event, now: datetime) -> tuple[CreditEntry, ...]:
        entries: list[CreditEntry] = []
        attendees = event_repo.list_participants(session, event.id, [ParticipantStatus.CHECKED_IN])
        for participant in attendees:
            entry = self.ledger.apply_event_adjustment(
                participant.user_id,
                event.id,
                CreditChangeType.EVENT_COMPLETION_BONUS,
                self.params.completion_bonus,
                at=now,
                session=session,
            )
            if entry is None:
                continue
            entries.append(entry)

            streak = completion_streak(self.ledger.change_types(participant.user_id, session=session))
            if streak >= self.params.consecutive_events_required:
                bonus = self.ledger.apply_event_adjustment(
                    participant.user_id,
                    event.id,
                    CreditChangeType.CONSECUTIVE_EVENTS_BONUS,
                    self.params.consecutive_events_bonus,
                    metadata={"consecutive_events": streak},
                    at=now,
                    session=session,
                )
                if bonus is not None:
                    entries.append(bonus)

        logger.info("Awarded %s completion credit entries for event_id=%s", len(entries), event.id)
        return tuple(entries)

    @staticmethod
    def _require_participant(session: Session, event_id: int, user_id: int) -> EventParticipant:
        participant = event_repo.get_participant(session, event_id, user_id, for_update=True)
        if participant is None:
            raise ValidationError(
                f"user_id={user_id} is not a participant of event_id={event_id}",
                "You are not registered for this event.",
            )
        return participant


def _parse_status(value: EventStatus | str) -> EventStatus:
    if isinstance(value, EventStatus):
        return value
    try:
        return EventStatus(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(status.value for status in EventStatus)
        raise ValidationError(f"Unknown event status {value!r}; expected one of: {allowed}") from exc


def _participation(participant: EventParticipant) -> Participation:
    return Participation(
        event_id=participant.event_id,
        user_id=participant.user_id,
        status=ParticipantStatus(participant.status),
        registered_at=participant.registered_at,
        checked_in_at=participant.checked_in_at,
        is_premium_protected=participant.is_premium_protected,
        credit_score_penalty=participant.credit_score_penalty,
    )


__all__ = ["ALLOWED_TRANSITIONS", "EventLifecycle", "TransitionResult"]

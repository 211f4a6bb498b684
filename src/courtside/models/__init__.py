"""ORM models."""

from courtside.models.base import Base
from courtside.models.credit_score_log import CreditScoreLog
from courtside.models.event import Event, EventParticipant
from courtside.models.event_match import EventMatch
from courtside.models.match_history import MatchHistory
from courtside.models.rating import UserSportRating
from courtside.models.sport import Sport

__all__ = [
    "Base",
    "CreditScoreLog",
    "Event",
    "EventMatch",
    "EventParticipant",
    "MatchHistory",
    "Sport",
    "UserSportRating",
]

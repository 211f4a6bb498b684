"""Error types raised by the engine's operations."""

from __future__ import annotations


class CourtsideError(Exception):
    """Base error; carries a user-facing message and an HTTP-equivalent status."""

    status_code = 400

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(CourtsideError):
    """Input rejected before anything was written."""

    status_code = 422


class ConflictError(CourtsideError):
    """State changed underneath the caller; retry with fresh state."""

    status_code = 409


class NotFoundError(CourtsideError):
    """Unknown event, user, sport or match id."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(
            f"{entity} id={entity_id} not found",
            f"{entity.capitalize()} not found.",
        )
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(CourtsideError):
    """Actor lacks the capability for the requested action."""

    status_code = 403


__all__ = [
    "ConflictError",
    "CourtsideError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
]

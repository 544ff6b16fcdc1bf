"""Domain exceptions.

Every error carries a user-facing message and the HTTP status the API layer
renders it with. Services raise these; routes never catch them (the handler
registered in findmyestate.main turns them into JSON responses).
"""
from typing import Optional


class EstateError(Exception):
    """Base class for errors surfaced to the user."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


class FormValidationError(EstateError):
    """Input rejected before any network call."""

    status_code = 422


class AuthenticationRequired(EstateError):
    """Action needs a signed-in user."""

    status_code = 401


class OwnershipError(EstateError):
    """User tried to act on a record owned by someone else."""

    status_code = 403


class AccessDenied(EstateError):
    """User lacks the role required for the action."""

    status_code = 403


class NotFound(EstateError):
    status_code = 404


class InvalidTransition(EstateError):
    """Moderation action not allowed from the record's current status."""

    status_code = 409


class RemoteCallError(EstateError):
    """The store (database or object storage) rejected or failed a call."""

    status_code = 503


class SubmissionError(RemoteCallError):
    """A property create/update aborted during upload or persistence."""


class StorageError(Exception):
    """Low-level object storage failure (wrapped by services)."""

    pass

"""Exceptions raised by the data access layer and caught by route handlers."""


class PortalError(Exception):
    """Base class for errors that carry a user-facing message."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """A required field is missing or malformed."""


class DuplicateError(PortalError):
    """A unique constraint would be violated (survey pair, username)."""


class ResourceExhausted(PortalError):
    """Identifier allocation ran out of retries."""


class NotFound(PortalError):
    """A referenced row does not exist."""

from __future__ import annotations

MISSING_FIELDS = "missing_fields"
INVALID_URL = "invalid_url"

_VALIDATION_MESSAGES = {
    MISSING_FIELDS: "Please enter both Title and URL.",
    INVALID_URL: "URL is invalid. Example: https://google.com",
}


class BookmarkError(Exception):
    """Base class for failures surfaced to the user as a message."""

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookmarkError):
    """Raw input that cannot become a bookmark draft."""

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or _VALIDATION_MESSAGES.get(reason))


class AuthError(BookmarkError):
    default_message = "Please sign in to continue."


class BackendError(BookmarkError):
    default_message = "The bookmark service is unavailable."

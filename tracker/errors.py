"""
Error taxonomy for the tracker.

Library exceptions (httpx, pymongo, pydantic) are translated into these at the
component boundary so callers only ever handle tracker errors.
"""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from tracker.models import ApiError


class TrackerError(Exception):
    """Base class for all tracker errors."""


class InvalidReference(TrackerError):
    """The supplied string is neither a manga id nor a MangaDex title URL."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Not a valid manga id or url: {reference!r}")


class UpstreamUnavailable(TrackerError):
    """MangaDex could not be reached or answered with something unreadable."""

    def __init__(self, message: str = "An error occurred while communicating with MangaDex."):
        super().__init__(message)


class UpstreamRejected(TrackerError):
    """MangaDex answered with a structured error envelope."""

    def __init__(self, errors: List["ApiError"]):
        self.errors = list(errors)
        super().__init__(self._describe())

    def _describe(self) -> str:
        if not self.errors:
            return "An error was returned by the MangaDex API."
        if len(self.errors) == 1:
            error = self.errors[0]
            return f"An error was returned by the MangaDex API: {error.detail or error.title}"
        return "Many errors were returned by the MangaDex API, see logs for more information."


class StoreUnavailable(TrackerError):
    """The tracking store failed to complete an operation."""


class ConflictError(TrackerError):
    """A record with the same id already exists."""

    def __init__(self, manga_id: str):
        self.manga_id = manga_id
        super().__init__(f"Manga {manga_id} is already tracked")

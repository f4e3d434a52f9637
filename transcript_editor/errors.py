"""Error taxonomy for collaborator calls, editing gates, and storage.

WHY: Callers must decide, per failure, whether to retry, surface the
error at once, or degrade gracefully. That decision needs a stable
classification that does not depend on which HTTP library or SDK
raised the error.

HOW: Every error raised by this package derives from
TranscriptEditorError and carries a ``kind`` (ErrorKind) plus a
``user_message`` that names the failed action without transport noise.
classify_error() extends the same taxonomy to foreign exceptions by
inspecting a ``status_code``/``status`` attribute or the message text.

RULES:
- INPUT_VALIDATION and CREDENTIAL errors are never retried
- TRANSIENT_CAPACITY (429 rate limit, 503 overload) is the only retryable kind
- Anything not recognised is UNCLASSIFIED and propagated as-is
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Stable failure categories for collaborator calls."""

    INPUT_VALIDATION = "input_validation"
    CREDENTIAL = "credential"
    TRANSIENT_CAPACITY = "transient_capacity"
    MALFORMED_RESPONSE = "malformed_response"
    UNCLASSIFIED = "unclassified"


class TranscriptEditorError(Exception):
    """Base class for all errors raised by this package."""

    kind: ErrorKind = ErrorKind.UNCLASSIFIED
    user_message: str = "The operation failed."


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InputValidationError(TranscriptEditorError, ValueError):
    """Raised locally, before any network call, for unacceptable input."""

    kind = ErrorKind.INPUT_VALIDATION

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return str(self)


class FileTooLargeError(InputValidationError):
    """Raised when a media payload exceeds the upload ceiling.

    RULES:
    - Message includes the actual size and the limit in MB
    - Raised before credentials are checked or any request is built
    """

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            "File is {:.1f} MB, which exceeds the {:.0f} MB limit. "
            "Please shorten or compress it.".format(
                size_bytes / (1024 * 1024), limit_bytes / (1024 * 1024)
            )
        )


class UnsupportedMediaError(InputValidationError):
    """Raised when a file extension is not an accepted audio/video type."""


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialError(TranscriptEditorError):
    """Missing or rejected API key for the collaborator."""

    kind = ErrorKind.CREDENTIAL


class MissingCredentialError(CredentialError):
    user_message = "No API key is configured."


class InvalidCredentialError(CredentialError):
    user_message = "The API key was rejected."


# ---------------------------------------------------------------------------
# Transient capacity
# ---------------------------------------------------------------------------


class TransientCapacityError(TranscriptEditorError):
    """The collaborator is temporarily unable to serve the request.

    WHY: Rate limits and overload are the only failures where waiting and
    trying again is likely to help.
    """

    kind = ErrorKind.TRANSIENT_CAPACITY
    user_message = "The service is busy. Please try again in a moment."

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        self.message = message
        super().__init__("HTTP {}: {}".format(status_code, message))


class RateLimitedError(TransientCapacityError):
    def __init__(self, message: str = "") -> None:
        super().__init__(429, message)


class OverloadedError(TransientCapacityError):
    def __init__(self, message: str = "") -> None:
        super().__init__(503, message)


# ---------------------------------------------------------------------------
# Response shape
# ---------------------------------------------------------------------------


class MalformedResponseError(TranscriptEditorError):
    """Raised when a collaborator returns empty or unparsable structured output."""

    kind = ErrorKind.MALFORMED_RESPONSE
    user_message = "The service returned an unreadable response."


class CollaboratorAPIError(TranscriptEditorError):
    """Any other non-2xx response from the collaborator.

    RULES:
    - Always include status_code and message
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__("Collaborator API error {}: {}".format(status_code, message))


# ---------------------------------------------------------------------------
# Editing gates and storage
# ---------------------------------------------------------------------------


class OperationInProgressError(TranscriptEditorError):
    """A long-running call was requested while another one is active."""

    user_message = "Another operation is still running."


class SegmentLockedError(TranscriptEditorError):
    """A manual edit targeted a segment whose correction is in flight."""

    user_message = "This segment is being corrected."

    def __init__(self, segment_id: str) -> None:
        self.segment_id = segment_id
        super().__init__("Segment {} is locked while its correction runs".format(segment_id))


class StorageError(TranscriptEditorError):
    """Reading or writing the durable session catalog failed."""

    user_message = "Saving failed."


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota")
_OVERLOAD_MARKERS = ("503", "overloaded", "unavailable")


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception onto the ErrorKind taxonomy.

    HOW: Errors from this package already know their kind. Foreign
    exceptions (SDK errors, httpx.HTTPStatusError) are classified by
    their HTTP status when one is exposed, then by message markers such
    as "429" or "RESOURCE_EXHAUSTED".
    """
    if isinstance(exc, TranscriptEditorError):
        return exc.kind

    status = _status_of(exc)
    if status in (429, 503):
        return ErrorKind.TRANSIENT_CAPACITY
    if status in (401, 403):
        return ErrorKind.CREDENTIAL

    text = str(exc).lower()
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.TRANSIENT_CAPACITY
    if status is None and any(marker in text for marker in _OVERLOAD_MARKERS):
        return ErrorKind.TRANSIENT_CAPACITY
    return ErrorKind.UNCLASSIFIED

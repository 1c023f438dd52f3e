"""Error hierarchy for the museum booking client.

Transient failures (should retry) are split from permanent failures (should
not retry) so tenacity decorators can classify them by type.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    def create(record: BookingRecord):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from museum_booking.duplicates import DuplicateReport


class BookingError(Exception):
    """Base exception for all booking client errors."""

    pass


class TransientError(BookingError):
    """Temporary failure that may succeed on retry.

    Examples: connection reset, request timeout, 502/503 from the API gateway.
    """

    pass


class ServerError(TransientError):
    """The API answered with a 5xx status."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class RateLimitError(TransientError):
    """Rate limit exceeded (HTTP 429) - needs longer backoff.

    Inherits from TransientError so tenacity will retry it.
    """

    pass


class PermanentError(BookingError):
    """Failure that won't succeed on retry."""

    pass


class ApiError(PermanentError):
    """The API rejected the request (4xx other than 401/429).

    ``message`` is the server-provided message when the body carries one.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        code = self.status if self.status is not None else "-"
        return f"[{code}] {self.message}"


class AuthenticationError(PermanentError):
    """Token missing, expired or rejected (HTTP 401).

    The stored session is cleared when this is raised; the user has to log in again.
    """

    pass


class ReadOnlyViolation(PermanentError):
    """A mutating request was attempted on a read-only client."""

    pass


class IngestError(BookingError):
    """Bulk input could not be turned into a submittable batch."""

    pass


class UnsupportedFormatError(IngestError):
    """Binary document formats (.doc/.docx) cannot be parsed as text."""

    pass


class DuplicateBookingError(IngestError):
    """Two or more records share the same (id number, visit date) pair.

    The whole batch is blocked; nothing is submitted.
    """

    def __init__(self, report: DuplicateReport) -> None:
        self.report = report
        offenders = ", ".join(report.offenders)
        super().__init__(
            f"Duplicate entries found in your data: {offenders}. "
            "Please remove duplicates before processing."
        )

"""Client for the museum ticketing API.

Covers login sessions, appointment and admin endpoints, and the bulk ingest
pipeline (parse -> duplicate check -> staggered submission).
"""

from museum_booking.api import ApiClient
from museum_booking.duplicates import DuplicateReport, ensure_unique, find_duplicates
from museum_booking.ingest import ParseReport, parse_file, parse_text
from museum_booking.models import BookingOutcome, BookingRecord, IdType, Museum
from museum_booking.session import SessionManager
from museum_booking.submitter import BulkResult, BulkSubmitter

__all__ = [
    "ApiClient",
    "BookingOutcome",
    "BookingRecord",
    "BulkResult",
    "BulkSubmitter",
    "DuplicateReport",
    "IdType",
    "Museum",
    "ParseReport",
    "SessionManager",
    "ensure_unique",
    "find_duplicates",
    "parse_file",
    "parse_text",
]

"""Duplicate detection for a bulk batch.

A batch may not contain the same (id number, visit date) pair twice. One scan
produces both the blocking verdict and the per-row flags used by the preview.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from museum_booking.errors import DuplicateBookingError
from museum_booking.models import BookingRecord

DedupKey = tuple[str, date]


@dataclass
class DuplicateReport:
    """Duplicate keys found in a batch.

    Attributes:
        keys: Keys seen more than once, in first-seen order.
        indices: Positions of every record sharing a duplicated key (both copies).
        offenders: ``"name (id)"`` label of every flagged record, in input order.
    """

    keys: list[DedupKey] = field(default_factory=list)
    indices: set[int] = field(default_factory=set)
    offenders: list[str] = field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.keys)

    def is_flagged(self, index: int) -> bool:
        return index in self.indices


def find_duplicates(records: list[BookingRecord]) -> DuplicateReport:
    """Scan records once and report every repeated (id number, visit date)."""
    positions: dict[DedupKey, list[int]] = defaultdict(list)
    report = DuplicateReport()

    for index, record in enumerate(records):
        positions[record.dedup_key].append(index)

    # positions keeps insertion order, so keys come out in first-seen order
    report.keys = [key for key, seen in positions.items() if len(seen) > 1]
    for key in report.keys:
        report.indices.update(positions[key])
    report.offenders = [records[i].label for i in sorted(report.indices)]
    return report


def ensure_unique(records: list[BookingRecord]) -> DuplicateReport:
    """Raise DuplicateBookingError if any key repeats; otherwise return the clean report."""
    report = find_duplicates(records)
    if report.has_duplicates:
        raise DuplicateBookingError(report)
    return report

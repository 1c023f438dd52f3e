from datetime import date

import pytest

from museum_booking.duplicates import ensure_unique, find_duplicates
from museum_booking.errors import DuplicateBookingError
from museum_booking.ingest import parse_text


def test_same_id_and_date_flags_both_records(make_record):
    records = [
        make_record("Alice", "123"),
        make_record("Bob", "456"),
        make_record("Alice again", "123"),
    ]

    report = find_duplicates(records)

    assert report.has_duplicates
    assert report.keys == [("123", date(2025, 10, 9))]
    assert report.indices == {0, 2}
    assert report.offenders == ["Alice (123)", "Alice again (123)"]
    assert report.is_flagged(0) and not report.is_flagged(1)


def test_same_id_on_different_dates_is_allowed(make_record):
    records = [
        make_record("Alice", "123", visit_date=date(2025, 10, 9)),
        make_record("Alice", "123", visit_date=date(2025, 10, 10)),
    ]

    assert not find_duplicates(records).has_duplicates
    assert ensure_unique(records).indices == set()


def test_keys_reported_once_in_first_seen_order(make_record):
    records = [
        make_record("B", "2"),
        make_record("A", "1"),
        make_record("A", "1"),
        make_record("B", "2"),
        make_record("A", "1"),
    ]

    report = find_duplicates(records)

    assert [k[0] for k in report.keys] == ["2", "1"]
    assert report.indices == {0, 1, 2, 3, 4}


def test_ensure_unique_raises_with_offenders():
    report = parse_text("Ann,123\nBen,123", today=date(2025, 10, 4))
    assert len(report.records) == 2

    with pytest.raises(DuplicateBookingError) as excinfo:
        ensure_unique(report.records)

    assert excinfo.value.report.indices == {0, 1}
    assert "Ann (123)" in str(excinfo.value)
    assert "Ben (123)" in str(excinfo.value)


def test_empty_batch_has_no_duplicates():
    assert not find_duplicates([]).has_duplicates

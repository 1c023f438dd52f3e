from datetime import date

import pytest

from museum_booking.errors import UnsupportedFormatError
from museum_booking.ingest import (
    FullRow,
    ShorthandRow,
    Skipped,
    classify,
    clean_fields,
    parse_file,
    parse_text,
    write_template,
)
from museum_booking.models import IdType, Museum

TODAY = date(2025, 10, 4)


def test_shorthand_line_takes_all_defaults():
    report = parse_text("张丹,510105197908271783", today=TODAY)

    assert len(report.records) == 1
    record = report.records[0]
    assert record.visitor_name == "张丹"
    assert record.id_number == "510105197908271783"
    assert record.id_type is IdType.ID_CARD
    assert record.museum is Museum.MAIN
    assert record.time_slot == "16:30-18:00"
    assert record.number_of_visitors == 1
    assert record.visit_date == date(2025, 10, 9)
    assert record.to_api()["visitDate"] == "2025-10-09"

    detail = record.visitor_details[0]
    assert (detail.name, detail.id_number, detail.id_type) == (
        "张丹",
        "510105197908271783",
        IdType.ID_CARD,
    )
    assert detail.age is None


def test_shorthand_defaults_to_today_plus_five_days():
    record = parse_text("A,1").records[0]
    assert (record.visit_date - date.today()).days == 5


def test_every_shorthand_line_becomes_one_record_in_order():
    text = "王远游,512221197303150994\n伍鸿睿,510703200606130015\n\n杨舟,320115200603154115\n"
    report = parse_text(text, today=TODAY)

    assert [r.visitor_name for r in report.records] == ["王远游", "伍鸿睿", "杨舟"]
    assert {r.museum for r in report.records} == {Museum.MAIN}
    assert report.skipped_count == 0


def test_full_format_line():
    report = parse_text("Jane,987,passport,qin_han,2025-10-09,14:30-16:30,2,30", today=TODAY)

    record = report.records[0]
    assert record.id_type is IdType.PASSPORT
    assert record.museum is Museum.QIN_HAN
    assert record.visit_date == date(2025, 10, 9)
    assert record.time_slot == "14:30-16:30"
    assert record.number_of_visitors == 2
    assert record.visitor_details[0].age == 30
    assert record.visitor_details[0].id_type is IdType.PASSPORT


def test_full_format_non_numeric_counts_fall_back():
    record = parse_text(
        "Jane,987,id_card,main,2025-10-09,14:30-16:30,many,old", today=TODAY
    ).records[0]

    assert record.number_of_visitors == 1
    assert record.visitor_details[0].age is None


def test_full_format_without_optional_columns():
    record = parse_text("Jane,987,id_card,main,2025-10-09,09:00-10:30", today=TODAY).records[0]

    assert record.number_of_visitors == 1
    assert record.visitor_details[0].age is None


def test_control_characters_are_stripped():
    report = parse_text("张\x00丹,\x01510105197908271783\x9f\r", today=TODAY)

    assert report.records[0].visitor_name == "张丹"
    assert report.records[0].id_number == "510105197908271783"


def test_fields_that_only_held_control_characters_are_dropped():
    assert clean_fields("Bob, \x00 ,456") == ["Bob", "456"]
    assert isinstance(classify(clean_fields("Bob, \x00 ,456")), ShorthandRow)


def test_classify_by_column_count():
    assert classify(["a"]) is None
    assert classify(["a", "b", "c"]) is None
    assert isinstance(classify(["a", "b", "c", "d", "e", "f"]), FullRow)


def test_malformed_lines_are_reported_not_lost():
    text = "Alice,1\nonly-one-field\nBob,2,extra\nCarol,3"
    report = parse_text(text, today=TODAY)

    assert [r.visitor_name for r in report.records] == ["Alice", "Carol"]
    assert [s.line_number for s in report.skipped] == [2, 3]
    assert all(isinstance(s.result, Skipped) for s in report.skipped)
    assert report.lines[1].raw == "only-one-field"


def test_unknown_id_type_or_bad_date_is_skipped():
    text = (
        "A,1,drivers_license,main,2025-10-09,16:30-18:00\n"
        "B,2,id_card,louvre,2025-10-09,16:30-18:00\n"
        "C,3,id_card,main,next week,16:30-18:00\n"
    )
    report = parse_text(text, today=TODAY)

    assert report.records == []
    assert report.skipped_count == 3


def test_docx_is_rejected_before_reading(tmp_path):
    path = tmp_path / "data.docx"
    path.write_text("张丹,510105197908271783", encoding="utf-8")

    with pytest.raises(UnsupportedFormatError):
        parse_file(path)

    with pytest.raises(UnsupportedFormatError):
        parse_file(tmp_path / "missing.DOC")


def test_csv_with_bom_and_crlf(tmp_path):
    path = tmp_path / "visitors.csv"
    path.write_bytes("\ufeff张丹,510105197908271783\r\n周娟,320121198008284123\r\n".encode())

    report = parse_file(path, today=TODAY)

    assert [r.visitor_name for r in report.records] == ["张丹", "周娟"]


def test_full_template_parses_with_header_skipped(tmp_path):
    path = write_template(tmp_path / "template.csv")
    report = parse_file(path, today=TODAY)

    assert [r.visitor_name for r in report.records] == ["John Doe", "Jane Smith"]
    assert report.skipped[0].line_number == 1


def test_simple_template_parses(tmp_path):
    path = write_template(tmp_path / "simple.csv", simple=True)
    report = parse_file(path, today=TODAY)

    assert len(report.records) == 5
    assert report.skipped_count == 0

import functools
import json

import pytest
import requests

from museum_booking.api import ApiClient
from museum_booking.cli import EXIT_BLOCKED, EXIT_ERROR, EXIT_OK, format_table, main
from museum_booking.config import BookingConfig


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setattr("museum_booking.cli.setup_logging", lambda **kwargs: None)
    return BookingConfig(state_dir=str(tmp_path / "state"), museum_api_url="museum.invalid/api")


def test_bulk_parse_previews_records_and_skipped_lines(tmp_path, config, capsys):
    source = tmp_path / "visitors.txt"
    source.write_text("张丹,510105197908271783\nbroken line\nAnn,123\nBen,123\n", encoding="utf-8")

    code = main(["bulk", "parse", str(source)], config=config)

    out = capsys.readouterr().out
    assert code == EXIT_OK
    assert "张丹" in out
    assert out.count("DUPLICATE") == 2
    assert "line 2:" in out


def test_bulk_parse_json(tmp_path, config, capsys):
    source = tmp_path / "visitors.csv"
    source.write_text("Jane,987,passport,qin_han,2025-10-09,14:30-16:30,2,30\n", encoding="utf-8")

    assert main(["--json", "bulk", "parse", str(source)], config=config) == EXIT_OK

    data = json.loads(capsys.readouterr().out)
    assert data["records"][0]["museum"] == "qin_han"
    assert data["records"][0]["visitorDetails"][0]["age"] == 30
    assert data["skipped"] == []
    assert data["duplicates"] == []


def test_bulk_book_blocks_duplicates_without_submitting(tmp_path, config, capsys):
    source = tmp_path / "visitors.csv"
    source.write_text("Ann,123\nBen,123\n", encoding="utf-8")

    code = main(["bulk", "book", str(source)], config=config)

    err = capsys.readouterr().err
    assert code == EXIT_BLOCKED
    assert "Ann (123)" in err and "Ben (123)" in err


def test_bulk_book_rejects_docx(tmp_path, config, capsys):
    source = tmp_path / "data.docx"
    source.write_text("Ann,123\n", encoding="utf-8")

    code = main(["bulk", "book", str(source)], config=config)

    assert code == EXIT_ERROR
    assert "not supported" in capsys.readouterr().err


def test_bulk_book_dry_run(tmp_path, config, capsys):
    source = tmp_path / "visitors.csv"
    source.write_text("Ann,123\nBen,456\n", encoding="utf-8")

    code = main(["bulk", "book", "--dry-run", str(source)], config=config)

    assert code == EXIT_OK
    assert "nothing submitted" in capsys.readouterr().err


def test_bulk_template(tmp_path, config):
    output = tmp_path / "out" / "template.csv"

    assert main(["bulk", "template", str(output)], config=config) == EXIT_OK
    assert output.read_text(encoding="utf-8").startswith("visitorName,idNumber")


def test_timing_local_json(config, capsys):
    assert main(["--json", "timing", "--local"], config=config) == EXIT_OK

    data = json.loads(capsys.readouterr().out)
    assert data["status"] in {"before_release", "in_release_window", "after_release_window"}
    assert data["releaseTime"] == "17:00"


def test_format_table():
    table = format_table(["A", "Long header"], [["x", "1"], ["longer", "2"]])
    lines = table.splitlines()

    assert lines[0] == "A      | Long header"
    assert lines[1] == "-------+------------"
    assert lines[2] == "x      | 1          "
    assert format_table(["A"], []) == "(no rows)"


@pytest.fixture
def fake_api(adapter, monkeypatch):
    """Route every ApiClient built by main() through the fake adapter."""
    http = requests.Session()
    http.mount("https://", adapter)
    monkeypatch.setattr("museum_booking.cli.ApiClient", functools.partial(ApiClient, http=http))
    return adapter


def test_bulk_book_submits_each_record_and_reports_partial_failure(
    tmp_path, config, fake_api, capsys
):
    source = tmp_path / "visitors.csv"
    source.write_text("Ann,123\nBen,456\n", encoding="utf-8")
    fake_api.add(
        "POST",
        "/appointments",
        (
            201,
            {
                "appointment": {"_id": "apt-1"},
                "museumResponse": {"museumBookingId": "mb-1", "confirmationCode": "C1"},
            },
        ),
        (400, {"message": "Time slot is full"}),
    )
    fake_api.add(
        "GET",
        "/appointments",
        (
            200,
            {
                "success": True,
                "data": {
                    "appointments": [],
                    "pagination": {"page": 1, "limit": 10, "total": 0, "pages": 0},
                },
            },
        ),
    )

    code = main(["bulk", "book", "--concurrency", "1", str(source)], config=config)

    captured = capsys.readouterr()
    assert code == EXIT_BLOCKED
    assert [c.method for c in fake_api.calls] == ["POST", "POST", "GET"]
    assert [b["idNumber"] for b in fake_api.bodies()] == ["123", "456"]
    assert "apt-1" in captured.out
    assert "Time slot is full" in captured.out
    assert "1 succeeded, 1 failed" in captured.err
    assert "Current appointments:" in captured.err

"""Bulk ingest: turn pasted text or uploaded files into booking records.

Each non-blank line is one candidate booking, comma-separated:

  Shorthand (exactly 2 fields):
    张丹,510105197908271783

  Full (6 or more fields):
    visitorName,idNumber,idType,museum,visitDate,timeSlot[,numberOfVisitors[,age]]

Fields are trimmed and stripped of C0/C1 control characters (corrupted
exports often carry NUL bytes); fields that end up empty are dropped before
the row shape is decided. Every line produces a ParsedLine that is either
Ok(record) or Skipped(reason), so nothing is lost silently.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path

from pydantic import ValidationError

from museum_booking.errors import UnsupportedFormatError
from museum_booking.logging import get_logger
from museum_booking.models import BookingRecord, IdType, Museum, VisitorDetail

log = get_logger(__name__)

CONTROL_CHARS_RE = re.compile(r"[\u0000-\u001F\u007F-\u009F]")

UNSUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".doc", ".docx"})

DEFAULT_TIME_SLOT = "16:30-18:00"
DEFAULT_ADVANCE_DAYS = 5

SHORTHAND_COLUMNS = 2
FULL_MIN_COLUMNS = 6

FULL_TEMPLATE = """visitorName,idNumber,idType,museum,visitDate,timeSlot,numberOfVisitors,age
John Doe,123456789012345678,id_card,main,2025-10-09,16:30-18:00,1,25
Jane Smith,987654321098765432,id_card,qin_han,2025-10-09,14:30-16:30,1,30
"""

SIMPLE_TEMPLATE = """张丹,510105197908271783
王远游,512221197303150994
伍鸿睿,510703200606130015
王靖怡,440106200306064421
杨舟,320115200603154115
"""


# ---------------------------------------------------------------------------
# Row shapes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ShorthandRow:
    """``name,idNumber`` - everything else takes the defaults."""

    name: str
    id_number: str


@dataclass(frozen=True)
class FullRow:
    """Positional row with at least six usable fields."""

    name: str
    id_number: str
    id_type: str
    museum: str
    visit_date: str
    time_slot: str
    number_of_visitors: str | None = None
    age: str | None = None


Row = ShorthandRow | FullRow


@dataclass(frozen=True)
class Ok:
    record: BookingRecord


@dataclass(frozen=True)
class Skipped:
    reason: str


@dataclass(frozen=True)
class ParsedLine:
    line_number: int
    raw: str
    result: Ok | Skipped

    @property
    def ok(self) -> bool:
        return isinstance(self.result, Ok)


@dataclass
class ParseReport:
    """Per-line outcome of one ingest run, in input order."""

    lines: list[ParsedLine] = field(default_factory=list)

    @property
    def records(self) -> list[BookingRecord]:
        return [line.result.record for line in self.lines if isinstance(line.result, Ok)]

    @property
    def skipped(self) -> list[ParsedLine]:
        return [line for line in self.lines if isinstance(line.result, Skipped)]

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------
def clean_fields(line: str) -> list[str]:
    """Split a line on commas, strip control characters and drop empty fields."""
    cleaned = (CONTROL_CHARS_RE.sub("", part.strip()).strip() for part in line.split(","))
    return [part for part in cleaned if part]


def _parse_int(value: str | None) -> int | None:
    """Leading-integer parse; returns None for non-numeric input.

    "2 people" -> 2, "abc" -> None.
    """
    if value is None:
        return None
    match = re.match(r"\s*([+-]?\d+)", value)
    return int(match.group(1)) if match else None


def classify(fields: list[str]) -> Row | None:
    """Pick the row shape from the number of usable fields."""
    if len(fields) == SHORTHAND_COLUMNS:
        return ShorthandRow(name=fields[0], id_number=fields[1])
    if len(fields) >= FULL_MIN_COLUMNS:
        return FullRow(
            name=fields[0],
            id_number=fields[1],
            id_type=fields[2],
            museum=fields[3],
            visit_date=fields[4],
            time_slot=fields[5],
            number_of_visitors=fields[6] if len(fields) > 6 else None,
            age=fields[7] if len(fields) > 7 else None,
        )
    return None


def build_record(
    row: Row,
    *,
    today: date,
    default_time_slot: str = DEFAULT_TIME_SLOT,
    advance_days: int = DEFAULT_ADVANCE_DAYS,
) -> BookingRecord:
    """Turn a classified row into a BookingRecord.

    Raises:
        ValueError: Unknown id type or museum, or an unparseable visit date.
    """
    if isinstance(row, ShorthandRow):
        return BookingRecord(
            visitor_name=row.name,
            id_number=row.id_number,
            visit_date=today + timedelta(days=advance_days),
            time_slot=default_time_slot,
        )

    id_type = IdType(row.id_type or IdType.ID_CARD.value)
    museum = Museum(row.museum or Museum.MAIN.value)
    visit_date = date.fromisoformat(row.visit_date)
    visitors = _parse_int(row.number_of_visitors)
    if visitors is None or visitors < 1:
        visitors = 1

    return BookingRecord(
        visitor_name=row.name,
        id_number=row.id_number,
        id_type=id_type,
        museum=museum,
        visit_date=visit_date,
        time_slot=row.time_slot,
        number_of_visitors=visitors,
        visitor_details=[
            VisitorDetail(
                name=row.name,
                id_number=row.id_number,
                id_type=id_type,
                age=_parse_int(row.age),
            )
        ],
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------
def parse_text(
    text: str,
    *,
    today: date | None = None,
    default_time_slot: str = DEFAULT_TIME_SLOT,
    advance_days: int = DEFAULT_ADVANCE_DAYS,
) -> ParseReport:
    """Parse raw pasted/uploaded text into a ParseReport.

    Args:
        text: Raw input, one booking per line.
        today: Reference date for the shorthand visit date (default: today).
        default_time_slot: Time slot for shorthand rows.
        advance_days: Visit date offset for shorthand rows.
    """
    if today is None:
        today = date.today()

    report = ParseReport()
    for line_number, raw in enumerate(text.split("\n"), start=1):
        if not raw.strip():
            continue

        row = classify(clean_fields(raw))
        if row is None:
            result: Ok | Skipped = Skipped(
                "expected 2 fields (name,id) or at least 6 fields"
            )
        else:
            try:
                result = Ok(
                    build_record(
                        row,
                        today=today,
                        default_time_slot=default_time_slot,
                        advance_days=advance_days,
                    )
                )
            except ValidationError as e:
                result = Skipped(f"invalid record: {e.errors()[0]['msg']}")
            except ValueError as e:
                result = Skipped(str(e))

        if isinstance(result, Skipped):
            log.debug("ingest_line_skipped", line=line_number, reason=result.reason)
        report.lines.append(ParsedLine(line_number=line_number, raw=raw, result=result))

    log.info(
        "ingest_parsed",
        records=len(report.records),
        skipped=report.skipped_count,
    )
    return report


def parse_file(
    path: str | Path,
    *,
    today: date | None = None,
    default_time_slot: str = DEFAULT_TIME_SLOT,
    advance_days: int = DEFAULT_ADVANCE_DAYS,
) -> ParseReport:
    """Parse a .csv/.txt file.

    Raises:
        UnsupportedFormatError: For .doc/.docx files, before anything is read.
    """
    path = Path(path)
    if path.suffix.lower() in UNSUPPORTED_EXTENSIONS:
        log.warning("ingest_unsupported_format", path=str(path))
        raise UnsupportedFormatError(
            "Word files (.doc/.docx) are not supported. "
            "Please save as CSV or Text file first."
        )

    text = path.read_text(encoding="utf-8-sig", errors="replace")
    return parse_text(
        text,
        today=today,
        default_time_slot=default_time_slot,
        advance_days=advance_days,
    )


def write_template(path: str | Path, *, simple: bool = False) -> Path:
    """Write the full (header + samples) or simple (name,id) CSV template."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SIMPLE_TEMPLATE if simple else FULL_TEMPLATE, encoding="utf-8")
    return path

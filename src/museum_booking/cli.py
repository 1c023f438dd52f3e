"""Command-line client for the museum ticketing API.

Log in once, then book, list and administer appointments from the terminal.
Tables (or JSON with --json) go to stdout, diagnostics to stderr.

Run with:   museum-booking login --email ops@example.com
Bulk:       museum-booking bulk book visitors.csv
Preview:    museum-booking bulk parse visitors.txt
Paste:      pbpaste | museum-booking bulk book -
Template:   museum-booking bulk template --simple data/simple.csv
Timing:     museum-booking timing --local
Admin:      museum-booking admin users list --role admin

Exit codes:
  0 = success
  1 = error (message on stderr)
  2 = batch blocked by duplicates, or some bookings failed
"""

import argparse
import asyncio
import getpass
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from museum_booking.api import ApiClient
from museum_booking.config import BookingConfig, get_config
from museum_booking.duplicates import find_duplicates
from museum_booking.errors import BookingError
from museum_booking.ingest import ParseReport, parse_file, parse_text, write_template
from museum_booking.logging import get_logger, setup_logging
from museum_booking.models import (
    AppointmentPage,
    AppointmentStatus,
    BookingRecord,
    IdType,
    Museum,
    TimingStatus,
    UserRole,
)
from museum_booking.session import SessionManager
from museum_booking.submitter import BulkResult, BulkSubmitter
from museum_booking.timing import STATUS_TEXT, compute_timing_status, describe

log = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BLOCKED = 2


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format rows as a plain text table with padded columns."""
    if not rows:
        return "(no rows)"

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def _preview_rows(records: list[BookingRecord], flagged: set[int]) -> list[list[str]]:
    rows = []
    for i, r in enumerate(records):
        age = r.visitor_details[0].age if r.visitor_details else None
        rows.append(
            [
                str(i + 1),
                r.visitor_name,
                r.id_number,
                r.id_type.value,
                r.museum.value,
                r.visit_date.isoformat(),
                r.time_slot,
                str(r.number_of_visitors),
                "" if age is None else str(age),
                "DUPLICATE" if i in flagged else "",
            ]
        )
    return rows


def render_preview(report: ParseReport) -> str:
    records = report.records
    duplicates = find_duplicates(records)
    headers = [
        "#", "Name", "ID", "ID type", "Museum", "Date", "Slot", "Visitors", "Age", "",
    ]
    parts = [format_table(headers, _preview_rows(records, duplicates.indices))]
    if report.skipped:
        parts.append("")
        parts.append(f"Skipped {report.skipped_count} line(s):")
        for line in report.skipped:
            parts.append(f"  line {line.line_number}: {line.result.reason}")
    return "\n".join(parts)


def render_results(result: BulkResult) -> str:
    headers = ["Name", "ID", "Result", "Booking ID", "Museum booking", "Code / error"]
    rows = []
    for o in result.outcomes:
        if o.success:
            rows.append(
                [
                    o.record.visitor_name,
                    o.record.id_number,
                    "OK",
                    o.booking_id or "",
                    o.museum_booking_id or "",
                    o.confirmation_code or "",
                ]
            )
        else:
            rows.append(
                [o.record.visitor_name, o.record.id_number, "FAILED", "", "", o.error or ""]
            )
    return format_table(headers, rows)


def render_appointments(page: AppointmentPage) -> str:
    headers = ["ID", "Visitor", "Museum", "Date", "Slot", "Visitors", "Status"]
    rows = [
        [
            a.id,
            a.visitor_name,
            a.museum,
            a.visit_date[:10],
            a.time_slot,
            str(a.number_of_visitors),
            a.status.value,
        ]
        for a in page.appointments
    ]
    p = page.pagination
    return f"{format_table(headers, rows)}\n(page {p.page}/{max(p.pages, 1)}, {p.total} total)"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------
def _load_report(source: str, config: BookingConfig) -> ParseReport:
    options = {
        "default_time_slot": config.default_time_slot,
        "advance_days": config.default_advance_days,
    }
    if source == "-":
        return parse_text(sys.stdin.read(), **options)
    return parse_file(source, **options)


def _load_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def cmd_login(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    password = args.password or getpass.getpass("Password: ")
    user = client.login(args.email, password)
    _log(f"Logged in as {user.email} ({user.role.value})")
    return EXIT_OK


def cmd_logout(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    client.logout()
    _log("Logged out")
    return EXIT_OK


def cmd_register(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    password = args.password or getpass.getpass("Password: ")
    client.register(args.email, password)
    _log(f"Registered {args.email}")
    return EXIT_OK


def cmd_profile(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    user = client.profile()
    if args.json:
        _print_json(user.to_api())
    else:
        print(f"{user.email} ({user.role.value}){'' if user.is_active else ' [inactive]'}")
    return EXIT_OK


def cmd_appointments_list(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    filters = {
        "page": args.page,
        "limit": args.limit,
        "search": args.search,
        "status": args.status,
        "museum": args.museum,
        "date": args.date,
    }
    if client.session.is_admin:
        page = client.admin_appointments(**filters)
    else:
        page = client.list_appointments(**filters)
    if args.json:
        _print_json(page.to_api())
    else:
        print(render_appointments(page))
    return EXIT_OK


def cmd_appointments_cancel(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    client.cancel_appointment(args.id)
    _log(f"Appointment {args.id} cancelled")
    return EXIT_OK


def cmd_slots(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    slots = client.available_time_slots(args.museum, args.date)
    if args.json:
        _print_json([s.to_api() for s in slots])
    else:
        print(format_table(["Slot", "Available"], [[s.time_slot, str(s.available)] for s in slots]))
    return EXIT_OK


def cmd_timing(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    def local() -> TimingStatus:
        return compute_timing_status(
            release_time=config.release_time,
            window_minutes=config.release_window_minutes,
            tz=config.release_timezone,
        )

    if args.local:
        status = local()
    else:
        try:
            status = client.timing_status()
        except BookingError as e:
            log.warning("timing_status_unavailable", error=str(e))
            status = local()

    if args.json:
        _print_json(status.to_api())
        return EXIT_OK

    print(f"Status:             {STATUS_TEXT[status.status]}")
    print(f"Current time:       {status.current_time}")
    print(f"Release time:       {status.release_time}")
    print(f"Time until release: {status.time_until_release}")
    print(f"Can book now:       {'YES' if status.can_book else 'NO'}")
    print(f"Next release:       {status.next_release}")
    print(describe(status, tz=config.release_timezone))
    return EXIT_OK


def cmd_bulk_parse(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    report = _load_report(args.source, config)
    if args.json:
        _print_json(
            {
                "records": [r.to_api() for r in report.records],
                "skipped": [
                    {"line": s.line_number, "raw": s.raw, "reason": s.result.reason}
                    for s in report.skipped
                ],
                "duplicates": find_duplicates(report.records).offenders,
            }
        )
    else:
        print(render_preview(report))
    _log(f"Parsed {len(report.records)} bookings, skipped {report.skipped_count} line(s)")
    return EXIT_OK


def cmd_bulk_book(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    report = _load_report(args.source, config)
    records = report.records
    if not records:
        _log("No data to book")
        return EXIT_ERROR

    duplicates = find_duplicates(records)
    if duplicates.has_duplicates:
        print(render_preview(report))
        _log(
            "Duplicate entries found in your data: "
            f"{', '.join(duplicates.offenders)}. Please remove duplicates before processing."
        )
        return EXIT_BLOCKED

    if args.dry_run:
        print(render_preview(report))
        _log(f"Dry run: {len(records)} bookings ready, nothing submitted")
        return EXIT_OK

    def progress(done: int, total: int) -> None:
        _log(f"  {round(done / total * 100)}% complete ({done}/{total})")

    def refresh(result: BulkResult) -> None:
        try:
            page = client.list_appointments()
        except BookingError as e:
            log.warning("appointments_refresh_failed", error=str(e))
            return
        log.info("appointments_refreshed", total=page.pagination.total)
        _log("Current appointments:")
        _log(render_appointments(page))

    submitter = BulkSubmitter(
        client,
        stagger_seconds=config.submit_stagger_ms / 1000,
        max_concurrency=args.concurrency or config.submit_max_concurrency,
        max_attempts=args.attempts or config.submit_max_attempts,
        on_progress=progress,
        on_complete=refresh,
    )
    _log(f"Processing {len(records)} bookings...")
    result = asyncio.run(submitter.submit(records))

    if args.json:
        _print_json([o.model_dump(mode="json") for o in result.outcomes])
    else:
        print(render_results(result))
    _log(
        f"Processed {len(result.outcomes)} bookings: "
        f"{len(result.succeeded)} succeeded, {len(result.failed)} failed"
    )
    return EXIT_OK if result.all_succeeded else EXIT_BLOCKED


def cmd_bulk_template(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    path = write_template(args.output, simple=args.simple)
    _log(f"Template written to {path}")
    return EXIT_OK


def cmd_admin_dashboard(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    stats = client.dashboard_stats()
    if args.json:
        _print_json(stats.to_api())
        return EXIT_OK
    print(f"Total appointments: {stats.total_appointments}")
    rows = [[status, str(count)] for status, count in sorted(stats.status_breakdown.items())]
    print(format_table(["Status", "Count"], rows))
    return EXIT_OK


def cmd_admin_health(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    _print_json(client.health())
    return EXIT_OK


def cmd_admin_confirm_all(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    result = client.confirm_all_pending()
    _print_json(result)
    return EXIT_OK


def cmd_admin_status(args: argparse.Namespace, client: ApiClient, config: BookingConfig) -> int:
    client.update_appointment_status(args.id, args.status)
    _log(f"Appointment {args.id} -> {args.status}")
    return EXIT_OK


def cmd_admin_users_list(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    page = client.list_users(page=args.page, limit=args.limit, search=args.search, role=args.role)
    if args.json:
        _print_json(page.to_api())
        return EXIT_OK
    rows = [
        [u.id, u.email, u.role.value, "active" if u.is_active else "inactive"]
        for u in page.users
    ]
    print(format_table(["ID", "Email", "Role", "State"], rows))
    return EXIT_OK


def cmd_admin_users_create(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    password = args.password or getpass.getpass("Password for new user: ")
    client.create_user(args.email, password, args.role)
    _log(f"User {args.email} created")
    return EXIT_OK


def cmd_admin_users_update(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    client.update_user(args.id, email=args.email, role=args.role, is_active=args.active)
    _log(f"User {args.id} updated")
    return EXIT_OK


def cmd_admin_users_delete(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    client.delete_user(args.id)
    _log(f"User {args.id} deleted")
    return EXIT_OK


def cmd_admin_museums_list(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    configs = client.list_museum_configs()
    if args.json:
        _print_json([c.to_api() for c in configs])
        return EXIT_OK
    rows = [
        [
            c.id or "",
            c.museum.value,
            c.name,
            str(c.max_daily_capacity),
            ", ".join(c.regular_time_slots),
            c.ticket_release_time or "",
        ]
        for c in configs
    ]
    print(format_table(["ID", "Museum", "Name", "Capacity", "Slots", "Release"], rows))
    return EXIT_OK


def cmd_admin_museums_create(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    client.create_museum_config(_load_json(args.file))
    _log("Museum configuration created")
    return EXIT_OK


def cmd_admin_museums_update(
    args: argparse.Namespace, client: ApiClient, config: BookingConfig
) -> int:
    client.update_museum_config(args.id, _load_json(args.file))
    _log(f"Museum configuration {args.id} updated")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------
def _parse_bool(value: str) -> bool:
    if value.lower() in {"true", "yes", "1", "on"}:
        return True
    if value.lower() in {"false", "no", "0", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"expected true/false, got {value!r}")


def _add_paging(parser: argparse.ArgumentParser, limit: int) -> None:
    parser.add_argument("--page", type=int, default=1, help="Page number (default: 1).")
    parser.add_argument("--limit", type=int, default=limit, help=f"Page size (default: {limit}).")
    parser.add_argument("--search", default=None, help="Free-text search.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse tree; each leaf sets ``handler``."""
    parser = argparse.ArgumentParser(
        prog="museum-booking",
        description="Museum ticketing client: bookings, bulk upload and administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of tables.")
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Refuse every request that would change data on the server.",
    )
    parser.add_argument("--api-url", default=None, help="Override MUSEUM_API_URL.")
    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("login", help="Log in and store the session token.")
    p.add_argument("--email", required=True)
    p.add_argument("--password", default=None, help="Prompted for when omitted.")
    p.set_defaults(handler=cmd_login)

    p = commands.add_parser("logout", help="Forget the stored session token.")
    p.set_defaults(handler=cmd_logout)

    p = commands.add_parser("register", help="Create an account.")
    p.add_argument("--email", required=True)
    p.add_argument("--password", default=None, help="Prompted for when omitted.")
    p.set_defaults(handler=cmd_register)

    p = commands.add_parser("profile", help="Show the logged-in user.")
    p.set_defaults(handler=cmd_profile)

    # appointments
    appointments = commands.add_parser("appointments", help="List or cancel appointments.")
    sub = appointments.add_subparsers(dest="action", required=True)
    p = sub.add_parser("list")
    _add_paging(p, limit=10)
    p.add_argument("--status", choices=[s.value for s in AppointmentStatus])
    p.add_argument("--museum", choices=[m.value for m in Museum])
    p.add_argument("--date", help="Visit date (YYYY-MM-DD).")
    p.set_defaults(handler=cmd_appointments_list)
    p = sub.add_parser("cancel")
    p.add_argument("id")
    p.set_defaults(handler=cmd_appointments_cancel)

    p = commands.add_parser("slots", help="Show bookable time slots for a museum and date.")
    p.add_argument("museum", choices=[m.value for m in Museum])
    p.add_argument("date", help="Visit date (YYYY-MM-DD).")
    p.set_defaults(handler=cmd_slots)

    p = commands.add_parser("timing", help="Show the ticket release window status.")
    p.add_argument("--local", action="store_true", help="Compute locally, skip the API.")
    p.set_defaults(handler=cmd_timing)

    # bulk
    bulk = commands.add_parser(
        "bulk",
        help="Bulk booking from CSV/TXT or pasted text.",
        description=(
            "Input lines are either 'name,idNumber' or "
            "'name,idNumber,idType,museum,visitDate,timeSlot[,visitors[,age]]'.\n"
            f"ID types: {', '.join(t.value for t in IdType)}. "
            f"Museums: {', '.join(m.value for m in Museum)}."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = bulk.add_subparsers(dest="action", required=True)
    p = sub.add_parser("parse", help="Preview parsed records, duplicates and skipped lines.")
    p.add_argument("source", help="CSV/TXT file, or '-' for stdin.")
    p.set_defaults(handler=cmd_bulk_parse)
    p = sub.add_parser("book", help="Parse, check duplicates and submit every record.")
    p.add_argument("source", help="CSV/TXT file, or '-' for stdin.")
    p.add_argument("--dry-run", action="store_true", help="Stop after the duplicate check.")
    p.add_argument("--concurrency", type=int, default=None, help="Max requests in flight.")
    p.add_argument("--attempts", type=int, default=None, help="Attempts per record.")
    p.set_defaults(handler=cmd_bulk_book)
    p = sub.add_parser("template", help="Write a CSV template.")
    p.add_argument("output")
    p.add_argument("--simple", action="store_true", help="name,id template.")
    p.set_defaults(handler=cmd_bulk_template)

    # admin
    admin = commands.add_parser("admin", help="Administration (admin role required).")
    sub = admin.add_subparsers(dest="action", required=True)
    sub.add_parser("dashboard").set_defaults(handler=cmd_admin_dashboard)
    sub.add_parser("health").set_defaults(handler=cmd_admin_health)
    sub.add_parser("confirm-all").set_defaults(handler=cmd_admin_confirm_all)
    p = sub.add_parser("status", help="Set an appointment's status.")
    p.add_argument("id")
    p.add_argument("status", choices=[s.value for s in AppointmentStatus])
    p.set_defaults(handler=cmd_admin_status)

    users = sub.add_parser("users").add_subparsers(dest="users_action", required=True)
    p = users.add_parser("list")
    _add_paging(p, limit=20)
    p.add_argument("--role", choices=[r.value for r in UserRole])
    p.set_defaults(handler=cmd_admin_users_list)
    p = users.add_parser("create")
    p.add_argument("--email", required=True)
    p.add_argument("--password", default=None)
    p.add_argument("--role", choices=[r.value for r in UserRole], default="user")
    p.set_defaults(handler=cmd_admin_users_create)
    p = users.add_parser("update")
    p.add_argument("id")
    p.add_argument("--email", default=None)
    p.add_argument("--role", choices=[r.value for r in UserRole], default=None)
    p.add_argument("--active", type=_parse_bool, default=None)
    p.set_defaults(handler=cmd_admin_users_update)
    p = users.add_parser("delete")
    p.add_argument("id")
    p.set_defaults(handler=cmd_admin_users_delete)

    museums = sub.add_parser("museums").add_subparsers(dest="museums_action", required=True)
    museums.add_parser("list").set_defaults(handler=cmd_admin_museums_list)
    p = museums.add_parser("create")
    p.add_argument("file", help="JSON file with the configuration.")
    p.set_defaults(handler=cmd_admin_museums_create)
    p = museums.add_parser("update")
    p.add_argument("id")
    p.add_argument("file", help="JSON file with the fields to change.")
    p.set_defaults(handler=cmd_admin_museums_update)

    return parser


def main(argv: Sequence[str] | None = None, config: BookingConfig | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    config = config or get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    session = SessionManager(config.state_dir, config.max_session_age_hours)
    session.load()
    client = ApiClient(
        args.api_url or config.museum_api_url,
        session,
        timeout=config.http_timeout,
        read_only=args.read_only,
    )
    try:
        with client:
            return args.handler(args, client, config)
    except (BookingError, OSError, ValueError) as e:
        _log(f"ERROR: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())

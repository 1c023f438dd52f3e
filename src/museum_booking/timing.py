"""Ticket release window status.

Tickets for a new day are released once a day (17:00 China time by default)
and the window during which they are bookable is short. The server's
``/appointments/timing-status`` is authoritative; compute_timing_status() gives
the same view locally when the endpoint is unavailable.
"""

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from museum_booking.models import ReleaseStatus, TimingStatus

STATUS_TEXT: dict[ReleaseStatus, str] = {
    ReleaseStatus.BEFORE_RELEASE: "Before Release",
    ReleaseStatus.IN_RELEASE_WINDOW: "Release Window Active",
    ReleaseStatus.AFTER_RELEASE_WINDOW: "Release Window Closed",
}

STATUS_NOTES: dict[ReleaseStatus, str] = {
    ReleaseStatus.BEFORE_RELEASE: (
        "Booking pending: tickets will be released at {release} ({tz}). "
        "Bookings are confirmed automatically when tickets become available."
    ),
    ReleaseStatus.IN_RELEASE_WINDOW: (
        "Release window active: tickets are available now and bookings are "
        "confirmed immediately."
    ),
    ReleaseStatus.AFTER_RELEASE_WINDOW: (
        "Release window closed. Please try again tomorrow at {release} ({tz})."
    ),
}

_DATETIME_FMT = "%Y-%m-%d %H:%M:%S"


def format_countdown(seconds: float) -> str:
    """Format a non-negative duration as HH:MM:SS (hours may exceed 24)."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_release_time(value: str) -> time:
    """Parse ``HH:MM`` into a time."""
    hour, _, minute = value.strip().partition(":")
    return time(int(hour), int(minute or 0))


def compute_timing_status(
    now: datetime | None = None,
    *,
    release_time: str = "17:00",
    window_minutes: int = 5,
    tz: str = "Asia/Shanghai",
) -> TimingStatus:
    """Work out where ``now`` falls relative to today's release window.

    Args:
        now: Reference instant (aware; naive values are taken as UTC). Defaults to now.
        release_time: Daily release time, ``HH:MM`` in ``tz``.
        window_minutes: Length of the window after release during which booking is open.
        tz: IANA timezone of the museum.
    """
    zone = ZoneInfo(tz)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(zone)

    release_at = datetime.combine(local.date(), parse_release_time(release_time), zone)
    window_end = release_at + timedelta(minutes=window_minutes)
    tomorrow_release = release_at + timedelta(days=1)

    if local < release_at:
        status = ReleaseStatus.BEFORE_RELEASE
        next_release = release_at
    elif local < window_end:
        status = ReleaseStatus.IN_RELEASE_WINDOW
        next_release = tomorrow_release
    else:
        status = ReleaseStatus.AFTER_RELEASE_WINDOW
        next_release = tomorrow_release

    if status is ReleaseStatus.IN_RELEASE_WINDOW:
        until = timedelta(0)
    else:
        until = next_release - local

    return TimingStatus(
        current_time=local.strftime(_DATETIME_FMT),
        release_time=release_at.strftime("%H:%M"),
        time_until_release=format_countdown(until.total_seconds()),
        status=status,
        can_book=status is ReleaseStatus.IN_RELEASE_WINDOW,
        next_release=next_release.strftime(_DATETIME_FMT),
    )


def describe(status: TimingStatus, *, tz: str = "Asia/Shanghai") -> str:
    """Human-readable note for a status, as shown under the countdown."""
    return STATUS_NOTES[status.status].format(release=status.release_time, tz=tz)

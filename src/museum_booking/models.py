"""Pydantic models for booking data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Field names are snake_case in Python and camelCase on the wire (``visitorName``,
``idNumber``, ...), matching the ticketing API.
"""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

UNKNOWN = "unknown"
DEFAULT_FAILURE_MESSAGE = "Booking failed"


class IdType(str, Enum):
    ID_CARD = "id_card"
    PASSPORT = "passport"
    HK_MACAU_PASSPORT = "hk_macau_passport"
    TAIWAN_PERMIT = "taiwan_permit"
    FOREIGN_ID = "foreign_id"

    @property
    def label(self) -> str:
        return ID_TYPE_LABELS[self]


ID_TYPE_LABELS: dict[IdType, str] = {
    IdType.ID_CARD: "Identity card of the People's Republic of China",
    IdType.HK_MACAU_PASSPORT: (
        "Passport for Hong Kong and Macao residents to and from the Mainland"
    ),
    IdType.TAIWAN_PERMIT: "Taiwan residents travel permits to and from the mainland",
    IdType.PASSPORT: "PASSPORT",
    IdType.FOREIGN_ID: (
        "Permanent residence identity card for foreigners of the People's Republic of China"
    ),
}


class Museum(str, Enum):
    MAIN = "main"
    QIN_HAN = "qin_han"

    @property
    def label(self) -> str:
        return MUSEUM_LABELS[self]


MUSEUM_LABELS: dict[Museum, str] = {
    Museum.MAIN: "Shaanxi History Museum",
    Museum.QIN_HAN: "Qin & Han Dynasties Museum",
}


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class ReleaseStatus(str, Enum):
    BEFORE_RELEASE = "before_release"
    IN_RELEASE_WINDOW = "in_release_window"
    AFTER_RELEASE_WINDOW = "after_release_window"


class ApiModel(BaseModel):
    """Base for every model exchanged with the API (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=False,
    )

    def to_api(self) -> dict[str, Any]:
        """Serialize to the JSON body the API expects (camelCase, no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VisitorDetail(ApiModel):
    """One person covered by an appointment."""

    name: str
    id_number: str
    id_type: IdType = IdType.ID_CARD
    age: int | None = None


class BookingRecord(ApiModel):
    """One intended appointment, as produced by the ingest parser.

    ``visitor_details`` always holds at least one entry; when none is given the
    primary visitor is mirrored into it.
    """

    visitor_name: str = Field(min_length=1)
    id_number: str = Field(min_length=1)
    id_type: IdType = IdType.ID_CARD
    museum: Museum = Museum.MAIN
    visit_date: date
    time_slot: str = "16:30-18:00"
    number_of_visitors: int = Field(default=1, ge=1)
    visitor_details: list[VisitorDetail] = Field(default_factory=list)
    visitor_email: str | None = None
    visitor_phone: str | None = None

    @model_validator(mode="after")
    def _mirror_primary_visitor(self) -> "BookingRecord":
        if not self.visitor_details:
            self.visitor_details = [
                VisitorDetail(
                    name=self.visitor_name,
                    id_number=self.id_number,
                    id_type=self.id_type,
                )
            ]
        # Blank optional contact fields are not sent
        if self.visitor_email is not None and not self.visitor_email.strip():
            self.visitor_email = None
        if self.visitor_phone is not None and not self.visitor_phone.strip():
            self.visitor_phone = None
        return self

    @property
    def dedup_key(self) -> tuple[str, date]:
        return (self.id_number, self.visit_date)

    @property
    def label(self) -> str:
        return f"{self.visitor_name} ({self.id_number})"


class Appointment(ApiModel):
    """An appointment as returned by the API."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    visitor_name: str
    id_number: str | None = None
    id_type: str | None = None
    museum: str
    visit_date: str
    time_slot: str
    number_of_visitors: int = 1
    status: AppointmentStatus = AppointmentStatus.PENDING
    visitor_details: list[VisitorDetail] = Field(default_factory=list)


class Pagination(ApiModel):
    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0


class AppointmentPage(ApiModel):
    appointments: list[Appointment] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class TimeSlot(ApiModel):
    time_slot: str
    available: int = 0


class User(ApiModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    email: str
    role: UserRole = UserRole.USER
    is_active: bool = True


class UserPage(ApiModel):
    users: list[User] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class Period(ApiModel):
    start: str
    end: str


class MuseumConfig(ApiModel):
    """Capacity and time slot configuration of one museum."""

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    museum: Museum
    name: str
    address: str = ""
    max_daily_capacity: int = 0
    extended_capacity: int = 0
    special_period_capacity: int = 0
    regular_time_slots: list[str] = Field(default_factory=list)
    extended_time_slots: list[str] = Field(default_factory=list)
    special_period_time_slots: list[str] = Field(default_factory=list)
    regular_period: Period | None = None
    extended_period: Period | None = None
    special_period: Period | None = None
    booking_advance_days: int = 0
    ticket_release_time: str | None = None


class DashboardStats(ApiModel):
    total_appointments: int = 0
    status_breakdown: dict[str, int] = Field(default_factory=dict)


class TimingStatus(ApiModel):
    """Ticket release window status, as shown on the booking screen."""

    current_time: str
    release_time: str
    time_until_release: str
    status: ReleaseStatus
    can_book: bool
    next_release: str


class BookingOutcome(BaseModel):
    """Result of submitting one record.

    Success carries the server-issued identifiers (each ``"unknown"`` when the
    response omits it); failure carries a human-readable error message.
    """

    record: BookingRecord
    success: bool
    booking_id: str | None = None
    museum_booking_id: str | None = None
    confirmation_code: str | None = None
    error: str | None = None

    @classmethod
    def from_response(cls, record: BookingRecord, body: Any) -> "BookingOutcome":
        payload = body if isinstance(body, dict) else {}
        # Some deployments wrap the payload in a {"data": ...} envelope
        if isinstance(payload.get("data"), dict) and "appointment" not in payload:
            payload = payload["data"]
        appointment = payload.get("appointment") or {}
        museum_response = payload.get("museumResponse") or {}
        return cls(
            record=record,
            success=True,
            booking_id=appointment.get("_id") or appointment.get("id") or UNKNOWN,
            museum_booking_id=museum_response.get("museumBookingId") or UNKNOWN,
            confirmation_code=museum_response.get("confirmationCode") or UNKNOWN,
        )

    @classmethod
    def from_error(cls, record: BookingRecord, exc: BaseException) -> "BookingOutcome":
        message = getattr(exc, "message", None)
        if message is None:
            message = str(exc)
        return cls(record=record, success=False, error=message or DEFAULT_FAILURE_MESSAGE)

"""REST client for the museum ticketing API.

ApiClient wraps a ``requests.Session``: JSON bodies, bearer token from the
SessionManager, and HTTP failures translated into the error hierarchy in
``museum_booking.errors``. A 401 tears the session down before raising.
"""

from datetime import date
from typing import Any

import requests

from museum_booking.errors import (
    ApiError,
    AuthenticationError,
    RateLimitError,
    ReadOnlyViolation,
    ServerError,
    TransientError,
)
from museum_booking.logging import get_logger
from museum_booking.models import (
    AppointmentPage,
    AppointmentStatus,
    BookingRecord,
    DashboardStats,
    MuseumConfig,
    TimeSlot,
    TimingStatus,
    User,
    UserPage,
    UserRole,
)
from museum_booking.session import SessionManager
from museum_booking.utils import is_blocked, normalise_base_url

log = get_logger(__name__)


def _unwrap(body: Any) -> Any:
    """Strip the ``{"success": ..., "data": ...}`` envelope when present."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _clean_params(params: dict[str, Any]) -> dict[str, Any]:
    """Drop unset filters so they are not sent as empty query parameters."""
    return {k: v for k, v in params.items() if v is not None and v != ""}


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason or f"HTTP {response.status_code}"


class ApiClient:
    """Client for the ticketing REST API.

    Args:
        base_url: API root, e.g. ``https://museum.example.com/api``. A missing
            scheme defaults to https.
        session: SessionManager holding the bearer token.
        timeout: Per-request timeout in seconds.
        read_only: Block every mutating request except login (dry runs).
        http: Optional pre-configured ``requests.Session``.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionManager,
        *,
        timeout: float = 30.0,
        read_only: bool = False,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = normalise_base_url(base_url)
        self.session = session
        self.timeout = timeout
        self.read_only = read_only
        self.http = http or requests.Session()
        self.http.headers.setdefault("Content-Type", "application/json")

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        if is_blocked(method, path, read_only=self.read_only):
            raise ReadOnlyViolation(f"{method} {path} blocked in read-only mode")

        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=self.session.auth_headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            log.warning("api_timeout", method=method, path=path, error=str(e))
            raise TransientError(f"{method} {path} timed out: {e}") from e
        except requests.ConnectionError as e:
            log.warning("api_connection_error", method=method, path=path, error=str(e))
            raise TransientError(f"{method} {path} failed to connect: {e}") from e

        status = response.status_code
        if status == 401:
            log.warning("api_unauthorized", method=method, path=path)
            self.session.clear()
            raise AuthenticationError(_error_message(response))
        if status == 429:
            raise RateLimitError(_error_message(response))
        if status >= 500:
            raise ServerError(_error_message(response), status)
        if status >= 400:
            raise ApiError(_error_message(response), status)

        log.debug("api_response", method=method, path=path, status=status)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {path}", status) from e

    def get(self, path: str, **params: Any) -> Any:
        return self._request("GET", path, params=_clean_params(params) or None)

    def post(self, path: str, json: Any = None) -> Any:
        return self._request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self._request("PUT", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self._request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def login(self, email: str, password: str) -> User:
        """Log in and persist the issued token in the session."""
        data = _unwrap(self.post("/auth/login", {"email": email, "password": password}))
        user = User.model_validate(data["user"])
        self.session.save(data["token"], user)
        log.info("login_succeeded", email=user.email, role=user.role.value)
        return user

    def register(self, email: str, password: str) -> Any:
        return _unwrap(self.post("/auth/register", {"email": email, "password": password}))

    def profile(self) -> User:
        data = _unwrap(self.get("/auth/profile"))
        return User.model_validate(data.get("user", data))

    def logout(self) -> None:
        self.session.clear()
        log.info("logged_out")

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------
    def list_appointments(self, **filters: Any) -> AppointmentPage:
        return AppointmentPage.model_validate(_unwrap(self.get("/appointments", **filters)))

    def get_appointment(self, appointment_id: str) -> Any:
        return _unwrap(self.get(f"/appointments/{appointment_id}"))

    def create_appointment(self, record: BookingRecord) -> Any:
        """Create one appointment; returns the raw response body."""
        return self.post("/appointments", record.to_api())

    def update_appointment(self, appointment_id: str, data: dict[str, Any]) -> Any:
        return _unwrap(self.put(f"/appointments/{appointment_id}", data))

    def cancel_appointment(self, appointment_id: str) -> Any:
        return _unwrap(self.patch(f"/appointments/{appointment_id}/cancel"))

    def available_time_slots(self, museum: str, visit_date: date | str) -> list[TimeSlot]:
        data = _unwrap(
            self.get("/appointments/time-slots", museum=museum, date=str(visit_date))
        )
        slots = data.get("timeSlots", []) if isinstance(data, dict) else data or []
        return [TimeSlot.model_validate(slot) for slot in slots]

    def museum_configs(self) -> list[MuseumConfig]:
        data = _unwrap(self.get("/appointments/configs"))
        return [MuseumConfig.model_validate(item) for item in data or []]

    def timing_status(self) -> TimingStatus:
        return TimingStatus.model_validate(_unwrap(self.get("/appointments/timing-status")))

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    def dashboard_stats(self) -> DashboardStats:
        return DashboardStats.model_validate(_unwrap(self.get("/admin/dashboard")))

    def admin_appointments(self, **filters: Any) -> AppointmentPage:
        return AppointmentPage.model_validate(
            _unwrap(self.get("/admin/appointments", **filters))
        )

    def appointments_count(self) -> Any:
        return _unwrap(self.get("/admin/appointments/count"))

    def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus | str
    ) -> Any:
        status = AppointmentStatus(status)
        return _unwrap(
            self.patch(
                f"/admin/appointments/{appointment_id}/status", {"status": status.value}
            )
        )

    def confirm_all_pending(self) -> Any:
        return _unwrap(self.post("/admin/appointments/confirm-all"))

    def health(self) -> Any:
        return _unwrap(self.get("/admin/health"))

    def list_users(self, **filters: Any) -> UserPage:
        return UserPage.model_validate(_unwrap(self.get("/admin/users", **filters)))

    def create_user(
        self, email: str, password: str, role: UserRole | str = UserRole.USER
    ) -> Any:
        body = {"email": email, "password": password, "role": UserRole(role).value}
        return _unwrap(self.post("/admin/users", body))

    def update_user(self, user_id: str, **fields: Any) -> Any:
        body: dict[str, Any] = {}
        if fields.get("email") is not None:
            body["email"] = fields["email"]
        if fields.get("role") is not None:
            body["role"] = UserRole(fields["role"]).value
        if fields.get("is_active") is not None:
            body["isActive"] = bool(fields["is_active"])
        return _unwrap(self.put(f"/admin/users/{user_id}", body))

    def delete_user(self, user_id: str) -> Any:
        return _unwrap(self.delete(f"/admin/users/{user_id}"))

    def list_museum_configs(self) -> list[MuseumConfig]:
        data = _unwrap(self.get("/admin/museum-configs"))
        return [MuseumConfig.model_validate(item) for item in data or []]

    def create_museum_config(self, config: MuseumConfig | dict[str, Any]) -> Any:
        if isinstance(config, dict):
            config = MuseumConfig.model_validate(config)
        return _unwrap(self.post("/admin/museum-configs", config.to_api()))

    def update_museum_config(self, config_id: str, data: dict[str, Any]) -> Any:
        return _unwrap(self.put(f"/admin/museum-configs/{config_id}", data))

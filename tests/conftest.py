import json
from datetime import date
from urllib.parse import urlparse

import pytest
import requests
import structlog.testing
from requests.adapters import BaseAdapter

from museum_booking.api import ApiClient
from museum_booking.models import BookingRecord
from museum_booking.session import SessionManager

BASE_URL = "https://museum.test/api"


class FakeAdapter(BaseAdapter):
    """requests transport that answers from a route table instead of the network.

    Routes are keyed by (METHOD, path). Each route holds a list of responses
    consumed in order; the last one repeats. A response is either
    ``(status, body)`` or an exception instance to raise.
    """

    def __init__(self) -> None:
        super().__init__()
        self.routes: dict[tuple[str, str], list] = {}
        self.calls: list[requests.PreparedRequest] = []

    def add(self, method: str, path: str, *responses) -> None:
        self.routes[(method.upper(), f"/api{path}")] = list(responses)

    def send(self, request, **kwargs):
        self.calls.append(request)
        key = (request.method, urlparse(request.url).path)
        queue = self.routes.get(key)
        if not queue:
            status, body = 404, {"message": f"no route for {key}"}
        else:
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, Exception):
                raise item
            status, body = item

        response = requests.Response()
        response.status_code = status
        response.reason = {200: "OK", 201: "Created"}.get(status, "Error")
        response._content = b"" if body is None else json.dumps(body).encode()
        response.headers["Content-Type"] = "application/json"
        response.url = request.url
        response.request = request
        return response

    def close(self) -> None:
        pass

    def bodies(self) -> list[dict]:
        return [json.loads(c.body) for c in self.calls if c.body]


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def session(tmp_path) -> SessionManager:
    return SessionManager(state_dir=str(tmp_path / "state"))


@pytest.fixture
def client(adapter, session) -> ApiClient:
    http = requests.Session()
    http.mount("https://", adapter)
    return ApiClient(BASE_URL, session, http=http)


@pytest.fixture
def make_record():
    def _make(name="Visitor", id_number="110", visit_date=date(2025, 10, 9), **kwargs):
        return BookingRecord(
            visitor_name=name, id_number=id_number, visit_date=visit_date, **kwargs
        )

    return _make


@pytest.fixture(autouse=True)
def logs():
    """Capture structlog events instead of printing them."""
    with structlog.testing.capture_logs() as captured:
        yield captured

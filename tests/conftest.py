from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import List, Optional, Tuple

import pytest

from campusnest.config import Settings
from campusnest.session import ViewerSession

API_URL = "https://api.example.com/api"


@dataclass
class ToastCollector:
    """Keeps every message as a (level, message) pair."""

    messages: List[Tuple[str, str]] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))


@dataclass
class RecordingNavigator:
    """Remembers routes and redirects instead of acting on them."""

    routes: List[str] = field(default_factory=list)
    redirects: List[str] = field(default_factory=list)

    def navigate(self, route: str) -> None:
        self.routes.append(route)

    def redirect(self, url: str) -> None:
        self.redirects.append(url)

    @property
    def current_route(self) -> Optional[str]:
        return self.routes[-1] if self.routes else None


class DummyResponse:

    def __init__(self, status_code: int = 200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHttpSession:
    """Stands in for requests.Session; responses are queued per (method, path)."""

    def __init__(self):
        self.headers = {}
        self.routes = {}
        self.calls = []
        self.closed = False

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)

    def request(self, method, url, timeout=None, **kwargs):
        path = url.split("/api/", 1)[1]
        self.calls.append(
            SimpleNamespace(method=method, path=path, json=kwargs.get("json"), timeout=timeout))
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"unexpected request {method} {path}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True

    def count(self, method, path):
        return sum(1 for call in self.calls if call.method == method and call.path == path)


@pytest.fixture
def http():
    return FakeHttpSession()


@pytest.fixture
def settings(tmp_path):
    return Settings(api_url=API_URL, session_db=str(tmp_path / "session.db"))


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def toasts():
    return ToastCollector()


@pytest.fixture
def viewer(settings, http, navigator, toasts):
    return ViewerSession.login(
        settings,
        viewer_id="viewer-1",
        token="token-1",
        navigator=navigator,
        notifier=toasts,
        http_session=http,
        seed=False,
    )


def nested_property(property_id="p1", **overrides):
    document = {
        "_id": property_id,
        "title": "Spacious 2BR Apartment",
        "description": "Close to campus",
        "price": {"amount": 28000, "currency": "KES", "period": "month"},
        "location": {
            "area": "Ruaka",
            "distanceFromCampus": {"value": 1.2, "unit": "km"},
        },
        "specifications": {
            "propertyType": "2br",
            "bedrooms": 2,
            "bathrooms": 1,
            "size": {"value": 65, "unit": "sqm"},
        },
        "availability": {"vacancies": 3, "availableFrom": "2025-09-01T00:00:00.000Z"},
        "premiumDetails": {
            "exactAddress": "Limuru Road, Green Valley Apartments, Unit 12",
            "gpsCoordinates": {"latitude": -1.2, "longitude": 36.8},
            "caretaker": {"name": "Mary Wanjiru", "phone": "+254723456789"},
        },
        "amenities": ["WiFi", "Parking"],
        "images": [{"url": "https://img.example.com/1.jpg", "cloudinaryId": "c1"}],
    }
    document.update(overrides)
    return document

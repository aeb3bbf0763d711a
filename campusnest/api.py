"""HTTP client for the CampusNest marketplace API."""

from __future__ import annotations

import logging
from typing import Any, List
from urllib.parse import quote

import requests

from .errors import NetworkError, NotAuthenticatedError, UnlockError

logger = logging.getLogger(__name__)

USER_AGENT = "campusnest-client/0.1"


class ApiStatusError(UnlockError):
    """The API answered with an error status; callers decide what it means.

    ``server_message`` is the body's ``message`` field, or None when absent.
    """

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        self.server_message = message
        super().__init__(message)


class MarketplaceClient:
    """Lightweight wrapper around the marketplace REST API."""

    def __init__(self,
                 base_url: str,
                 token: str,
                 session: requests.Session | None = None,
                 timeout: int = 20):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def close(self) -> None:
        self.session.close()

    def initiate_unlock(self, property_id: str, payment_method: str) -> dict:
        """POST /payments/unlock/{propertyId}."""
        return self._request(
            "POST",
            f"payments/unlock/{quote(property_id, safe='')}",
            json={"paymentMethod": payment_method},
        )

    def verify_payment(self, reference: str) -> dict:
        """GET /payments/paystack/verify/{reference}."""
        return self._request(
            "GET", f"payments/paystack/verify/{quote(reference, safe='')}"
        )

    def get_property(self, property_id: str) -> dict:
        payload = self._request("GET", f"properties/{quote(property_id, safe='')}")
        for key in ("property", "data"):
            value = payload.get(key)
            if isinstance(value, dict):
                return value
        return payload

    def get_unlocked_properties(self) -> List[dict]:
        payload = self._request("GET", "users/unlocked-properties")
        items = payload.get("data")
        if not isinstance(items, list):
            raise ApiStatusError(200, f"Unexpected unlocked-properties payload: {payload!r}")
        return [item for item in items if isinstance(item, dict)]

    def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed before a response arrived: %s", method, url, exc)
            raise NetworkError() from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        message = payload.get("message") if isinstance(payload, dict) else None
        if response.status_code == 401:
            raise NotAuthenticatedError(message)
        if response.status_code >= 400:
            logger.warning("%s %s returned %d: %s", method, url, response.status_code, message)
            raise ApiStatusError(response.status_code, message)
        if not isinstance(payload, dict):
            raise ApiStatusError(response.status_code, "Unexpected response from server")
        return payload


def unwrap_data(payload: dict) -> dict:
    """Return the ``data`` envelope when present, else the payload itself."""
    data = payload.get("data")
    return data if isinstance(data, dict) else payload

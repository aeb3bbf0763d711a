import datetime as dt

import pytest
import requests

from conftest import DummyResponse, nested_property

from campusnest.errors import (
    InitiateFailedError,
    MissingRedirectTargetError,
    NetworkError,
    NotAuthenticatedError,
    PropertyNotFoundError,
)
from campusnest.models import SessionStatus
from campusnest.payments import ABANDONED_REASON, extract_authorization_url

CHECKOUT_URL = "https://checkout.paystack.com/abc123"


def initiate_response(url_key="authorizationUrl", reference="abc123"):
    return DummyResponse(
        200,
        {
            "success": True,
            "message": "Payment initialized",
            "data": {url_key: CHECKOUT_URL, "reference": reference},
        },
    )


@pytest.mark.parametrize("url_key", ["authorizationUrl", "authorization_url"])
def test_initiate_records_session_and_redirects(viewer, http, navigator, url_key):
    http.add("POST", "payments/unlock/p1", initiate_response(url_key))

    result = viewer.initiator.initiate_unlock("p1")

    assert result.reference == "abc123"
    assert result.authorization_url == CHECKOUT_URL
    assert result.already_unlocked is False
    assert http.calls[0].json == {"paymentMethod": "paystack"}
    assert navigator.redirects == [CHECKOUT_URL]

    session = viewer.context.database.fetch_session("abc123")
    assert session.status is SessionStatus.AWAITING_RETURN
    assert session.property_id == "p1"
    assert session.viewer_id == "viewer-1"
    assert [status for status, _, _ in viewer.context.database.session_history("abc123")] == [
        "initiated",
        "awaiting_return",
    ]


def test_initiate_is_noop_when_already_unlocked(viewer, http, navigator):
    viewer.context.store.record_grant("viewer-1", "p1", "ref-0")

    result = viewer.initiator.initiate_unlock("p1")

    assert result.already_unlocked is True
    assert result.reference is None
    assert http.calls == []
    assert navigator.redirects == []


def test_initiate_treats_server_already_unlocked_as_noop(viewer, http, navigator):
    http.add(
        "POST",
        "payments/unlock/p1",
        DummyResponse(400, {"success": False, "message": "Property already unlocked"}),
    )
    http.add(
        "GET",
        "users/unlocked-properties",
        DummyResponse(200, {"success": True, "data": [nested_property("p1")]}),
    )

    result = viewer.initiator.initiate_unlock("p1")

    assert result.already_unlocked is True
    assert viewer.context.store.has_grant("viewer-1", "p1")
    assert navigator.redirects == []


def test_missing_authorization_url_is_hard_error(viewer, http, navigator, toasts):
    http.add(
        "POST",
        "payments/unlock/p1",
        DummyResponse(200, {"success": True, "data": {"reference": "abc123"}}),
    )

    with pytest.raises(MissingRedirectTargetError):
        viewer.initiator.initiate_unlock("p1")

    assert navigator.redirects == []
    assert viewer.context.database.fetch_sessions() == []
    assert toasts.messages == [("error", "Missing payment authorization URL")]


def test_network_error_before_navigation_is_recoverable(viewer, http, navigator, toasts):
    http.add("POST", "payments/unlock/p1", requests.Timeout("read timed out"))

    with pytest.raises(NetworkError) as excinfo:
        viewer.initiator.initiate_unlock("p1")

    assert excinfo.value.retryable is True
    assert navigator.redirects == []
    assert viewer.context.database.fetch_sessions() == []
    assert toasts.messages[0][0] == "error"


def test_unknown_property_raises_not_found(viewer, http):
    http.add("POST", "payments/unlock/nope", DummyResponse(404, {"message": "Property not found"}))

    with pytest.raises(PropertyNotFoundError) as excinfo:
        viewer.initiator.initiate_unlock("nope")

    assert excinfo.value.retryable is False


def test_server_error_surfaces_server_message(viewer, http, toasts):
    http.add(
        "POST",
        "payments/unlock/p1",
        DummyResponse(500, {"success": False, "message": "Paystack is unavailable"}),
    )

    with pytest.raises(InitiateFailedError) as excinfo:
        viewer.initiator.initiate_unlock("p1")

    assert excinfo.value.retryable is True
    assert toasts.messages == [("error", "Paystack is unavailable")]


def test_missing_reference_in_response_fails(viewer, http, navigator):
    http.add(
        "POST",
        "payments/unlock/p1",
        DummyResponse(200, {"data": {"authorizationUrl": CHECKOUT_URL}}),
    )

    with pytest.raises(InitiateFailedError):
        viewer.initiator.initiate_unlock("p1")

    assert navigator.redirects == []


def test_initiate_requires_current_viewer(viewer, http):
    with pytest.raises(NotAuthenticatedError):
        viewer.initiator.initiate_unlock("p1", viewer_id="someone-else")

    assert http.calls == []


def test_fee_display_uses_configured_fee(viewer):
    assert viewer.initiator.fee_display() == "KSh 200"


def test_expire_abandoned_fails_stale_sessions(viewer, http):
    viewer.initiator.clock = lambda: "2025-01-01T00:00:00+00:00"
    http.add("POST", "payments/unlock/p1", initiate_response())
    viewer.initiator.initiate_unlock("p1")
    start = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)

    assert viewer.initiator.expire_abandoned(now=start + dt.timedelta(minutes=29)) == []

    expired = viewer.initiator.expire_abandoned(now=start + dt.timedelta(minutes=31))

    assert [session.reference for session in expired] == ["abc123"]
    session = viewer.context.database.fetch_session("abc123")
    assert session.status is SessionStatus.FAILED
    assert session.failure_reason == ABANDONED_REASON


def test_abandoned_session_still_verifies_on_late_return(viewer, http, navigator):
    viewer.initiator.clock = lambda: "2025-01-01T00:00:00+00:00"
    http.add("POST", "payments/unlock/p1", initiate_response())
    http.add(
        "GET",
        "payments/paystack/verify/abc123",
        DummyResponse(200, {"success": True, "data": {"unlocked": True, "propertyId": "p1"}}),
    )
    viewer.initiator.initiate_unlock("p1")
    viewer.initiator.expire_abandoned(
        now=dt.datetime(2025, 1, 2, tzinfo=dt.timezone.utc)
    )

    outcome = viewer.reconciler.reconcile("/payment/paystack/callback?reference=abc123")

    assert outcome.verified
    assert viewer.context.database.fetch_session("abc123").status is SessionStatus.VERIFIED
    assert viewer.context.store.has_grant("viewer-1", "p1")


def test_extract_authorization_url_ignores_blank_values():
    assert extract_authorization_url({"authorizationUrl": " ", "authorization_url": "https://x"}) == "https://x"
    assert extract_authorization_url({}) is None

import pytest
import requests

from conftest import API_URL, DummyResponse, FakeHttpSession

from campusnest.api import ApiStatusError, MarketplaceClient, unwrap_data
from campusnest.errors import NetworkError, NotAuthenticatedError


@pytest.fixture
def client(http):
    return MarketplaceClient(API_URL + "/", "token-1", session=http, timeout=5)


def test_client_sets_auth_and_json_headers(client, http):
    assert http.headers["Authorization"] == "Bearer token-1"
    assert http.headers["Accept"] == "application/json"
    assert client.base_url == API_URL


def test_client_without_token_sends_no_authorization():
    http = FakeHttpSession()
    MarketplaceClient(API_URL, "", session=http)
    assert "Authorization" not in http.headers


def test_initiate_unlock_posts_payment_method(client, http):
    http.add("POST", "payments/unlock/p1", DummyResponse(200, {"success": True, "data": {}}))

    client.initiate_unlock("p1", "paystack")

    call = http.calls[0]
    assert call.json == {"paymentMethod": "paystack"}
    assert call.timeout == 5


def test_verify_payment_quotes_reference(client, http):
    http.add("GET", "payments/paystack/verify/a%2Fb", DummyResponse(200, {"unlocked": True}))

    assert client.verify_payment("a/b") == {"unlocked": True}


@pytest.mark.parametrize("envelope", ["property", "data"])
def test_get_property_unwraps_envelope(client, http, envelope):
    http.add("GET", "properties/p1", DummyResponse(200, {envelope: {"_id": "p1"}}))

    assert client.get_property("p1") == {"_id": "p1"}


def test_get_property_accepts_bare_document(client, http):
    http.add("GET", "properties/p1", DummyResponse(200, {"_id": "p1", "title": "Bare"}))

    assert client.get_property("p1")["title"] == "Bare"


def test_get_unlocked_properties_filters_non_documents(client, http):
    http.add(
        "GET",
        "users/unlocked-properties",
        DummyResponse(200, {"success": True, "data": [{"_id": "p1"}, "junk"]}),
    )

    assert client.get_unlocked_properties() == [{"_id": "p1"}]


def test_get_unlocked_properties_rejects_unexpected_payload(client, http):
    http.add("GET", "users/unlocked-properties", DummyResponse(200, {"data": {}}))

    with pytest.raises(ApiStatusError):
        client.get_unlocked_properties()


def test_transport_failure_becomes_network_error(client, http):
    http.add("GET", "properties/p1", requests.ConnectionError("connection refused"))

    with pytest.raises(NetworkError) as excinfo:
        client.get_property("p1")

    assert excinfo.value.retryable is True


def test_unauthorized_becomes_not_authenticated(client, http):
    http.add("GET", "properties/p1", DummyResponse(401, {"message": "Token expired"}))

    with pytest.raises(NotAuthenticatedError) as excinfo:
        client.get_property("p1")

    assert excinfo.value.message == "Token expired"


def test_error_status_carries_server_message(client, http):
    http.add("GET", "properties/p1", DummyResponse(500, {"message": "Database unavailable"}))

    with pytest.raises(ApiStatusError) as excinfo:
        client.get_property("p1")

    assert excinfo.value.status_code == 500
    assert excinfo.value.server_message == "Database unavailable"


def test_error_status_without_json_body(client, http):
    http.add("GET", "properties/p1", DummyResponse(502))

    with pytest.raises(ApiStatusError) as excinfo:
        client.get_property("p1")

    assert excinfo.value.server_message is None


def test_non_json_success_is_rejected(client, http):
    http.add("GET", "properties/p1", DummyResponse(200))

    with pytest.raises(ApiStatusError):
        client.get_property("p1")


def test_unwrap_data():
    assert unwrap_data({"data": {"a": 1}}) == {"a": 1}
    assert unwrap_data({"a": 1}) == {"a": 1}

import pytest
import requests

from review_sync.vendors import google_business
from review_sync.vendors.http import TransportError, UpstreamHTTPError


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("{}" if payload is not None else "")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.response = None
        self.error = None

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_business, "_SESSION", session)
    return session


def test_list_reviews_first_page(patch_session):
    patch_session.response = DummyResponse(payload={"reviews": [{"reviewId": "r1"}], "nextPageToken": "abc"})

    payload = google_business.list_reviews("accounts/1/locations/2", "token", page_size=20)

    assert payload["nextPageToken"] == "abc"
    call = patch_session.calls[0]
    assert call["url"] == "https://mybusiness.googleapis.com/v4/accounts/1/locations/2/reviews"
    assert call["params"] == {"pageSize": 20, "orderBy": "updateTime desc"}
    assert call["headers"]["Authorization"] == "Bearer token"
    assert call["timeout"] == 8.0


def test_list_reviews_passes_page_token(patch_session):
    patch_session.response = DummyResponse(payload={})

    google_business.list_reviews("accounts/1/locations/2", "token", page_token="next-1")

    assert patch_session.calls[0]["params"]["pageToken"] == "next-1"


def test_list_reviews_empty_body_is_empty_page(patch_session):
    patch_session.response = DummyResponse(text="")

    assert google_business.list_reviews("accounts/1/locations/2", "token") == {}


def test_list_reviews_non_2xx_keeps_body(patch_session):
    body = '{"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}}'
    patch_session.response = DummyResponse(status_code=429, text=body)

    with pytest.raises(UpstreamHTTPError) as excinfo:
        google_business.list_reviews("accounts/1/locations/2", "token")

    assert excinfo.value.status_code == 429
    assert excinfo.value.body == body


def test_list_reviews_connection_error_is_transport_error(patch_session):
    patch_session.error = requests.ConnectionError("connection reset by peer")

    with pytest.raises(TransportError, match="connection reset"):
        google_business.list_reviews("accounts/1/locations/2", "token")

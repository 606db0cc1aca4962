import time
from unittest.mock import patch

import pytest
import requests

from domain.errors import ResolutionFailure, UpstreamFailure
from services import http


class DummyResponse:
    def __init__(self, json_data=None, status_code=200, text="", json_error=None):
        self._json = json_data
        self.status_code = status_code
        self.text = text
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise self._json_error
        return self._json


@patch("services.http._session.request")
def test_fetch_json_returns_decoded_body(mock_request):
    mock_request.return_value = DummyResponse({"ok": True})

    data = http.fetch_json("overpass", "GET", "https://example.test/api", params={"a": "1"})

    assert data == {"ok": True}
    args, kwargs = mock_request.call_args
    assert args == ("GET", "https://example.test/api")
    assert kwargs["params"] == {"a": "1"}
    assert "User-Agent" in kwargs["headers"]
    assert kwargs["timeout"] > 0


@patch("services.http._session.request")
def test_fetch_json_raises_on_error_status(mock_request):
    mock_request.return_value = DummyResponse(status_code=500, text="boom")

    with pytest.raises(UpstreamFailure) as info:
        http.fetch_json("overpass", "POST", "https://example.test/api")

    assert info.value.status_code == 500
    assert info.value.service == "overpass"
    assert not info.value.rate_limited
    assert "boom" in info.value.message


@patch("services.http._session.request")
def test_fetch_json_flags_rate_limiting(mock_request):
    mock_request.return_value = DummyResponse(status_code=429, text="Too Many Requests")

    with pytest.raises(UpstreamFailure) as info:
        http.fetch_json("overpass", "POST", "https://example.test/api")

    assert info.value.rate_limited


@patch("services.http._session.request")
def test_fetch_json_wraps_transport_errors(mock_request):
    mock_request.side_effect = requests.Timeout("read timed out")

    with pytest.raises(ResolutionFailure) as info:
        http.fetch_json(
            "nominatim", "GET", "https://example.test/search", failure_cls=ResolutionFailure
        )

    assert "timed out" in info.value.message
    assert info.value.status_code is None


@patch("services.http._session.request")
def test_fetch_json_rejects_invalid_json(mock_request):
    mock_request.return_value = DummyResponse(json_error=ValueError("Expecting value"))

    with pytest.raises(UpstreamFailure):
        http.fetch_json("osrm", "GET", "https://example.test/route")


def test_throttle_waits_between_requests_to_same_host(monkeypatch):
    sleeps = []
    monkeypatch.setattr(http.time, "sleep", lambda s: sleeps.append(s))
    monkeypatch.setitem(http._last_request_ts, "throttle.test", time.time())

    with patch("services.http._session.request", return_value=DummyResponse([])):
        http.fetch_json("nominatim", "GET", "https://throttle.test/search", min_interval=5.0)
        http.fetch_json("overpass", "GET", "https://other-host.test/api", min_interval=0.0)

    assert len(sleeps) == 1
    assert 0 < sleeps[0] <= 5.0

from __future__ import annotations

import asyncio
import base64
import io
from typing import List
from urllib.error import HTTPError, URLError
from urllib.request import Request

import pytest

from src.phone_journal.audio import fetch as fetch_module
from src.phone_journal.audio.fetch import (
    SameHostAuthRedirectHandler,
    download_recording_blocking,
    fetch_recording,
)
from src.phone_journal.contracts.errors import FetchError

RECORDING_URL = "https://api.twilio.com/2010-04-01/Accounts/AC0/Recordings/RE1"


class FakeResponse:
    def __init__(self, body: bytes = b"", status: int = 200, fail_read: bool = False) -> None:
        self.body = body
        self.status = status
        self.fail_read = fail_read

    def read(self) -> bytes:
        if self.fail_read:
            raise ConnectionResetError("connection reset by peer")
        return self.body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


@pytest.fixture
def requests_seen() -> List:
    return []


def _install(monkeypatch, seen, outcome):
    def fake_open_url(req):
        seen.append(req)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    monkeypatch.setattr(fetch_module, "_open_url", fake_open_url)


def test_download_uses_basic_auth(monkeypatch, requests_seen):
    _install(monkeypatch, requests_seen, FakeResponse(b"RIFF-bytes"))

    data = download_recording_blocking(url=RECORDING_URL, account_sid="AC0", auth_token="tok")

    assert data == b"RIFF-bytes"
    (req,) = requests_seen
    assert req.get_method() == "GET"
    assert req.full_url == RECORDING_URL
    expected = "Basic " + base64.b64encode(b"AC0:tok").decode("ascii")
    assert req.get_header("Authorization") == expected


def test_fetch_recording_wraps_bytes(monkeypatch, requests_seen):
    _install(monkeypatch, requests_seen, FakeResponse(b"abc"))

    recording = asyncio.run(fetch_recording(RECORDING_URL, account_sid="AC0", auth_token="tok"))

    assert recording.url == RECORDING_URL
    assert recording.data == b"abc"


def test_http_404_is_a_fetch_error_with_status(monkeypatch, requests_seen):
    error = HTTPError(RECORDING_URL, 404, "Not Found", {}, io.BytesIO(b""))
    _install(monkeypatch, requests_seen, error)

    with pytest.raises(FetchError) as excinfo:
        download_recording_blocking(url=RECORDING_URL, account_sid="AC0", auth_token="tok")

    assert excinfo.value.status_code == 404
    assert excinfo.value.stage == "fetching"
    assert "404" in str(excinfo.value)


def test_non_200_success_status_is_a_fetch_error(monkeypatch, requests_seen):
    _install(monkeypatch, requests_seen, FakeResponse(b"", status=204))

    with pytest.raises(FetchError) as excinfo:
        download_recording_blocking(url=RECORDING_URL, account_sid="AC0", auth_token="tok")

    assert excinfo.value.status_code == 204


def test_network_failure_is_a_fetch_error(monkeypatch, requests_seen):
    _install(monkeypatch, requests_seen, URLError("name resolution failed"))

    with pytest.raises(FetchError) as excinfo:
        download_recording_blocking(url=RECORDING_URL, account_sid="AC0", auth_token="tok")

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.cause, URLError)


def test_body_read_failure_is_a_fetch_error(monkeypatch, requests_seen):
    _install(monkeypatch, requests_seen, FakeResponse(fail_read=True))

    with pytest.raises(FetchError) as excinfo:
        download_recording_blocking(url=RECORDING_URL, account_sid="AC0", auth_token="tok")

    assert isinstance(excinfo.value.cause, ConnectionResetError)


def _authorized_request() -> Request:
    return Request(
        RECORDING_URL,
        method="GET",
        headers={"Authorization": "Basic " + base64.b64encode(b"AC0:secret").decode("ascii")},
    )


def test_redirect_to_another_host_drops_credentials():
    handler = SameHostAuthRedirectHandler()
    target = "https://storage.example.com/media/RE1.wav?X-Amz-Signature=x"

    redirected = handler.redirect_request(_authorized_request(), None, 302, "Found", {}, target)

    assert redirected.full_url == target
    assert redirected.get_header("Authorization") is None
    assert not redirected.has_header("Authorization")


def test_redirect_on_the_same_host_keeps_credentials():
    handler = SameHostAuthRedirectHandler()
    target = "https://API.twilio.com/2010-04-01/Accounts/AC0/Recordings/RE1.wav"

    redirected = handler.redirect_request(_authorized_request(), None, 302, "Found", {}, target)

    assert redirected.get_header("Authorization").startswith("Basic ")


def test_download_opener_uses_the_redirect_handler():
    opener = fetch_module._build_opener()

    assert any(isinstance(h, SameHostAuthRedirectHandler) for h in opener.handlers)

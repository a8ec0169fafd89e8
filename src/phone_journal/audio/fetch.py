"""
Recording fetcher.

Downloads the raw recording from the provider-supplied RecordingUrl using the
account SID / auth token as HTTP basic auth.

NOTE:
- urllib is blocking; the async entrypoint runs it in a worker thread.
- No retry and no timeout: a failed fetch ends the invocation.
- Credentials are only sent to the recording host; a redirect to another host
  (e.g. presigned storage) is followed without them.
"""

from __future__ import annotations

import asyncio
import base64
from http import HTTPStatus
from http.client import HTTPException
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit
from urllib.request import HTTPRedirectHandler, HTTPSHandler, OpenerDirector, Request, build_opener

from src.phone_journal.contracts.errors import FetchError
from src.phone_journal.contracts.pipeline import Recording
from src.phone_journal.infra.http_ssl import create_ssl_context
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)


def _basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class SameHostAuthRedirectHandler(HTTPRedirectHandler):
    """Follow redirects, dropping Authorization when the host changes."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        new_req = super().redirect_request(req, fp, code, msg, headers, newurl)
        if new_req is not None and not _same_host(req.full_url, new_req.full_url):
            new_req.remove_header("Authorization")
        return new_req


def _same_host(url: str, other: str) -> bool:
    return (urlsplit(url).hostname or "").lower() == (urlsplit(other).hostname or "").lower()


def _build_opener() -> OpenerDirector:
    return build_opener(HTTPSHandler(context=create_ssl_context()), SameHostAuthRedirectHandler())


def _open_url(req: Request):
    return _build_opener().open(req)


def download_recording_blocking(*, url: str, account_sid: str, auth_token: str) -> bytes:
    """
    GET the recording and return its body (blocking).
    """
    req = Request(
        url,
        method="GET",
        headers={"Authorization": _basic_auth_header(account_sid, auth_token)},
    )

    try:
        with _open_url(req) as resp:
            if resp.status != HTTPStatus.OK:
                raise FetchError(url, status_code=resp.status)
            try:
                return resp.read()
            except (HTTPException, OSError) as exc:
                raise FetchError(url, cause=exc) from exc
    except HTTPError as exc:
        raise FetchError(url, status_code=exc.code, cause=exc) from exc
    except (URLError, HTTPException, OSError, ValueError) as exc:
        raise FetchError(url, cause=exc) from exc


async def fetch_recording(url: str, *, account_sid: str, auth_token: str) -> Recording:
    """
    Download a recording without blocking the event loop.
    """
    data = await asyncio.to_thread(
        download_recording_blocking,
        url=url,
        account_sid=account_sid,
        auth_token=auth_token,
    )
    logger.info("Recording downloaded | url=%s | bytes=%s", url, len(data))
    return Recording(url=url, data=data)

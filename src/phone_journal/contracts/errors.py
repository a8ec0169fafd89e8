"""
Error taxonomy.

Webhook errors are converted to HTTP responses by the app factory.
Pipeline errors never reach an HTTP response: they end one background
invocation and are logged with the stage that raised them.
"""

from __future__ import annotations

from typing import Optional


class WebhookError(Exception):
    """Base class for errors raised while handling a provider webhook."""

    status_code: int = 500


class AuthenticationError(WebhookError):
    """The request signature does not match."""

    status_code = 403


class ValidationError(WebhookError):
    """Malformed form, multi-valued field or unexpected recording status."""

    status_code = 400


class CallerRejected(Exception):
    """The caller is not allow-listed. Answered with a reject directive, not an error status."""

    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__(f"Caller '{caller}' is not allowed")


class PipelineError(Exception):
    """Raised by a recording pipeline stage. Never retried."""

    stage: str = "unknown"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


class FetchError(PipelineError):
    stage = "fetching"

    def __init__(
        self,
        url: str,
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"Failed to fetch recording '{url}': unexpected status code {status_code}"
        else:
            message = f"Failed to fetch recording '{url}': {cause}"
        super().__init__(message, cause)


class DecodeError(PipelineError):
    stage = "normalizing"


class EncodeError(PipelineError):
    stage = "normalizing"


class UnsupportedFormatError(PipelineError):
    stage = "normalizing"

    def __init__(self, channels: int) -> None:
        self.channels = channels
        super().__init__(f"Unsupported number of channels: {channels}")


class TranscriptionError(PipelineError):
    stage = "transcribing"


class PublishError(PipelineError):
    stage = "publishing"

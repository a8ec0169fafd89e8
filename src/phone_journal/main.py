"""
FastAPI service entrypoint.

Responsibilities:
- Load and validate configuration (fatal if incomplete)
- Load the speech model once at startup (fatal if it fails)
- Register the Twilio Voice webhooks
- Map webhook errors to HTTP responses

IMPORTANT:
- Recording processing runs after the webhook response is sent
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from src.phone_journal.api.voice_webhooks import TWIML_MEDIA_TYPE
from src.phone_journal.api.voice_webhooks import router as voice_router
from src.phone_journal.config.settings import Settings, get_settings
from src.phone_journal.contracts.errors import CallerRejected, WebhookError
from src.phone_journal.logging.logger import set_log_level, setup_logger
from src.phone_journal.runtime.recording_pipeline import RecordingPipeline, build_recording_pipeline
from src.phone_journal.services.twilio_service import build_reject_twiml

logger = setup_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if app.state.recording_pipeline is None:
        try:
            app.state.recording_pipeline = build_recording_pipeline(app.state.settings)
        except Exception:
            logger.exception("Failed to load speech model | path=%s", app.state.settings.model_file)
            raise
    yield


async def _webhook_error_handler(request: Request, exc: WebhookError) -> Response:
    logger.info(
        "Webhook rejected | path=%s | status=%s | reason=%s",
        request.url.path,
        exc.status_code,
        exc,
    )
    return PlainTextResponse(str(exc), status_code=exc.status_code)


async def _caller_rejected_handler(request: Request, exc: CallerRejected) -> Response:
    # A policy decision, not a fault: Twilio gets a 200 with a <Reject/> directive
    return Response(build_reject_twiml(), media_type=TWIML_MEDIA_TYPE)


def create_app(
    settings: Optional[Settings] = None,
    recording_pipeline: Optional[RecordingPipeline] = None,
) -> FastAPI:
    """
    FastAPI application factory.
    """
    settings = settings or get_settings()
    set_log_level(settings.app_log_level)

    app = FastAPI(title="Phone Journal Server", lifespan=lifespan)
    app.state.settings = settings
    app.state.recording_pipeline = recording_pipeline

    # Register routes
    app.include_router(voice_router)

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    app.add_exception_handler(WebhookError, _webhook_error_handler)
    app.add_exception_handler(CallerRejected, _caller_rejected_handler)

    logger.info(
        "Phone journal server initialized | external_hostname=%s | allowed_callers=%s",
        settings.external_hostname,
        len(settings.caller_allow_list),
    )
    return app


# ASGI entrypoint (required by uvicorn)
app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=get_settings().host, port=get_settings().port)

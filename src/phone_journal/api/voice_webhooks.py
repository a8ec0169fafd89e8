"""
Twilio Voice webhooks.

Responsibilities:
- /call: answer call setup with the "say + record" TwiML
- /recording: accept the recording completion callback, respond immediately,
  then run the recording pipeline after the response is sent

NOTE:
- No audio work happens while Twilio waits for the response
- Pipeline failures are logged, never reported back to Twilio
"""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from src.phone_journal.config.settings import RECORDING_PATH, Settings
from src.phone_journal.contracts.errors import ValidationError
from src.phone_journal.contracts.pipeline import PipelineInvocation
from src.phone_journal.inputs.twilio.inbound import (
    get_app_settings,
    require_allowed_caller,
    verify_twilio_signature,
)
from src.phone_journal.logging.logger import setup_logger
from src.phone_journal.services.twilio_service import build_record_twiml

logger = setup_logger(__name__)

router = APIRouter()

TWIML_MEDIA_TYPE = "application/xml"


@router.post("/call")
async def call_webhook(
    params: Dict[str, str] = Depends(require_allowed_caller),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """
    Twilio Voice call-setup entrypoint.
    """
    logger.info(
        "Incoming call accepted | from=%s | call_sid=%s",
        params.get("From"),
        params.get("CallSid"),
    )
    twiml = build_record_twiml(settings.recording_callback_url)
    return Response(twiml, media_type=TWIML_MEDIA_TYPE)


@router.post(RECORDING_PATH)
async def recording_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    params: Dict[str, str] = Depends(verify_twilio_signature),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """
    Twilio recording status callback entrypoint.
    """
    status = params.get("RecordingStatus")
    if status != "completed":
        logger.warning("Incomplete recording | status=%s | call_sid=%s", status, params.get("CallSid"))
        raise ValidationError("incomplete recording")

    recording_url = (params.get("RecordingUrl") or "").strip()
    if not recording_url:
        logger.warning("Completed recording without RecordingUrl | call_sid=%s", params.get("CallSid"))
        raise ValidationError("missing RecordingUrl")

    invocation = PipelineInvocation(recording_url=recording_url, settings=settings)
    pipeline = request.app.state.recording_pipeline

    # Starlette runs background tasks only after the response has been sent
    background_tasks.add_task(pipeline.run, invocation)

    logger.info(
        "Recording callback accepted | url=%s | recording_sid=%s",
        recording_url,
        params.get("RecordingSid"),
    )
    return PlainTextResponse("Thanks!")

"""
Recording pipeline (execution runtime).

Responsibilities:
- Run Fetching -> Normalizing -> Transcribing -> Publishing for one recording
- Stop at the first failing stage, log it with the recording URL, never retry
- Never raise: the webhook that started the run has already been answered

IMPORTANT:
- One invocation per completion callback; invocations share nothing except
  the speech engine, which serializes access itself.
- A failed run is dropped. There is no retry queue.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol

from src.phone_journal.audio.fetch import fetch_recording
from src.phone_journal.audio.normalize import normalize_recording
from src.phone_journal.audio.transcribe import transcribe_audio
from src.phone_journal.config.settings import Settings
from src.phone_journal.contracts.errors import PipelineError
from src.phone_journal.contracts.pipeline import (
    PipelineInvocation,
    PipelineResult,
    PipelineStage,
    Recording,
)
from src.phone_journal.infra.notion_notes import NotionTranscriptPublisher
from src.phone_journal.infra.speech_engine import SerializedSpeechEngine, load_speech_engine
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)

Fetcher = Callable[..., Awaitable[Recording]]


class TranscriptPublisher(Protocol):
    async def publish(self, transcript: str) -> str: ...


PublisherFactory = Callable[[Settings], TranscriptPublisher]


class RecordingPipeline:
    """
    Runs the four stages for one invocation at a time; safe to run many
    invocations concurrently.
    """

    def __init__(
        self,
        engine: SerializedSpeechEngine,
        *,
        fetcher: Fetcher = fetch_recording,
        publisher_factory: PublisherFactory = NotionTranscriptPublisher.from_settings,
    ) -> None:
        self.engine = engine
        self.fetcher = fetcher
        self.publisher_factory = publisher_factory

    async def run(self, invocation: PipelineInvocation) -> PipelineResult:
        url = invocation.correlation_id
        settings = invocation.settings
        stage = PipelineStage.FETCHING
        page_id: Optional[str] = None
        t_start = time.perf_counter()

        logger.info("Recording pipeline started | url=%s", url)

        try:
            recording = await self.fetcher(
                invocation.recording_url,
                account_sid=settings.twilio_account_sid,
                auth_token=settings.twilio_auth_token.get_secret_value(),
            )

            stage = PipelineStage.NORMALIZING
            normalized = await asyncio.to_thread(
                normalize_recording,
                recording,
                target_rate=self.engine.sample_rate,
            )
            # The raw recording is not needed past this point
            del recording

            stage = PipelineStage.TRANSCRIBING
            transcript = await transcribe_audio(normalized, self.engine)
            logger.info("Transcript | url=%s | text=%s", url, transcript.text)

            stage = PipelineStage.PUBLISHING
            publisher = self.publisher_factory(settings)
            page_id = await publisher.publish(transcript.text)

        except PipelineError as exc:
            logger.error(
                "Recording pipeline failed | stage=%s | error_type=%s | url=%s | error=%s",
                stage.value,
                type(exc).__name__,
                url,
                exc,
            )
            return PipelineResult(stage=PipelineStage.FAILED, failed_stage=stage, error=exc)
        except Exception as exc:
            logger.error(
                "Recording pipeline crashed | stage=%s | url=%s",
                stage.value,
                url,
                exc_info=exc,
            )
            return PipelineResult(stage=PipelineStage.FAILED, failed_stage=stage)

        logger.info(
            "Recording pipeline done | url=%s | page_id=%s | total_s=%.3f",
            url,
            page_id,
            time.perf_counter() - t_start,
        )
        return PipelineResult(stage=PipelineStage.DONE, page_id=page_id)


def build_recording_pipeline(settings: Settings) -> RecordingPipeline:
    """
    Load the speech model and wire the production stages.
    """
    engine = load_speech_engine(
        settings.model_file,
        device=settings.whisper_device,
        compute_type=settings.whisper_compute_type,
        language=settings.whisper_language,
    )
    return RecordingPipeline(engine)

"""
Embedded speech-to-text engine.

Design goals:
- Load the model once at process startup
- Expose a minimal "samples -> ordered segments" contract
- Stay correct under concurrent pipeline runs (inference is serialized)
"""

from __future__ import annotations

import asyncio
from typing import Iterator, Optional, Protocol

import numpy as np

from src.phone_journal.contracts.pipeline import Segment
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)

# faster-whisper (like whisper.cpp) consumes 16 kHz mono float32 PCM
WHISPER_SAMPLE_RATE = 16_000


class SpeechEngine(Protocol):
    """
    Capability contract required from the speech engine.

    process() consumes the whole utterance at once and yields segments in
    emission order; exhausting the iterator is the end-of-segments marker.
    """

    sample_rate: int

    def process(self, samples: np.ndarray) -> Iterator[Segment]: ...


class WhisperSpeechEngine:
    """faster-whisper backed engine."""

    sample_rate = WHISPER_SAMPLE_RATE

    def __init__(
        self,
        model_path: str,
        *,
        device: str = "cpu",
        compute_type: str = "int8",
        language: Optional[str] = None,
    ) -> None:
        from faster_whisper import WhisperModel

        logger.info(
            "Loading speech model | path=%s | device=%s | compute_type=%s",
            model_path,
            device,
            compute_type,
        )
        self._model = WhisperModel(model_path, device=device, compute_type=compute_type)
        self._language = language
        logger.info("Speech model loaded | path=%s", model_path)

    def process(self, samples: np.ndarray) -> Iterator[Segment]:
        segments, _info = self._model.transcribe(
            np.asarray(samples, dtype=np.float32),
            language=self._language,
        )
        # faster-whisper decodes lazily: each step of this generator runs the model
        for segment in segments:
            yield Segment(text=segment.text, start=segment.start, end=segment.end)


class SerializedSpeechEngine:
    """
    Single-owner wrapper around one loaded engine.

    All inference goes through infer(): one call at a time, executed in a
    worker thread so the event loop keeps serving webhooks.
    """

    def __init__(self, engine: SpeechEngine) -> None:
        self._engine = engine
        self._lock = asyncio.Lock()

    @property
    def sample_rate(self) -> int:
        return self._engine.sample_rate

    def _run_blocking(self, samples: np.ndarray) -> list[Segment]:
        return list(self._engine.process(samples))

    async def infer(self, samples: np.ndarray) -> list[Segment]:
        async with self._lock:
            return await asyncio.to_thread(self._run_blocking, samples)


def load_speech_engine(
    model_path: str,
    *,
    device: str = "cpu",
    compute_type: str = "int8",
    language: Optional[str] = None,
) -> SerializedSpeechEngine:
    """
    Startup entrypoint. A model that fails to load is fatal: the error propagates.
    """
    return SerializedSpeechEngine(
        WhisperSpeechEngine(
            model_path,
            device=device,
            compute_type=compute_type,
            language=language,
        )
    )

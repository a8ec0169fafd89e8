"""
Transcriber: normalized WAV -> float PCM -> speech engine -> one string.
"""

from __future__ import annotations

import asyncio

import numpy as np

from src.phone_journal.audio.wav import decode_wav
from src.phone_journal.contracts.errors import PipelineError, TranscriptionError
from src.phone_journal.contracts.pipeline import NormalizedAudio, Transcript
from src.phone_journal.infra.speech_engine import SerializedSpeechEngine
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)


def _decode_samples(audio: NormalizedAudio, expected_rate: int) -> np.ndarray:
    samples, fmt = decode_wav(audio.data, expected_channels=1)
    if fmt.sample_rate != expected_rate:
        raise TranscriptionError(
            f"Audio is {fmt.sample_rate} Hz but the speech engine expects {expected_rate} Hz"
        )
    return samples.astype(np.float32)


async def transcribe_audio(audio: NormalizedAudio, engine: SerializedSpeechEngine) -> Transcript:
    """
    Run the whole recording through the engine in one call.

    Segments are concatenated in emission order without touching separators.
    Any decode or engine failure is raised as TranscriptionError.
    """
    try:
        samples = await asyncio.to_thread(_decode_samples, audio, engine.sample_rate)
    except TranscriptionError:
        raise
    except PipelineError as exc:
        raise TranscriptionError(f"Failed to decode normalized audio: {exc}", exc) from exc

    try:
        segments = await engine.infer(samples)
    except Exception as exc:
        raise TranscriptionError(f"Speech engine failed: {exc}", exc) from exc

    transcript = Transcript(segments=tuple(segments))
    logger.info(
        "Transcription complete | segments=%s | chars=%s | spoken_until_s=%s",
        len(transcript.segments),
        len(transcript.text),
        transcript.spoken_until,
    )
    return transcript

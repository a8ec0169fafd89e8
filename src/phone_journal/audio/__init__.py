"""
Audio domain package.

This centralizes the recording stages of the pipeline:
- fetch (RecordingUrl -> bytes)
- normalize (WAV -> mono WAV at the engine's sample rate)
- transcribe (normalized WAV -> transcript)
"""

from __future__ import annotations

from src.phone_journal.audio.fetch import fetch_recording
from src.phone_journal.audio.normalize import TARGET_SAMPLE_RATE, normalize_audio, normalize_recording
from src.phone_journal.audio.transcribe import transcribe_audio

__all__ = [
    "TARGET_SAMPLE_RATE",
    "fetch_recording",
    "normalize_audio",
    "normalize_recording",
    "transcribe_audio",
]

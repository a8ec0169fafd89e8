"""
Audio normalizer.

The speech engine only accepts mono audio at its own sample rate:
- multi-channel recordings are rejected, never downmixed
- the sample rate is converted with a polyphase FIR filter (fixed Kaiser window)
- the result is re-encoded as WAV at the source bit depth
"""

from __future__ import annotations

from math import gcd

import numpy as np
from scipy.signal import resample_poly

from src.phone_journal.audio.wav import decode_wav, encode_wav
from src.phone_journal.contracts.errors import EncodeError
from src.phone_journal.contracts.pipeline import AudioFormat, NormalizedAudio, Recording
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)

# Whisper expects 16 kHz mono
TARGET_SAMPLE_RATE = 16_000
TARGET_CHANNELS = 1

# Kaiser beta 5.0 is scipy's own default; pinned so output never drifts between releases
_RESAMPLE_WINDOW = ("kaiser", 5.0)


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    if source_rate == target_rate or samples.size == 0:
        return samples
    divisor = gcd(source_rate, target_rate)
    try:
        return resample_poly(
            samples,
            target_rate // divisor,
            source_rate // divisor,
            window=_RESAMPLE_WINDOW,
        )
    except (ValueError, MemoryError) as exc:
        raise EncodeError(f"Resampling {source_rate} Hz -> {target_rate} Hz failed: {exc}", exc) from exc


def normalize_audio(data: bytes, *, target_rate: int = TARGET_SAMPLE_RATE) -> NormalizedAudio:
    """
    Decode, validate and resample a WAV recording.

    Raises:
        UnsupportedFormatError: the recording is not mono
        DecodeError: the bytes are not a readable integer-PCM WAV
        EncodeError: resampling or re-encoding failed
    """
    samples, source = decode_wav(data, expected_channels=TARGET_CHANNELS)
    resampled = resample(samples, source.sample_rate, target_rate)

    target = AudioFormat(
        sample_rate=target_rate,
        channels=TARGET_CHANNELS,
        sample_width=source.sample_width,
    )
    normalized = NormalizedAudio(data=encode_wav(resampled, target), format=target)

    logger.info(
        "Audio normalized | source_rate=%s | target_rate=%s | bits=%s | frames_in=%s | frames_out=%s",
        source.sample_rate,
        target.sample_rate,
        target.precision_bits,
        samples.shape[0],
        resampled.shape[0],
    )
    return normalized


def normalize_recording(recording: Recording, *, target_rate: int = TARGET_SAMPLE_RATE) -> NormalizedAudio:
    return normalize_audio(recording.data, target_rate=target_rate)

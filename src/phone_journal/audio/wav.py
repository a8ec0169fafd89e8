"""
WAV <-> float PCM conversion.

Supports integer PCM at 8/16/24/32-bit. Samples are float64 in [-1.0, 1.0),
laid out as (frames,) for mono and (frames, channels) otherwise.
"""

from __future__ import annotations

import io
import wave
from typing import Optional

import numpy as np

from src.phone_journal.contracts.errors import DecodeError, EncodeError, UnsupportedFormatError
from src.phone_journal.contracts.pipeline import AudioFormat

_SUPPORTED_WIDTHS = (1, 2, 3, 4)


def _full_scale(sample_width: int) -> float:
    return float(1 << (8 * sample_width - 1))


def decode_wav(data: bytes, *, expected_channels: Optional[int] = None) -> tuple[np.ndarray, AudioFormat]:
    """
    Decode a WAV container into float samples.

    With expected_channels set, the channel count is checked right after the
    header and before any sample is read.
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            fmt = AudioFormat(
                sample_rate=wav_file.getframerate(),
                channels=wav_file.getnchannels(),
                sample_width=wav_file.getsampwidth(),
            )
            if expected_channels is not None and fmt.channels != expected_channels:
                raise UnsupportedFormatError(fmt.channels)
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError, ValueError) as exc:
        raise DecodeError(f"Invalid WAV data: {exc}", exc) from exc

    if fmt.sample_width not in _SUPPORTED_WIDTHS:
        raise DecodeError(f"Unsupported sample width: {fmt.sample_width} bytes")
    if fmt.sample_rate <= 0:
        raise DecodeError(f"Invalid sample rate: {fmt.sample_rate}")

    block_align = fmt.sample_width * fmt.channels
    if len(frames) % block_align:
        raise DecodeError(
            f"Truncated sample data: {len(frames)} bytes is not a multiple of {block_align}"
        )

    samples = _pcm_to_float(frames, fmt.sample_width)
    if fmt.channels > 1:
        samples = samples.reshape(-1, fmt.channels)
    return samples, fmt


def encode_wav(samples: np.ndarray, fmt: AudioFormat) -> bytes:
    """Encode float samples into a WAV container with the given format."""
    if fmt.sample_width not in _SUPPORTED_WIDTHS:
        raise EncodeError(f"Unsupported sample width: {fmt.sample_width} bytes")

    frames = _float_to_pcm(np.asarray(samples, dtype=np.float64).reshape(-1), fmt.sample_width)

    buffer = io.BytesIO()
    try:
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(fmt.channels)
            wav_file.setsampwidth(fmt.sample_width)
            wav_file.setframerate(fmt.sample_rate)
            wav_file.writeframes(frames)
    except (wave.Error, ValueError) as exc:
        raise EncodeError(f"Failed to encode WAV: {exc}", exc) from exc
    return buffer.getvalue()


def _pcm_to_float(frames: bytes, sample_width: int) -> np.ndarray:
    scale = _full_scale(sample_width)
    if sample_width == 1:
        # 8-bit WAV is unsigned
        ints = np.frombuffer(frames, dtype=np.uint8).astype(np.int32) - 128
    elif sample_width == 2:
        ints = np.frombuffer(frames, dtype="<i2").astype(np.int32)
    elif sample_width == 3:
        raw = np.frombuffer(frames, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        ints = raw[:, 0] | (raw[:, 1] << 8) | (raw[:, 2] << 16)
        ints = np.where(ints >= 1 << 23, ints - (1 << 24), ints)
    else:
        ints = np.frombuffer(frames, dtype="<i4").astype(np.int64)
    return ints.astype(np.float64) / scale


def _float_to_pcm(samples: np.ndarray, sample_width: int) -> bytes:
    scale = _full_scale(sample_width)
    ints = np.clip(np.round(samples * scale), -scale, scale - 1).astype(np.int64)
    if sample_width == 1:
        return (ints + 128).astype(np.uint8).tobytes()
    if sample_width == 2:
        return ints.astype("<i2").tobytes()
    if sample_width == 3:
        packed = ints.astype("<i4").view(np.uint8).reshape(-1, 4)
        return packed[:, :3].tobytes()
    return ints.astype("<i4").tobytes()

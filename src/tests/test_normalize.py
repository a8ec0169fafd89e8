from __future__ import annotations

import io
import wave

import numpy as np
import pytest

from src.phone_journal.audio.normalize import TARGET_SAMPLE_RATE, normalize_audio
from src.phone_journal.audio.wav import decode_wav
from src.phone_journal.contracts.errors import DecodeError, UnsupportedFormatError


def _read(data: bytes):
    with wave.open(io.BytesIO(data), "rb") as wav_file:
        return (
            wav_file.getnchannels(),
            wav_file.getframerate(),
            wav_file.getsampwidth(),
            wav_file.getnframes(),
        )


def test_resamples_mono_44k_to_16k(make_wav):
    normalized = normalize_audio(make_wav(sample_rate=44_100, seconds=1.0))

    channels, rate, width, frames = _read(normalized.data)
    assert (channels, rate, width) == (1, TARGET_SAMPLE_RATE, 2)
    assert frames == TARGET_SAMPLE_RATE
    assert normalized.format.sample_rate == TARGET_SAMPLE_RATE
    assert normalized.format.channels == 1


@pytest.mark.parametrize("sample_width", [1, 2, 3, 4])
def test_keeps_source_precision(make_wav, sample_width):
    normalized = normalize_audio(make_wav(sample_rate=8_000, sample_width=sample_width))

    channels, rate, width, frames = _read(normalized.data)
    assert (channels, rate, width) == (1, TARGET_SAMPLE_RATE, sample_width)
    assert frames == 8_000  # 0.5 s at 16 kHz


def test_resampled_tone_keeps_its_level(make_wav):
    normalized = normalize_audio(make_wav(sample_rate=48_000, seconds=1.0))
    samples, _ = decode_wav(normalized.data)

    # ignore filter edges
    body = samples[1000:-1000]
    assert np.max(np.abs(body)) == pytest.approx(0.5, abs=0.02)


def test_normalizing_normalized_audio_is_a_no_op(make_wav):
    once = normalize_audio(make_wav(sample_rate=44_100))
    twice = normalize_audio(once.data)

    assert twice.data == once.data


def test_stereo_is_rejected(make_wav):
    with pytest.raises(UnsupportedFormatError) as excinfo:
        normalize_audio(make_wav(channels=2))

    assert excinfo.value.channels == 2
    assert excinfo.value.stage == "normalizing"


@pytest.mark.parametrize("payload", [b"", b"not a wav file at all", b"RIFF\x00\x00\x00\x00WAVE"])
def test_garbage_is_a_decode_error(payload):
    with pytest.raises(DecodeError):
        normalize_audio(payload)


def test_truncated_sample_data_is_a_decode_error(make_wav):
    data = make_wav(sample_width=2)
    with pytest.raises(DecodeError):
        # chop one byte off the last sample; header still claims the full length
        normalize_audio(data[:-1])


def test_empty_recording_normalizes_to_empty_audio(make_wav):
    normalized = normalize_audio(make_wav(seconds=0.0))

    assert _read(normalized.data) == (1, TARGET_SAMPLE_RATE, 2, 0)

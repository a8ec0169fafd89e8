"""Shared fixtures.

The app module builds its settings at import time, so the required
environment is seeded here before any test imports it.
"""

from __future__ import annotations

import io
import os
import wave
from typing import Callable, Dict, Iterator, List

import numpy as np
import pytest
from twilio.request_validator import RequestValidator

_TEST_ENV = {
    "EXTERNAL_HOSTNAME": "journal.example.com",
    "CALLER_WHITELIST": "+15550000001,+15550000002",
    "TWILIO_ACCOUNT_SID": "AC00000000000000000000000000000000",
    "TWILIO_AUTH_TOKEN": "test-auth-token",
    "NOTION_AUTH_TOKEN": "secret_notion",
    "NOTION_DATABASE_ID": "db-1234",
    "MODEL_FILE": "models/whisper-tiny.en",
}
for _key, _value in _TEST_ENV.items():
    os.environ.setdefault(_key, _value)

from src.phone_journal.config.settings import Settings  # noqa: E402
from src.phone_journal.contracts.pipeline import Segment  # noqa: E402
from src.phone_journal.infra.speech_engine import SerializedSpeechEngine  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        external_hostname="journal.example.com",
        caller_whitelist="+15550000001,+15550000002",
        twilio_account_sid="AC00000000000000000000000000000000",
        twilio_auth_token="test-auth-token",
        notion_auth_token="secret_notion",
        notion_database_id="db-1234",
        model_file="models/whisper-tiny.en",
    )


class FakeSpeechEngine:
    """Returns canned segments and records every call."""

    sample_rate = 16_000

    def __init__(self, segments: List[str]) -> None:
        self.segments = segments
        self.calls: List[np.ndarray] = []

    def process(self, samples: np.ndarray) -> Iterator[Segment]:
        self.calls.append(samples)
        for text in self.segments:
            yield Segment(text=text)


@pytest.fixture
def fake_engine() -> FakeSpeechEngine:
    return FakeSpeechEngine([" Pick up milk", " and call the dentist."])


@pytest.fixture
def serialized_engine(fake_engine: FakeSpeechEngine) -> SerializedSpeechEngine:
    return SerializedSpeechEngine(fake_engine)


@pytest.fixture
def make_wav() -> Callable[..., bytes]:
    """Build an integer-PCM WAV containing a 440 Hz tone."""

    def _make(
        *,
        sample_rate: int = 44_100,
        channels: int = 1,
        sample_width: int = 2,
        seconds: float = 0.5,
    ) -> bytes:
        t = np.arange(int(sample_rate * seconds)) / sample_rate
        tone = 0.5 * np.sin(2 * np.pi * 440.0 * t)
        scale = float(1 << (8 * sample_width - 1))
        ints = np.round(tone * scale).astype(np.int64)
        ints = np.repeat(ints, channels)
        if sample_width == 1:
            frames = (ints + 128).astype(np.uint8).tobytes()
        elif sample_width == 2:
            frames = ints.astype("<i2").tobytes()
        elif sample_width == 3:
            frames = ints.astype("<i4").view(np.uint8).reshape(-1, 4)[:, :3].tobytes()
        else:
            frames = ints.astype("<i4").tobytes()

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(channels)
            wav_file.setsampwidth(sample_width)
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(frames)
        return buffer.getvalue()

    return _make


@pytest.fixture
def sign() -> Callable[[str, Dict[str, str]], str]:
    """Compute the X-Twilio-Signature Twilio would send for a path + form."""

    def _sign(path: str, params: Dict[str, str], token: str = "test-auth-token") -> str:
        url = f"https://journal.example.com{path}"
        return RequestValidator(token).compute_signature(url, params)

    return _sign

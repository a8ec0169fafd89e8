"""
Recording pipeline contracts.

One PipelineInvocation per completion callback. Nothing here is shared
between invocations; every value is created by, and dies with, one run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from src.phone_journal.config.settings import Settings
    from src.phone_journal.contracts.errors import PipelineError


class PipelineStage(str, Enum):
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    TRANSCRIBING = "transcribing"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class AudioFormat:
    sample_rate: int
    channels: int
    sample_width: int  # bytes per sample

    @property
    def precision_bits(self) -> int:
        return self.sample_width * 8


@dataclass(frozen=True)
class Recording:
    """Raw bytes as downloaded from the provider."""

    url: str
    data: bytes


@dataclass(frozen=True)
class NormalizedAudio:
    """WAV bytes at the engine's sample rate, mono, same precision as the source."""

    data: bytes
    format: AudioFormat


@dataclass(frozen=True)
class Segment:
    text: str
    start: Optional[float] = None
    end: Optional[float] = None


@dataclass(frozen=True)
class Transcript:
    segments: tuple[Segment, ...]

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)

    @property
    def spoken_until(self) -> Optional[float]:
        """End time of the last timed segment, in seconds."""
        ends = [segment.end for segment in self.segments if segment.end is not None]
        return max(ends) if ends else None


@dataclass(frozen=True)
class PipelineInvocation:
    recording_url: str
    settings: "Settings"

    @property
    def correlation_id(self) -> str:
        # No job id is persisted; the recording URL identifies the run in logs
        return self.recording_url


@dataclass(frozen=True)
class PipelineResult:
    stage: PipelineStage
    failed_stage: Optional[PipelineStage] = None
    error: Optional["PipelineError"] = None
    page_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.stage is PipelineStage.DONE

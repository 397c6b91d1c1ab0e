from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Decoded audio
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Signal:
    """
    Decoded audio held in memory.

    channels has shape (channel_count, n_samples), float32, and is read-only.
    A 1-D array is accepted and treated as a single channel.
    """
    sample_rate: int
    channels: np.ndarray

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        arr = np.array(self.channels, dtype=np.float32)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.ndim != 2 or arr.shape[0] == 0:
            raise ValueError(f"channels must be (channels, samples), got shape {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "channels", arr)

    @property
    def channel_count(self) -> int:
        return self.channels.shape[0]

    @property
    def n_samples(self) -> int:
        return self.channels.shape[1]

    @property
    def duration(self) -> float:
        return self.n_samples / self.sample_rate

    def channel(self, index: int) -> Signal:
        """Return one channel as a single-channel Signal."""
        return Signal(self.sample_rate, self.channels[index:index + 1])


@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Output of analyze_signal for one Signal."""
    source: Signal
    downmix: Signal
    channel_volumes: tuple[float, ...]  # [downmix, ch1, ..., chN]
    mono_ratio: float
    chunk_count: int
    degenerate: bool = False  # channels average to zero volume, ratio forced to 0

    @property
    def mono_ratio_percent(self) -> int:
        return int(np.floor(self.mono_ratio * 100 + 0.5))

    @property
    def tracks(self) -> list[Signal]:
        """Downmix followed by each source channel, matching channel_volumes."""
        return [self.downmix] + [
            self.source.channel(i) for i in range(self.source.channel_count)
        ]


# ---------------------------------------------------------------------------
# API schemas
# ---------------------------------------------------------------------------

class TrackInfo(BaseModel):
    """One playable/downloadable track: the downmix (index 0) or a source channel."""
    index: int
    name: str
    volume: float
    peaks: list[float]


class AnalysisResponse(BaseModel):
    session_id: str
    filename: str
    duration: float
    sample_rate: int
    channel_count: int
    chunk_count: int
    mono_ratio: float
    mono_ratio_percent: int
    phase_warning: bool
    peak_mode: str = "legacy"
    tracks: list[TrackInfo]


class BarRect(BaseModel):
    x: float
    y: float
    width: float
    height: float


class WaveformRequest(BaseModel):
    track: int = Field(ge=0)
    width: int = Field(ge=1, le=20000)


class WaveformResponse(BaseModel):
    session_id: str
    track: int
    width: int
    bucket_count: int
    peaks: list[float]
    bars: list[BarRect] | None = None

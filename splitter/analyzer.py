"""
Channel analysis for multi-channel recordings.

Folds all channels down to a mono mix, estimates a cheap loudness proxy for
the mix and for every channel (the sum of chunked peaks), and compares the
two: when channels cancel each other out in the mix, the mix is much quieter
than the channels it was built from.
"""

import logging
import math

import numpy as np

from . import config
from .errors import BucketSizingError
from .models import AnalysisResult, Signal

logger = logging.getLogger("splitter.analyzer")


# Analysis constants
CHUNKS_PER_SECOND = 2000
MIN_CHUNKS = 10

PEAK_MODES = ("legacy", "absolute")

_SQRT_HALF = math.sqrt(0.5)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def clamp_bucket_count(bucket_count: int, n_samples: int) -> int:
    """Limit bucket_count so every bucket holds at least one sample."""
    return max(1, min(int(bucket_count), n_samples))


def compute_chunk_count(duration: float, n_samples: int | None = None) -> int:
    """
    Number of peak buckets used for the volume estimate.

    Scales with duration so longer files get proportionally more buckets,
    with a floor of MIN_CHUNKS for very short input. When n_samples is
    given the count is clamped so the downsampler always gets a bucket
    width of at least one sample.
    """
    count = round_half_up(duration * CHUNKS_PER_SECOND + MIN_CHUNKS)
    if n_samples is not None:
        count = clamp_bucket_count(count, n_samples)
    return count


def downsample_peaks(samples, bucket_count: int, mode: str | None = None) -> list[float]:
    """
    Reduce a sample sequence to one peak value per bucket.

    Buckets are floor(len(samples) / bucket_count) samples wide. Scanning
    starts at index 1, and a bucket is closed every time the index is a
    multiple of the width, so the output holds floor((len - 1) / width)
    values, which can differ from bucket_count.

    mode="legacy" keeps the historical behaviour: the running peak is
    compared as abs(sample) but stored signed, so a bucket whose loudest
    sample is negative can report a negative (or smaller) value. The
    known-wrong parts (index 0 skipped, signed storage) are kept so results
    match earlier releases. mode="absolute" uses the same bucket boundaries
    but stores the absolute maximum.

    Raises:
        BucketSizingError: bucket_count is not positive or exceeds
            len(samples). Use clamp_bucket_count() first.
    """
    mode = mode or config.PEAK_MODE
    if mode not in PEAK_MODES:
        raise ValueError(f"Unknown peak mode: {mode!r}")

    n = len(samples)
    if n == 0:
        return []
    if bucket_count <= 0:
        raise BucketSizingError(f"bucket_count must be positive, got {bucket_count}")
    width = n // bucket_count
    if width == 0:
        raise BucketSizingError(f"{bucket_count} buckets requested for {n} samples")

    if mode == "absolute":
        count = (n - 1) // width
        block = np.asarray(samples, dtype=np.float64)[1:count * width + 1]
        return np.abs(block).reshape(count, width).max(axis=1).tolist()

    values = np.asarray(samples, dtype=np.float64).tolist()
    peaks = []
    peak = 0.0
    for i in range(1, n):
        value = values[i]
        if peak < abs(value):
            peak = value
        if i % width == 0:
            peaks.append(peak)
            peak = 0.0
    return peaks


def downmix(signal: Signal) -> Signal:
    """
    Fold a Signal down to one channel with the standard speaker mixdown.

    Mono, stereo, quad and 5.1 layouts use the usual speaker coefficients
    (LFE is dropped for 5.1). Any other channel count has no speaker
    interpretation and falls back to discrete mixing, which keeps channel 0.
    """
    ch = signal.channels
    n = signal.channel_count

    if n == 1:
        mono = ch[0]
    elif n == 2:
        mono = 0.5 * (ch[0] + ch[1])
    elif n == 4:
        mono = 0.25 * (ch[0] + ch[1] + ch[2] + ch[3])
    elif n == 6:
        # L, R, C, LFE, SL, SR
        mono = _SQRT_HALF * (ch[0] + ch[1]) + ch[2] + 0.5 * (ch[4] + ch[5])
    else:
        mono = ch[0]

    return Signal(signal.sample_rate, mono.astype(np.float32))


def _running_sum(values) -> float:
    # plain left-to-right addition, no compensation
    total = 0.0
    for v in values:
        total += v
    return total


def track_volume(samples, chunk_count: int, mode: str | None = None) -> float:
    """Sum-of-peaks loudness proxy for one channel."""
    return _running_sum(downsample_peaks(samples, chunk_count, mode))


def mean_channel_volume(channel_volumes) -> float:
    """Mean volume of the source channels, skipping the downmix at index 0."""
    channels = list(channel_volumes[1:])
    if not channels:
        raise ValueError("channel_volumes needs the downmix and at least one channel")
    return _running_sum(channels) / len(channels)


def mono_ratio(channel_volumes) -> float:
    """
    Downmix volume divided by the mean volume of the source channels.

    channel_volumes[0] is the downmix. Returns 0.0 when the source channels
    average to zero volume.
    """
    mean = mean_channel_volume(channel_volumes)
    if mean == 0:
        return 0.0
    return channel_volumes[0] / mean


def analyze_signal(signal: Signal, mode: str | None = None) -> AnalysisResult:
    """
    Downmix a Signal and compare the mix against its channels.

    Every track (downmix first, then the channels in order) is reduced with
    the same chunk count so their volumes are comparable.
    """
    mono = downmix(signal)
    chunk_count = compute_chunk_count(signal.duration, signal.n_samples)

    tracks = [mono.channels[0]] + [signal.channels[i] for i in range(signal.channel_count)]
    volumes = tuple(track_volume(t, chunk_count, mode) for t in tracks)
    ratio = mono_ratio(volumes)

    logger.info(
        "[ANALYZE] %d ch, %.3fs @ %d Hz, %d chunks, mono ratio %.3f",
        signal.channel_count, signal.duration, signal.sample_rate, chunk_count, ratio,
    )

    return AnalysisResult(
        source=signal,
        downmix=mono,
        channel_volumes=volumes,
        mono_ratio=ratio,
        chunk_count=chunk_count,
        degenerate=mean_channel_volume(volumes) == 0,
    )


def phase_warning(result: AnalysisResult, threshold: float | None = None) -> bool:
    """True when the downmix lost enough volume to suggest phase cancellation."""
    if threshold is None:
        threshold = config.MONO_THRESHOLD
    if result.degenerate:
        return False
    return result.mono_ratio < threshold

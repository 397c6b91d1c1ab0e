"""Waveform preview data: bar counts and bar geometry for the canvas renderer."""

from .analyzer import clamp_bucket_count, downsample_peaks
from .models import BarRect, Signal

BAR_WIDTH = 2
BAR_GAP = 1
MIN_BAR_HEIGHT = 2


def bucket_count_for_width(width: int) -> int:
    """How many bars fit in width CSS pixels."""
    return (width + 1) // (BAR_WIDTH + BAR_GAP)


def waveform_peaks(track: Signal, width: int, mode: str | None = None) -> list[float]:
    """Peaks for drawing a single-channel track into width pixels."""
    wanted = bucket_count_for_width(width)
    if wanted <= 0 or track.n_samples == 0:
        return []
    return downsample_peaks(
        track.channels[0], clamp_bucket_count(wanted, track.n_samples), mode
    )


def layout_bars(
    peaks: list[float],
    width: int,
    height: int,
    pixel_ratio: float = 1.0,
) -> list[BarRect]:
    """
    One vertically centred bar per peak, in device pixels.

    Bars are never shorter than MIN_BAR_HEIGHT so silence still shows a line.
    """
    step = BAR_WIDTH + BAR_GAP
    h = height * pixel_ratio
    bars = []
    for i, value in enumerate(peaks):
        x = i * step * pixel_ratio
        if x >= width * pixel_ratio:
            break
        bar_h = max(h * value, MIN_BAR_HEIGHT)
        bars.append(BarRect(
            x=x,
            y=(h - bar_h) / 2,
            width=BAR_WIDTH * pixel_ratio,
            height=bar_h,
        ))
    return bars

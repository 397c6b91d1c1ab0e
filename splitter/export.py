"""
Per-track WAV export.

Every track of an analysis (the downmix at index 0, then each source
channel) is written as its own uncompressed mono WAV so the browser can
play it back and offer it for download.
"""

import logging
import os

import numpy as np
import soundfile as sf

from . import config
from .models import AnalysisResult, Signal

logger = logging.getLogger("splitter.export")

DOWNMIX_NAME = "Mono mix"


def track_name(index: int) -> str:
    return DOWNMIX_NAME if index == 0 else f"Channel {index}"


def download_filename(upload_name: str, index: int) -> str:
    """Attachment name shown to the user, e.g. 'take1.wav - Channel 2.wav'."""
    return f"{upload_name} - {track_name(index)}.wav"


def write_track(track: Signal, output_path: str, subtype: str | None = None) -> str:
    # soundfile wants (frames, channels)
    sf.write(output_path, np.ascontiguousarray(track.channels.T), track.sample_rate, subtype=subtype or config.EXPORT_SUBTYPE)
    return output_path


def export_tracks(result: AnalysisResult, directory: str, subtype: str | None = None) -> dict[int, str]:
    """
    Write every track of result into directory.

    Returns:
        Mapping of track index to the written file path
    """
    paths = {}
    for index, track in enumerate(result.tracks):
        path = os.path.join(directory, f"track_{index}.wav")
        paths[index] = write_track(track, path, subtype)
    logger.info("[EXPORT] wrote %d track(s) to %s", len(paths), directory)
    return paths

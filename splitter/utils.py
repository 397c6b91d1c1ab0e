import logging
import os
import re
import shutil
import uuid

import librosa
import numpy as np

from . import config
from .errors import DecodeError
from .models import Signal

logger = logging.getLogger("splitter.utils")

_SESSION_ID_RE = re.compile(r"^[a-f0-9]{12}$")

# Formats libsndfile reads directly; the compressed ones need ffmpeg through audioread.
NATIVE_EXTENSIONS = {".wav", ".flac", ".ogg", ".aiff", ".aif"}
FFMPEG_EXTENSIONS = {".mp3", ".opus", ".m4a", ".aac"}

SUPPORTED_EXTENSIONS = NATIVE_EXTENSIONS | FFMPEG_EXTENSIONS


def get_upload_dir() -> str:
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    return config.UPLOAD_DIR


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


def validate_session_id(session_id: str) -> str:
    if not _SESSION_ID_RE.match(session_id):
        raise ValueError(f"Invalid session_id: {session_id}")
    return session_id


def get_session_dir(session_id: str) -> str:
    validate_session_id(session_id)
    d = os.path.join(get_upload_dir(), session_id)
    os.makedirs(d, exist_ok=True)
    return d


def remove_session_dir(session_id: str) -> None:
    validate_session_id(session_id)
    shutil.rmtree(os.path.join(get_upload_dir(), session_id), ignore_errors=True)


def check_dependencies():
    if not shutil.which("ffmpeg"):
        logger.warning(
            "ffmpeg not found in PATH, only %s uploads can be decoded",
            ", ".join(sorted(NATIVE_EXTENSIONS)),
        )


def decode_audio(filepath: str, sample_rate: int | None = None) -> Signal:
    """
    Decode an audio file into a Signal, keeping every channel.

    Args:
        filepath: Path to the uploaded file
        sample_rate: Target rate; None uses config.SAMPLE_RATE, 0 keeps the
            file's native rate

    Raises:
        DecodeError: the file is unreadable, truncated or has no audio frames
    """
    if sample_rate is None:
        sample_rate = config.SAMPLE_RATE
    try:
        audio, sr = librosa.load(filepath, sr=sample_rate or None, mono=False)
    except Exception as exc:
        raise DecodeError(f"Unable to decode {os.path.basename(filepath)}: {exc}") from exc

    audio = np.atleast_2d(audio)
    if audio.shape[-1] == 0:
        raise DecodeError(f"No audio frames in {os.path.basename(filepath)}")

    signal = Signal(int(sr), audio)
    logger.info(
        "[DECODE] %s: %d ch, %d samples @ %d Hz",
        os.path.basename(filepath), signal.channel_count, signal.n_samples, signal.sample_rate,
    )
    return signal

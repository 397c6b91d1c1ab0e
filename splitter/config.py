import os

UPLOAD_DIR = os.environ.get("UPLOAD_DIR", os.path.join(os.path.dirname(__file__), "..", "uploads"))

# Decoded audio is resampled to this rate; 0 keeps the file's native rate.
SAMPLE_RATE = int(os.environ.get("SPLITTER_SAMPLE_RATE", "48000"))

# Mono ratio below this is reported as phase cancellation.
MONO_THRESHOLD = float(os.environ.get("SPLITTER_MONO_THRESHOLD", "0.3"))

# "legacy" or "absolute", see analyzer.downsample_peaks
PEAK_MODE = os.environ.get("SPLITTER_PEAK_MODE", "legacy")

EXPORT_SUBTYPE = os.environ.get("SPLITTER_EXPORT_SUBTYPE", "FLOAT")

RESIZE_DEBOUNCE_MS = int(os.environ.get("SPLITTER_RESIZE_DEBOUNCE_MS", "100"))

MAX_SESSIONS = int(os.environ.get("SPLITTER_MAX_SESSIONS", "32"))

DEFAULT_WAVEFORM_WIDTH = int(os.environ.get("SPLITTER_WAVEFORM_WIDTH", "800"))

LOG_LEVEL = os.environ.get("SPLITTER_LOG_LEVEL", "INFO")

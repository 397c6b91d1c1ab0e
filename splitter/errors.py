class SplitterError(Exception):
    """Base class for errors raised by the splitter service."""


class DecodeError(SplitterError):
    """The uploaded bytes are not a readable audio file."""


class BucketSizingError(SplitterError, ValueError):
    """More buckets were requested than there are samples to fill them."""


class SessionNotFoundError(SplitterError, KeyError):
    """No live session exists for the given ID."""

# errors.py
from typing import Optional


class MelodySpaceError(Exception):
    """Base class for every error raised by this project."""


class InvalidConfiguration(MelodySpaceError, ValueError):
    pass


class InvalidPitch(MelodySpaceError, ValueError):
    pass


class InvalidVelocity(MelodySpaceError, ValueError):
    pass


class InvalidDuration(MelodySpaceError, ValueError):
    pass


class FormatError(MelodySpaceError, ValueError):
    """Malformed SMF bytes. `position` is the byte offset where parsing stopped."""
    def __init__(self, message: str, position: Optional[int] = None):
        if position is not None:
            message = f"{message} (at byte {position})"
        super().__init__(message)
        self.position = position


class IOFailure(MelodySpaceError, OSError):
    pass


class TransientIOFailure(IOFailure):
    """Write failed but may succeed if retried."""


class PersistentIOFailure(IOFailure):
    """Write failed for good; the worker must stop with its checkpoint untouched."""

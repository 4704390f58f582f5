"""Terminal error taxonomy for the generator.

Every failure that aborts a run derives from :class:`StarboxError`; the CLI
reports the message together with its ``__cause__`` chain and exits
nonzero. Numeric edge cases are never raised; they are resolved inline.
"""

from __future__ import annotations


class StarboxError(Exception):
    """Base class for all terminal generator errors."""

    def describe(self) -> str:
        """Human-readable message followed by the chain of causes."""
        parts = [str(self)]
        cause = self.__cause__
        while cause is not None:
            parts.append(str(cause) or type(cause).__name__)
            cause = cause.__cause__
        return ": ".join(parts)


class ArgumentError(StarboxError, ValueError):
    """Invalid resolution, star count, channel layout, or configuration."""


class OutputOpenError(StarboxError, OSError):
    """The destination path cannot be created or opened."""


class EncoderError(StarboxError):
    """The image container or its header could not be initialized."""


class WriteError(StarboxError):
    """Pixel data could not be flushed to the destination."""

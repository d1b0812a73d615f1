"""Package-specific exception types."""

from __future__ import annotations


class StreamError(ValueError):
    """Base class for stream-related errors.

    Represents errors encountered while parsing or reconciling model output.
    """


class MalformedMarkerError(StreamError):
    """Raised when a line looks like a marker but cannot be parsed.

    The parser recovers from this error by treating the line as ordinary text.

    Args:
        line: Offending line without its line ending.
        reason: Short description of what is missing or invalid.
    """

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed marker {line!r}: {reason}")


class DuplicateOpenWarning(UserWarning):
    """Reported when a file is opened again before its previous open was closed.

    The parser recovers by discarding the earlier accumulation; the warning is
    recorded in the parsing state and logged, never raised.

    Args:
        path: Path opened twice.
        discarded: Number of characters of earlier content thrown away.
    """

    def __init__(self, path: str, discarded: int):
        self.path = path
        self.discarded = discarded
        super().__init__(
            f"{type(self).__name__}: {path} opened again before being closed; "
            f"discarding {discarded} characters of earlier content"
        )


class PatchApplicationError(StreamError):
    """Raised when a unified diff cannot be applied to the previous contents.

    Args:
        reason: Description of the failure.
        block: Lines that could not be located in the previous contents.
        path: Path of the file being patched, when known.
    """

    def __init__(self, reason: str, block: list[str] | None = None, path: str | None = None):
        self.reason = reason
        self.block = list(block or [])
        self.path = path
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        prefix = f"{self.path}: " if self.path else ""
        if not self.block:
            return f"{prefix}{self.reason}"
        preview = "\n".join(self.block[:3])
        if len(self.block) > 3:
            preview += "\n..."
        return f"{prefix}{self.reason}:\n{preview}"

    def with_path(self, path: str) -> PatchApplicationError:
        """Return a copy of this error bound to `path`."""
        return PatchApplicationError(self.reason, self.block, path)


class CorrectionTaskError(StreamError):
    """Raised when the secondary correction of a file fails.

    The original exception is chained as ``__cause__``.

    Args:
        path: Path of the file whose correction failed.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Correction failed for {path}")

"""Data models for scof-stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from .exceptions import PatchApplicationError


class ContentFormat(str, Enum):
    """Declared format of a file body in the stream.

    Attributes:
        FULL_CONTENT: The body is the complete file text.
        UNIFIED_DIFF: The body is a set of hunks applied to the previous version.
    """

    FULL_CONTENT = "full_content"
    UNIFIED_DIFF = "unified_diff"


class ParserMode(Enum):
    """Parser modes used while scanning a model stream.

    A marker line that has not received its newline yet stays in
    `ParsingState.line_buffer` and is classified once complete.

    Attributes:
        OUTSIDE_FILE: Between files; text is inert decoration.
        IN_FILE_BODY: Inside an open file; lines belong to its body.
        IN_COMMAND_BLOCK: Inside a command block; lines are shell commands.
    """

    OUTSIDE_FILE = auto()
    IN_FILE_BODY = auto()
    IN_COMMAND_BLOCK = auto()


@dataclass
class PendingFile:
    """A file whose open marker was seen but whose close marker was not.

    Attributes:
        path: File path declared by the open marker.
        format: Declared content format.
        raw_contents: Body text accumulated so far.
    """

    path: str
    format: ContentFormat
    raw_contents: str = ""


@dataclass
class CompletedFile:
    """A closed file.

    Holds the raw body straight after parsing and the reconciled text once the
    caller has run it through the reconciler.

    Attributes:
        path: File path.
        contents: File contents.
        format: Content format the body was declared with.
        purpose: Human-readable description attached by the caller.
        error: Patch failure attached during reconciliation, if any.
    """

    path: str
    contents: str
    format: ContentFormat = ContentFormat.FULL_CONTENT
    purpose: str = ""
    error: PatchApplicationError | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


@dataclass
class ParsingState:
    """Mutable state threaded through every `parse_chunk` call.

    One instance is created per generation run and owned by a single call site.

    Attributes:
        mode: Current parser mode.
        current_path: Path of the open file, if any.
        current_format: Format of the open file, if any.
        resumed_mode: Mode restored when a command block closes.
        line_buffer: Trailing text of the last chunk not yet ended by a newline.
        accumulator: Every character fed to the parser, in order.
        pending_files: Open files keyed by path.
        completed_files: Closed files keyed by path; later closes overwrite.
        extracted_install_commands: Commands from command blocks, in order.
        warnings: Recorded non-fatal anomalies.
    """

    mode: ParserMode = ParserMode.OUTSIDE_FILE
    current_path: str | None = None
    current_format: ContentFormat | None = None
    resumed_mode: ParserMode = ParserMode.OUTSIDE_FILE
    line_buffer: str = ""
    accumulator: str = ""
    pending_files: dict[str, PendingFile] = field(default_factory=dict)
    completed_files: dict[str, CompletedFile] = field(default_factory=dict)
    extracted_install_commands: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

"""
scof-stream: incremental parsing and reconciliation of structured model output.

Model replies embed files between heredoc-style markers. This package turns a
chunked reply into file lifecycle events, applies full contents or high-level
diffs to the previous version of each file, collects setup commands and runs an
optional asynchronous correction pass over large files.

This package can be used both as a CLI tool and as a library.

CLI Usage:
    scof-stream runs/phase-1.txt --output-dir app

Library Usage:
    from scof_stream import ParsingState, parse_chunk, finish_stream, reconcile_file

    state = ParsingState()
    for chunk in chunks:
        parse_chunk(chunk, state, on_file_close=print)
    finish_stream(state)
    files = [reconcile_file(file) for file in state.completed_files.values()]
"""

from .commands import extract_commands, split_command_lines
from .config import ConfigError, StreamConfig, build_config, load_config
from .exceptions import (
    CorrectionTaskError,
    DuplicateOpenWarning,
    MalformedMarkerError,
    PatchApplicationError,
    StreamError,
)
from .models import CompletedFile, ContentFormat, ParserMode, ParsingState, PendingFile
from .parser import finish_stream, parse_chunk, parse_stream
from .phase import PhaseContext, PhaseOutputs, implement_phase
from .pipeline import Corrector, FixPipeline, is_eligible_for_fix
from .reconciler import apply_unified_diff, reconcile_contents, reconcile_file
from .serializer import serialize_commands, serialize_files

__version__ = "0.1.0"

__all__ = [
    # Core functionality
    "parse_chunk",
    "finish_stream",
    "parse_stream",
    "apply_unified_diff",
    "reconcile_contents",
    "reconcile_file",
    "FixPipeline",
    "is_eligible_for_fix",
    "implement_phase",
    "extract_commands",
    "split_command_lines",
    # Data models
    "CompletedFile",
    "ContentFormat",
    "ParserMode",
    "ParsingState",
    "PendingFile",
    "PhaseContext",
    "PhaseOutputs",
    "Corrector",
    # Configuration
    "StreamConfig",
    "build_config",
    "load_config",
    "ConfigError",
    # Utilities
    "serialize_files",
    "serialize_commands",
    # Exceptions
    "StreamError",
    "MalformedMarkerError",
    "DuplicateOpenWarning",
    "PatchApplicationError",
    "CorrectionTaskError",
    # Version
    "__version__",
]

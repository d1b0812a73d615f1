"""Incremental parser for SCOF-style model output streams."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .commands import is_command_line
from .config import StreamConfig
from .constants import PATH_PATTERN
from .exceptions import DuplicateOpenWarning, MalformedMarkerError
from .log import get_logger
from .models import CompletedFile, ContentFormat, ParserMode, ParsingState, PendingFile

OnFileOpen = Callable[[str], None]
OnContentChunk = Callable[[str, str, ContentFormat], None]
OnFileClose = Callable[[str], None]


@dataclass(frozen=True)
class MarkerPatterns:
    """Compiled marker matchers for one configuration.

    Attributes:
        full_content: Matches ``cat > path << 'EOF'``.
        unified_diff: Matches ``cat << 'EOF' | patch path``.
        candidate: Matches lines that look like a heredoc open marker.
        delimiter: Line that closes a file body.
        commands_start: Line that opens a command block.
        commands_end: Line that closes a command block.
    """

    full_content: re.Pattern[str]
    unified_diff: re.Pattern[str]
    candidate: re.Pattern[str]
    delimiter: str
    commands_start: str
    commands_end: str


def build_marker_patterns(config: StreamConfig | None = None) -> MarkerPatterns:
    """Compile the marker grammar for the configured delimiter and markers.

    Args:
        config: Stream configuration. Defaults to a new `StreamConfig`.

    Returns:
        MarkerPatterns: Matchers used by `parse_chunk`.

    Examples:
        patterns = build_marker_patterns(StreamConfig(heredoc_delimiter="END"))
        patterns.full_content.match("cat > app.py << 'END'")
    """
    config = config or StreamConfig()
    delimiter = re.escape(config.heredoc_delimiter)
    heredoc = rf"<<-?\s*(?P<quote>['\"]?){delimiter}(?P=quote)"
    return MarkerPatterns(
        full_content=re.compile(rf"^cat\s+>\s*{PATH_PATTERN}\s*{heredoc}$"),
        unified_diff=re.compile(
            rf"^cat\s+{heredoc}\s*\|\s*patch(?:\s+-\S+)*\s+{PATH_PATTERN}$"
        ),
        candidate=re.compile(rf"^cat\b.*<<.*\b{delimiter}\b"),
        delimiter=config.heredoc_delimiter,
        commands_start=config.commands_start_marker,
        commands_end=config.commands_end_marker,
    )


def _unquote(path: str) -> str:
    if len(path) >= 2 and path[0] == path[-1] and path[0] in "'\"":
        return path[1:-1]
    return path


def parse_open_marker(text: str, patterns: MarkerPatterns) -> tuple[str, ContentFormat] | None:
    """Parse a file-open marker line.

    Args:
        text: Line without trailing whitespace or line ending.
        patterns: Matchers built by `build_marker_patterns`.

    Returns:
        tuple[str, ContentFormat] | None: Declared path and format, or None when
            the line is not an open marker.

    Raises:
        MalformedMarkerError: If the line looks like an open marker but does not
            parse (for example, the path is missing).

    Examples:
        parse_open_marker("cat > src/app.py << 'EOF'", build_marker_patterns())
        parse_open_marker("cat << 'EOF' | patch src/app.py", build_marker_patterns())
    """
    match = patterns.full_content.match(text)
    if match:
        return _unquote(match.group("path")), ContentFormat.FULL_CONTENT

    match = patterns.unified_diff.match(text)
    if match:
        return _unquote(match.group("path")), ContentFormat.UNIFIED_DIFF

    if patterns.candidate.match(text):
        if "|" in text and "patch" not in text:
            raise MalformedMarkerError(text, "diff marker must pipe into `patch <path>`")
        raise MalformedMarkerError(text, "missing or invalid file path")

    return None


def _record_warning(state: ParsingState, logger: logging.Logger, message: str) -> None:
    state.warnings.append(message)
    logger.warning(message)


def _try_enter_commands(state: ParsingState, text: str, patterns: MarkerPatterns) -> bool:
    """Enter a command block when `text` is the start marker.

    Remembers the current mode so a block inside a file body resumes that body
    once the block closes.
    """
    if state.mode is ParserMode.IN_COMMAND_BLOCK or text != patterns.commands_start:
        return False

    state.resumed_mode = state.mode
    state.mode = ParserMode.IN_COMMAND_BLOCK
    return True


def _try_exit_commands(state: ParsingState, text: str, patterns: MarkerPatterns) -> bool:
    if state.mode is not ParserMode.IN_COMMAND_BLOCK or text != patterns.commands_end:
        return False

    state.mode = state.resumed_mode
    state.resumed_mode = ParserMode.OUTSIDE_FILE
    return True


def _try_open_file(
    state: ParsingState, text: str, patterns: MarkerPatterns, logger: logging.Logger
) -> bool:
    """Open a pending file when `text` is a file-open marker.

    A malformed marker is logged and reported as not opening anything, so the
    caller treats the line as text. An open for a path that is already pending
    discards the earlier accumulation.

    Returns:
        bool: True when a file was opened and `state.current_path` points to it.
    """
    try:
        marker = parse_open_marker(text, patterns)
    except MalformedMarkerError as error:
        _record_warning(state, logger, str(error))
        return False

    if marker is None:
        return False

    path, content_format = marker

    if state.mode is ParserMode.IN_COMMAND_BLOCK:
        _record_warning(
            state, logger, f"Command block not closed before opening {path}; closing it"
        )
        state.mode = state.resumed_mode
        state.resumed_mode = ParserMode.OUTSIDE_FILE

    if (
        state.mode is ParserMode.IN_FILE_BODY
        and state.current_path is not None
        and state.current_path != path
    ):
        _record_warning(
            state,
            logger,
            f"{path} opened before {state.current_path} was closed; "
            f"{state.current_path} is left unterminated",
        )

    previous = state.pending_files.get(path)
    if previous is not None:
        _record_warning(
            state, logger, str(DuplicateOpenWarning(path, len(previous.raw_contents)))
        )

    state.pending_files[path] = PendingFile(path=path, format=content_format)
    state.mode = ParserMode.IN_FILE_BODY
    state.current_path = path
    state.current_format = content_format
    return True


def _try_close_file(state: ParsingState, text: str, patterns: MarkerPatterns) -> str | None:
    """Promote the open file to completed when `text` is the close marker.

    Returns:
        str | None: Path of the closed file, or None when nothing was closed.
    """
    if state.mode is not ParserMode.IN_FILE_BODY or text != patterns.delimiter:
        return None

    path = state.current_path
    pending = state.pending_files.pop(path)
    state.completed_files[path] = CompletedFile(
        path=path, contents=pending.raw_contents, format=pending.format
    )
    state.mode = ParserMode.OUTSIDE_FILE
    state.current_path = None
    state.current_format = None
    return path


def _process_line(
    line: str,
    state: ParsingState,
    patterns: MarkerPatterns,
    logger: logging.Logger,
    on_file_open: OnFileOpen | None,
    on_content_chunk: OnContentChunk | None,
    on_file_close: OnFileClose | None,
) -> None:
    text = line.rstrip()

    if state.mode is ParserMode.IN_COMMAND_BLOCK:
        if _try_exit_commands(state, text, patterns):
            return
        if _try_open_file(state, text, patterns, logger):
            if on_file_open is not None:
                on_file_open(state.current_path)
            return
        if text == patterns.delimiter and state.resumed_mode is ParserMode.IN_FILE_BODY:
            _record_warning(
                state,
                logger,
                f"Command block not closed before {state.current_path} ended; closing it",
            )
            state.mode = state.resumed_mode
            state.resumed_mode = ParserMode.OUTSIDE_FILE
            closed_path = _try_close_file(state, text, patterns)
            if on_file_close is not None:
                on_file_close(closed_path)
            return
        if is_command_line(text):
            state.extracted_install_commands.append(text.strip())
        return

    if _try_enter_commands(state, text, patterns):
        return

    if _try_open_file(state, text, patterns, logger):
        if on_file_open is not None:
            on_file_open(state.current_path)
        return

    closed_path = _try_close_file(state, text, patterns)
    if closed_path is not None:
        if on_file_close is not None:
            on_file_close(closed_path)
        return

    if state.mode is ParserMode.IN_FILE_BODY:
        pending = state.pending_files[state.current_path]
        pending.raw_contents += line
        if on_content_chunk is not None:
            on_content_chunk(pending.path, line, pending.format)
        return

    # Outside any file: prose, fences and stray close markers are decoration.
    if text == patterns.delimiter:
        logger.debug("Ignoring close marker with no open file")


def parse_chunk(
    chunk: str,
    state: ParsingState,
    on_file_open: OnFileOpen | None = None,
    on_content_chunk: OnContentChunk | None = None,
    on_file_close: OnFileClose | None = None,
    *,
    config: StreamConfig | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Feed one chunk of model output into the parser.

    Chunk boundaries are arbitrary. Text after the last newline is held in
    `state.line_buffer` until the rest of the line arrives, so a marker split
    across calls is recognized and every line is classified exactly once. This
    keeps the callback sequence identical for every splitting of the same
    input. The parser never raises for malformed input: anomalies are logged
    and recorded in `state.warnings`.

    Args:
        chunk: Next piece of raw model output.
        state: Parsing state owned by the caller.
        on_file_open: Called with the path when a file-open marker is seen.
        on_content_chunk: Called with the path, one body line (including its
            newline) and the declared format.
        on_file_close: Called with the path after the file is stored in
            `state.completed_files`.
        config: Stream configuration. Defaults to a new `StreamConfig`.
        logger: Logger for non-fatal anomalies.

    Examples:
        state = ParsingState()
        parse_chunk("cat > a.txt << 'EOF'\\nhel", state)
        parse_chunk("lo\\nEOF\\n", state)
        state.completed_files["a.txt"].contents  # "hello\\n"
    """
    if not chunk:
        return

    patterns = build_marker_patterns(config)
    logger = logger or get_logger(__name__)

    state.accumulator += chunk
    *complete_lines, state.line_buffer = (state.line_buffer + chunk).split("\n")

    for line in complete_lines:
        _process_line(
            f"{line}\n",
            state,
            patterns,
            logger,
            on_file_open,
            on_content_chunk,
            on_file_close,
        )


def finish_stream(
    state: ParsingState,
    on_file_open: OnFileOpen | None = None,
    on_content_chunk: OnContentChunk | None = None,
    on_file_close: OnFileClose | None = None,
    *,
    config: StreamConfig | None = None,
    logger: logging.Logger | None = None,
) -> list[str]:
    """Flush the final unterminated line and report files left open.

    Files still pending when the stream ends are not promoted to completed;
    callers decide whether to synthesize anything from their partial content.

    Args:
        state: Parsing state owned by the caller.
        on_file_open: See `parse_chunk`.
        on_content_chunk: See `parse_chunk`.
        on_file_close: See `parse_chunk`.
        config: Stream configuration. Defaults to a new `StreamConfig`.
        logger: Logger for non-fatal anomalies.

    Returns:
        list[str]: Paths of files whose close marker never arrived.
    """
    logger = logger or get_logger(__name__)

    if state.line_buffer:
        line, state.line_buffer = state.line_buffer, ""
        _process_line(
            line,
            state,
            build_marker_patterns(config),
            logger,
            on_file_open,
            on_content_chunk,
            on_file_close,
        )

    unterminated = list(state.pending_files)
    for path in unterminated:
        logger.warning("Stream ended before %s was closed; dropping it", path)
    return unterminated


def parse_stream(
    chunks: Iterable[str],
    on_file_open: OnFileOpen | None = None,
    on_content_chunk: OnContentChunk | None = None,
    on_file_close: OnFileClose | None = None,
    *,
    config: StreamConfig | None = None,
    logger: logging.Logger | None = None,
) -> ParsingState:
    """Parse a complete sequence of chunks into a fresh `ParsingState`.

    Args:
        chunks: Model output in production order.
        on_file_open: See `parse_chunk`.
        on_content_chunk: See `parse_chunk`.
        on_file_close: See `parse_chunk`.
        config: Stream configuration. Defaults to a new `StreamConfig`.
        logger: Logger for non-fatal anomalies.

    Returns:
        ParsingState: Final state; unterminated files remain in `pending_files`.

    Examples:
        state = parse_stream(["cat > a.txt << 'EOF'\\n", "hi\\nEOF\\n"])
    """
    state = ParsingState()
    callbacks = (on_file_open, on_content_chunk, on_file_close)
    for chunk in chunks:
        parse_chunk(chunk, state, *callbacks, config=config, logger=logger)
    finish_stream(state, *callbacks, config=config, logger=logger)
    return state

"""Render files and commands in the stream format."""

from __future__ import annotations

from collections.abc import Iterable

from .config import StreamConfig
from .models import CompletedFile, ContentFormat


def _quote_path(path: str) -> str:
    if any(character.isspace() or character in "'\"<>|" for character in path):
        return f'"{path}"'
    return path


def format_open_marker(
    path: str, content_format: ContentFormat | str, config: StreamConfig | None = None
) -> str:
    """Return the open marker line for `path` (without a newline).

    Examples:
        format_open_marker("src/app.py", "full_content")  # "cat > src/app.py << 'EOF'"
    """
    config = config or StreamConfig()
    delimiter = config.heredoc_delimiter
    if ContentFormat(content_format) is ContentFormat.UNIFIED_DIFF:
        return f"cat << '{delimiter}' | patch {_quote_path(path)}"
    return f"cat > {_quote_path(path)} << '{delimiter}'"


def format_close_marker(config: StreamConfig | None = None) -> str:
    return (config or StreamConfig()).heredoc_delimiter


def serialize_files(files: Iterable[CompletedFile], config: StreamConfig | None = None) -> str:
    """Render files as a stream the parser reads back into the same files.

    Each body gets a trailing newline so the close marker starts its own line;
    the reconciler trims that newline again.

    Bodies are not escaped. A body line equal to the heredoc delimiter or to a
    command block marker is read back as that marker, so such files do not
    survive the round trip.

    Args:
        files: Files to render, in order.
        config: Stream configuration. Defaults to a new `StreamConfig`.

    Returns:
        str: Stream text.

    Examples:
        serialize_files([CompletedFile("a.txt", "hello")])
        # "cat > a.txt << 'EOF'\\nhello\\nEOF\\n"
    """
    config = config or StreamConfig()
    parts = []
    for file in files:
        parts.append(f"{format_open_marker(file.path, file.format, config)}\n")
        parts.append(f"{file.contents}\n")
        parts.append(f"{format_close_marker(config)}\n")
    return "".join(parts)


def serialize_commands(commands: Iterable[str], config: StreamConfig | None = None) -> str:
    """Render commands as a command block."""
    config = config or StreamConfig()
    body = "".join(f"{command}\n" for command in commands)
    return f"{config.commands_start_marker}\n{body}{config.commands_end_marker}\n"

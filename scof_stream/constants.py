"""Constants used across the scof-stream package."""

from __future__ import annotations

import re

from .config import StreamConfig

DEFAULT_CONFIG = StreamConfig()

# Stream markers
HEREDOC_DELIMITER = DEFAULT_CONFIG.heredoc_delimiter
COMMANDS_START_MARKER = DEFAULT_CONFIG.commands_start_marker
COMMANDS_END_MARKER = DEFAULT_CONFIG.commands_end_marker
# Paths may be quoted; unquoted paths stop at whitespace and shell operators.
PATH_PATTERN = r"""(?P<path>'[^'\n]+'|"[^"\n]+"|[^\s'"<>|]+)"""

# Markdown fences opening and closing code blocks in free-form replies
CODE_FENCE_PATTERN = re.compile(r"^(?P<indent>\s{0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
SHELL_FENCE_LANGUAGES = ("", "bash", "sh", "shell", "zsh", "console")
INSTALL_COMMAND_PATTERN = re.compile(
    r"^(?:sudo\s+)?(?:"
    r"pip3?\s+install|python3?\s+-m\s+pip\s+install|poetry\s+add|uv\s+(?:pip\s+install|add)"
    r"|npm\s+(?:install|i)|yarn\s+add|pnpm\s+add|bun\s+(?:add|install)"
    r"|apt(?:-get)?\s+install"
    r")\b"
)

# Unified diff syntax
HUNK_HEADER_PREFIX = "@@"
FILE_HEADER_PREFIXES = ("--- ", "+++ ")
NO_NEWLINE_MARKER = "\\ No newline at end of file"

# Secondary correction
MIN_FIX_LINES = DEFAULT_CONFIG.fix_min_lines

# Limits
DEFAULT_CHUNK_SIZE = DEFAULT_CONFIG.chunk_size
DEFAULT_MAX_FILE_SIZE = DEFAULT_CONFIG.max_file_size
TRANSCRIPT_EXTENSIONS = (".txt", ".log", ".md", ".scof")

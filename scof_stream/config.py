"""Configuration loading and management."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
import tomllib


@dataclass
class StreamConfig:
    """Configuration for parsing and applying a model stream.

    Attributes:
        heredoc_delimiter: Sentinel that closes a file body (``EOF``).
        commands_start_marker: Line that opens a command block.
        commands_end_marker: Line that closes a command block.
        realtime_fix_enabled: Whether large files go through the corrector.
        fix_min_lines: Files must have more lines than this to be corrected.
        chunk_size: Size of chunks when replaying a recorded transcript.
        max_file_size: Maximum transcript size in bytes that will be processed.

    Examples:
        StreamConfig(heredoc_delimiter="END", realtime_fix_enabled=True)
    """

    # Stream markers
    heredoc_delimiter: str = "EOF"
    commands_start_marker: str = "# BEGIN COMMANDS"
    commands_end_marker: str = "# END COMMANDS"

    # Secondary correction
    realtime_fix_enabled: bool = False
    fix_min_lines: int = 50

    # Limits
    chunk_size: int = 256
    max_file_size: int = 10 * 1024 * 1024


class ConfigError(ValueError):
    """Exception raised when configuration values are invalid.

    Examples:
        raise ConfigError("`chunk_size` must be a positive integer")
    """


def load_config(search_path: Path) -> StreamConfig:
    """Load configuration from the nearest config file.

    Walks parent directories from `search_path` to the filesystem root, reading
    the ``[tool.scof-stream]`` table from `pyproject.toml` and the
    ``[scof-stream]`` or ``[tool.scof-stream]`` table from `.scof-stream.toml`
    when present. Returns default values when no configuration is found. TOML
    files that cannot be read or decoded are skipped.

    Args:
        search_path: Directory used as the starting point for configuration lookup.

    Returns:
        StreamConfig: Loaded configuration with defaults applied when necessary.

    Raises:
        ConfigError: If the table is present but not a mapping or contains
            unsupported keys.

    Examples:
        load_config(Path("transcripts"))
    """
    current = search_path.resolve()

    while True:
        pyproject_config = _load_from_file(
            current / "pyproject.toml", table_paths=[("tool", "scof-stream")]
        )
        if pyproject_config is not None:
            return pyproject_config

        dotfile_config = _load_from_file(
            current / ".scof-stream.toml",
            table_paths=[("scof-stream",), ("tool", "scof-stream")],
        )
        if dotfile_config is not None:
            return dotfile_config

        parent = current.parent
        if parent == current:
            break
        current = parent

    return StreamConfig()


_MISSING = object()


def _load_from_file(config_file: Path, table_paths: list[tuple[str, ...]]) -> StreamConfig | None:
    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as stream:
            data = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError):
        return None

    for table_path in table_paths:
        raw_config = _extract_table(data, table_path)
        if raw_config is _MISSING:
            continue
        return _build_config_from_raw(raw_config, config_file, table_path)

    return None


def _extract_table(data: object, table_path: tuple[str, ...]) -> object:
    current = data
    for key in table_path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _build_config_from_raw(
    raw_config: object, config_file: Path, table_path: tuple[str, ...]
) -> StreamConfig:
    table_display = ".".join(table_path)

    if raw_config is None:
        return StreamConfig()

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}")

    if not raw_config:
        return StreamConfig()

    try:
        return StreamConfig(**raw_config)
    except TypeError as error:
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}") from error


def validate_config(config: StreamConfig) -> None:
    """Validate a `StreamConfig` instance.

    Args:
        config: Configuration to validate.

    Raises:
        ConfigError: If markers are empty or contain line breaks, marker lines
            collide with each other, flags are not booleans, or numeric limits
            are not positive integers.

    Examples:
        validate_config(StreamConfig(chunk_size=64))
    """
    _ensure_integers(
        {
            "fix_min_lines": config.fix_min_lines,
            "chunk_size": config.chunk_size,
            "max_file_size": config.max_file_size,
        }
    )

    markers = {
        "heredoc_delimiter": config.heredoc_delimiter,
        "commands_start_marker": config.commands_start_marker,
        "commands_end_marker": config.commands_end_marker,
    }
    for key, value in markers.items():
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"`{key}` must not be empty")
        if "\n" in value or "\r" in value:
            raise ConfigError(f"`{key}` must be a single line")
        if value != value.strip():
            raise ConfigError(f"`{key}` must not have surrounding whitespace")

    if len(set(markers.values())) != len(markers):
        raise ConfigError("stream markers must be distinct")
    if not config.heredoc_delimiter.replace("_", "").isalnum():
        raise ConfigError("`heredoc_delimiter` must be alphanumeric")

    if not isinstance(config.realtime_fix_enabled, bool):
        raise ConfigError("`realtime_fix_enabled` must be a boolean")

    if config.fix_min_lines < 0:
        raise ConfigError("`fix_min_lines` must be >= 0")
    _ensure_positive(
        {
            "chunk_size": config.chunk_size,
            "max_file_size": config.max_file_size,
        }
    )


def apply_overrides(config: StreamConfig, **overrides: object) -> StreamConfig:
    """Apply override values to a `StreamConfig`.

    Args:
        config: Base configuration to update.
        overrides: Override values keyed by configuration field name; values set to
            None are ignored.

    Returns:
        StreamConfig: New configuration with the provided overrides applied. The
        original configuration is returned when no changes are supplied.

    Raises:
        TypeError: If an override name is not defined on `StreamConfig`.

    Examples:
        updated = apply_overrides(config, chunk_size=64, heredoc_delimiter=None)
    """
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, **changes)


def build_config(search_path: Path, **overrides: object) -> StreamConfig:
    """Load, override, and validate configuration.

    Args:
        search_path: Directory where configuration files are resolved.
        overrides: Override values keyed by configuration attributes; None values
            are ignored.

    Returns:
        StreamConfig: Validated configuration.

    Raises:
        ConfigError: If configuration loading or validation fails.

    Examples:
        config = build_config(Path.cwd(), chunk_size=128)
    """
    config = load_config(search_path)
    config = apply_overrides(config, **overrides)
    validate_config(config)
    return config


def _ensure_positive(values: dict[str, int]) -> None:
    for key, value in values.items():
        if value <= 0:
            raise ConfigError(f"`{key}` must be a positive integer")


def _ensure_integers(values: dict[str, object]) -> None:
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"`{key}` must be an integer")

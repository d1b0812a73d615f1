"""Filesystem helpers for scof-stream."""

from __future__ import annotations

import os
import stat
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path, PurePosixPath
from typing import TextIO

from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_FILE_SIZE, TRANSCRIPT_EXTENSIONS

MAX_FILE_SIZE_ENV_VAR = "SCOF_STREAM_MAX_FILE_SIZE"
CHUNK_SIZE_ENV_VAR = "SCOF_STREAM_CHUNK_SIZE"


def _positive_int_from_env(name: str, default: int) -> int:
    env_value = os.environ.get(name)
    if env_value is None:
        return default

    try:
        value = int(env_value)
    except ValueError as error:
        error_message = f"Invalid value for {name}: {env_value} (expected positive integer)"
        raise ValueError(error_message) from error

    if value <= 0:
        error_message = f"{name} must be a positive integer, got {value}."
        raise ValueError(error_message)

    return value


def get_max_file_size(default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """Resolve the maximum allowed transcript size.

    Args:
        default: Fallback value in bytes when the environment variable is unset.

    Returns:
        int: Maximum allowed size in bytes.

    Raises:
        ValueError: If the environment value is not a positive integer.

    Examples:
        os.environ["SCOF_STREAM_MAX_FILE_SIZE"] = "204800"
        limit = get_max_file_size(default=102400)
    """
    return _positive_int_from_env(MAX_FILE_SIZE_ENV_VAR, default)


def get_chunk_size(default: int = DEFAULT_CHUNK_SIZE) -> int:
    """Resolve the replay chunk size, honouring ``SCOF_STREAM_CHUNK_SIZE``.

    Raises:
        ValueError: If the environment value is not a positive integer.
    """
    return _positive_int_from_env(CHUNK_SIZE_ENV_VAR, default)


def contains_symlink(path: Path) -> bool:
    """Check whether a path or any parent directory is a symlink.

    Examples:
        contains_symlink(Path("/tmp/link/child"))
    """
    for candidate in (path, *path.parents):
        try:
            if candidate.is_symlink():
                return True
        except OSError:
            continue
    return False


def normalize_transcript_path(raw_path: str, base_dir: Path) -> Path:
    """Resolve and validate a transcript path under a base directory.

    Args:
        raw_path: User-supplied path to a recorded model transcript.
        base_dir: Working directory that constrains allowed paths.

    Returns:
        Path: Absolute path to the transcript.

    Raises:
        ValueError: If the path does not exist, is outside `base_dir`, uses an
            unsupported extension, or traverses a symlink.

    Examples:
        normalize_transcript_path("runs/phase-1.txt", Path.cwd())
    """
    path = Path(raw_path).expanduser()

    if contains_symlink(path):
        error_message = f"Symlinks are not supported for security reasons: {path}"
        raise ValueError(error_message)

    try:
        resolved = path.resolve(strict=True)
    except FileNotFoundError as error:
        error_message = f"{path} does not exist."
        raise ValueError(error_message) from error
    except OSError as error:
        error_message = f"Error resolving {path}: {error}"
        raise ValueError(error_message) from error

    if not resolved.is_file():
        error_message = f"{resolved} is not a regular file."
        raise ValueError(error_message)

    try:
        resolved.relative_to(base_dir)
    except ValueError as error:
        error_message = f"{resolved} is outside of the working directory {base_dir}."
        raise ValueError(error_message) from error

    if resolved.suffix.lower() not in TRANSCRIPT_EXTENSIONS:
        error_message = f"{resolved} is not a transcript file.\n"
        error_message += f"Supported extensions are: {', '.join(TRANSCRIPT_EXTENSIONS)}"
        raise ValueError(error_message)

    return resolved


def resolve_output_path(file_path: str, output_dir: Path) -> Path:
    """Map a path declared in the stream to a location under `output_dir`.

    Args:
        file_path: Relative, forward-slash path from a file-open marker.
        output_dir: Directory generated files are written to.

    Returns:
        Path: Absolute target path.

    Raises:
        ValueError: If the path is empty or absolute, escapes `output_dir`, or
            passes through a symlink.

    Examples:
        resolve_output_path("src/app.py", Path("/tmp/out"))  # /tmp/out/src/app.py
    """
    relative = PurePosixPath(file_path.replace("\\", "/"))
    if not file_path.strip() or relative.is_absolute() or relative.anchor:
        raise ValueError(f"Refusing to write absolute or empty path: {file_path!r}")
    if ".." in relative.parts:
        raise ValueError(f"Refusing to write outside of the output directory: {file_path}")

    base = output_dir.resolve()
    target = base.joinpath(*relative.parts)
    for index in range(len(relative.parts)):
        if base.joinpath(*relative.parts[: index + 1]).is_symlink():
            raise ValueError(f"Symlinks are not supported for security reasons: {file_path}")
    return target


def read_previous_contents(file_path: str, output_dir: Path) -> str | None:
    """Return the current text of a generated file, or None when it does not exist.

    Raises:
        ValueError: If `file_path` is not a safe path under `output_dir`.
        IOError: If the file exists but cannot be read.
    """
    target = resolve_output_path(file_path, output_dir)
    if not target.exists():
        return None
    with safe_read(target) as handle:
        return handle.read()


def collect_file_stat(filepath: Path) -> os.stat_result:
    """Return stat information for a file while disallowing symlinks.

    Raises:
        IOError: If the path is inaccessible, a symlink, or not a regular file.
    """
    try:
        stat_result = os.stat(filepath, follow_symlinks=False)
    except OSError as error:
        error_message = f"Error accessing {filepath}: {error}"
        raise IOError(error_message) from error

    if stat.S_ISLNK(stat_result.st_mode):
        error_message = f"Symlinks are not supported: {filepath}."
        raise IOError(error_message)

    if not stat.S_ISREG(stat_result.st_mode):
        error_message = f"{filepath} is not a regular file."
        raise IOError(error_message)

    return stat_result


def enforce_file_size(stat_result: os.stat_result, max_size: int, filepath: Path):
    """Guard against transcripts that exceed the configured maximum size.

    Raises:
        IOError: If `stat_result.st_size` exceeds `max_size`.
    """
    if stat_result.st_size > max_size:
        error_message = f"{filepath} exceeds the maximum allowed size of {max_size} bytes."
        raise IOError(error_message)


def safe_read(filepath: Path) -> TextIO:
    """Open a file for reading with consistent error handling.

    Newlines are not translated, so ``\\r\\n`` reaches the parser unchanged.

    Raises:
        IOError: If the path is missing, inaccessible, or not a file.

    Examples:
        with safe_read(Path("phase-1.txt")) as handle:
            transcript = handle.read()
    """
    try:
        return open(filepath, "r", encoding="UTF-8", newline="")
    except (
        FileNotFoundError,
        PermissionError,
        IsADirectoryError,
        NotADirectoryError,
    ) as error:
        error_message = f"Error accessing {filepath}: {error}"
        raise IOError(error_message) from error


def iter_chunks(text: str, chunk_size: int) -> Iterator[str]:
    """Split `text` into consecutive chunks of at most `chunk_size` characters."""
    if chunk_size <= 0:
        raise ValueError("`chunk_size` must be a positive integer")
    for start in range(0, len(text), chunk_size):
        yield text[start : start + chunk_size]


def write_file_atomically(
    target: Path,
    contents: str,
    warn: Callable[[str], None] | None = None,
):
    """Write `contents` to `target` through a temporary file and `os.replace`.

    Parent directories are created. When `target` already exists its
    permissions are kept and ownership is preserved where the platform allows.

    Args:
        target: Destination path.
        contents: Text to write; a trailing newline is added when missing.
        warn: Optional callback for non-fatal warnings (e.g., ownership preservation).

    Raises:
        IOError: If the file cannot be written.

    Examples:
        write_file_atomically(Path("out/app.py"), "print('hi')")
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise IOError(f"Error creating {target.parent}: {error}") from error

    existing_stat = None
    if target.exists():
        existing_stat = collect_file_stat(target)

    if contents and not contents.endswith("\n"):
        contents += "\n"

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", encoding="UTF-8", delete=False, dir=target.parent, newline=""
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            tmp_file.write(contents)

            # Ensure the temporary file is flushed and synced before the swap
            tmp_file.flush()
            os.fsync(tmp_file.fileno())

            if existing_stat is not None:
                os.chmod(tmp_file.name, stat.S_IMODE(existing_stat.st_mode))
                uid = getattr(existing_stat, "st_uid", None)
                gid = getattr(existing_stat, "st_gid", None)
                if uid is not None and gid is not None and hasattr(os, "chown"):
                    try:
                        os.chown(tmp_file.name, uid, gid)
                    except PermissionError:
                        if warn is not None:
                            warn(
                                f"Warning: Could not preserve file ownership for {target.name} "
                                "(requires elevated privileges)"
                            )
            else:
                os.chmod(tmp_file.name, 0o644)

        os.replace(temp_path, target)
    except OSError as error:
        raise IOError(f"Error writing {target}: {error}") from error
    finally:
        if temp_path is not None:
            try:
                Path(temp_path).unlink(missing_ok=True)
            except OSError:
                pass

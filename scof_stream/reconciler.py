"""Turn closed file bodies into the file text to persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from .constants import FILE_HEADER_PREFIXES, HUNK_HEADER_PREFIX, NO_NEWLINE_MARKER
from .exceptions import PatchApplicationError
from .log import get_logger
from .models import CompletedFile, ContentFormat


@dataclass
class HunkEdit:
    """One contiguous change inside a hunk.

    Attributes:
        removed: Lines to locate verbatim in the previous contents.
        added: Lines substituted in place of `removed`.
        context_before: Context lines directly preceding the change.
        context_after: Context lines directly following the change.
    """

    removed: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    context_before: list[str] = field(default_factory=list)
    context_after: list[str] = field(default_factory=list)


def parse_hunks(diff_text: str) -> list[list[HunkEdit]]:
    """Split a unified diff body into hunks of edits.

    Each contiguous run of ``-`` lines followed by ``+`` lines becomes one
    edit; a ``-`` line after a ``+`` line starts a new edit. File headers before
    the first hunk and ``\\ No newline at end of file`` lines are ignored. A
    body without any ``@@`` line is treated as a single hunk.

    Args:
        diff_text: Diff body as accumulated from the stream.

    Returns:
        list[list[HunkEdit]]: Edits grouped by hunk, in stream order.

    Examples:
        parse_hunks("@@ ... @@\\n-old\\n+new\\n")
    """
    hunks: list[list[HunkEdit]] = []
    edits: list[HunkEdit] | None = None
    edit: HunkEdit | None = None
    trailing: HunkEdit | None = None
    context: list[str] = []
    seen_hunk_header = False

    for line in diff_text.split("\n"):
        if line.startswith(HUNK_HEADER_PREFIX):
            seen_hunk_header = True
            edits, edit, trailing, context = [], None, None, []
            hunks.append(edits)
            continue

        if not seen_hunk_header and line.startswith(FILE_HEADER_PREFIXES):
            continue
        if line.rstrip() == NO_NEWLINE_MARKER:
            continue

        if edits is None:
            edits = []
            hunks.append(edits)

        if line.startswith(("-", "+")):
            starts_new_edit = edit is None or (line.startswith("-") and bool(edit.added))
            if starts_new_edit:
                edit = HunkEdit(context_before=context)
                edits.append(edit)
                trailing, context = None, []
            if line.startswith("-"):
                edit.removed.append(line[1:])
            else:
                edit.added.append(line[1:])
            continue

        text = line[1:] if line.startswith(" ") else line
        if edit is not None:
            trailing, edit = edit, None
        if trailing is not None:
            trailing.context_after.append(text)
        context.append(text)

    return hunks


def _find_block(lines: list[str], block: list[str]) -> int | None:
    """Return the index of the first occurrence of `block` in `lines`."""
    width = len(block)
    for index in range(len(lines) - width + 1):
        if lines[index : index + width] == block:
            return index
    return None


def _strip_trailing_blank(block: list[str]) -> list[str]:
    # The final split segment of a diff body ending in a newline is empty.
    trimmed = list(block)
    while trimmed and trimmed[-1] == "":
        trimmed.pop()
    return trimmed


def _apply_edit(lines: list[str], edit: HunkEdit) -> None:
    if edit.removed:
        index = _find_block(lines, edit.removed)
        if index is None:
            raise PatchApplicationError("could not locate lines to remove", edit.removed)
        lines[index : index + len(edit.removed)] = edit.added
        return

    before = edit.context_before
    after = _strip_trailing_blank(edit.context_after)
    if before:
        index = _find_block(lines, before)
        if index is None:
            raise PatchApplicationError("could not locate insertion anchor", before)
        lines[index + len(before) : index + len(before)] = edit.added
    elif after:
        index = _find_block(lines, after)
        if index is None:
            raise PatchApplicationError("could not locate insertion anchor", after)
        lines[index:index] = edit.added
    elif lines and lines[-1] == "":
        lines[-1:-1] = edit.added
    else:
        lines.extend(edit.added)


def apply_unified_diff(previous: str, diff_text: str) -> str:
    """Apply high-level hunks to the previous version of a file.

    Every edit's ``-`` block is located verbatim in the current text, scanning
    from the top, and replaced with its ``+`` block; the first match wins when
    the block occurs more than once. Edits apply in order, each against the
    result of the edits before it, so hunks may come in any order. An edit with
    only ``+`` lines is inserted after the context lines preceding it, before
    the context lines following it, or at the end of the file when the hunk has
    no context.

    Args:
        previous: Current contents of the file; empty for a new file.
        diff_text: Diff body.

    Returns:
        str: Patched contents.

    Raises:
        PatchApplicationError: If a block to remove or an insertion anchor is not
            present in the contents.

    Examples:
        apply_unified_diff("line1\\nline2\\nline3", "@@ ... @@\\n-line2\\n+lineX\\n")
        # "line1\\nlineX\\nline3"
    """
    lines = previous.split("\n") if previous else []
    for hunk in parse_hunks(diff_text):
        for edit in hunk:
            _apply_edit(lines, edit)
    return "\n".join(lines)


def normalize_trailing_newline(text: str) -> str:
    """Trim a single trailing newline (``\\n`` or ``\\r\\n``)."""
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


def reconcile_contents(
    raw: str, content_format: ContentFormat | str, previous: str = ""
) -> str:
    """Compute the final text of a closed file.

    Args:
        raw: Body accumulated between the open and close markers.
        content_format: Declared format of the body.
        previous: Previous contents of the file; empty for a new file.

    Returns:
        str: File text to persist, with a single trailing newline trimmed.

    Raises:
        PatchApplicationError: If the diff cannot be applied, or it empties a
            file that previously had content.

    Examples:
        reconcile_contents("print('hi')\\n", "full_content")  # "print('hi')"
    """
    content_format = ContentFormat(content_format)

    # Full bodies are verbatim; fences inside them belong to the file.
    if content_format is ContentFormat.FULL_CONTENT:
        contents = raw
    else:
        contents = apply_unified_diff(previous, raw)

    contents = normalize_trailing_newline(contents)

    if content_format is ContentFormat.UNIFIED_DIFF and previous.strip() and not contents.strip():
        raise PatchApplicationError("patch produced empty content")

    return contents


def reconcile_file(
    file: CompletedFile, previous: str = "", logger: logging.Logger | None = None
) -> CompletedFile:
    """Reconcile a closed file, attaching any patch failure to the result.

    On failure the previous contents are kept unchanged and the error is
    attached to the returned file so it can be reported for its path.

    Args:
        file: Closed file holding its raw body.
        previous: Previous contents of the file.
        logger: Logger used to report patch failures.

    Returns:
        CompletedFile: Copy of `file` with reconciled contents, or with
            `contents=previous` and `error` set when the patch failed.
    """
    try:
        contents = reconcile_contents(file.contents, file.format, previous)
    except PatchApplicationError as error:
        bound = error.with_path(file.path)
        (logger or get_logger(__name__)).error("Failed to apply patch: %s", bound)
        return replace(file, contents=previous, error=bound)

    return replace(file, contents=contents, error=None)

"""Shell command collection from model output."""

from __future__ import annotations

from .constants import CODE_FENCE_PATTERN, INSTALL_COMMAND_PATTERN, SHELL_FENCE_LANGUAGES


def is_command_line(line: str) -> bool:
    """Return True when `line` holds a command rather than a blank or comment."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def split_command_lines(text: str) -> list[str]:
    """Split a command block into commands.

    Blank lines and ``#`` comments are dropped; order and duplicates are kept.

    Args:
        text: Body of a command block.

    Returns:
        list[str]: Stripped command lines in source order.

    Examples:
        split_command_lines("pip install httpx\\n# comment\\n\\npip install rich\\n")
        # ["pip install httpx", "pip install rich"]
    """
    return [line.strip() for line in text.splitlines() if is_command_line(line)]


def _join_continuations(lines: list[str]) -> list[str]:
    joined: list[str] = []
    pending = ""
    for line in lines:
        if line.endswith("\\"):
            pending += line[:-1].rstrip() + " "
            continue
        joined.append(pending + line)
        pending = ""
    if pending.strip():
        joined.append(pending.rstrip())
    return joined


def _closes_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return len(stripped) >= len(fence) and stripped == fence[0] * len(stripped)


def extract_commands(text: str, only_installs: bool = False) -> list[str]:
    """Collect commands from fenced shell blocks in a free-form reply.

    Fences tagged ``bash``, ``sh``, ``shell``, ``zsh``, ``console`` or left
    untagged are scanned; other fences are skipped. Leading ``$`` prompts are
    removed and backslash continuations are joined into one command. A shell
    fence left open at the end of `text` still contributes its commands.

    Args:
        text: Model reply, typically Markdown.
        only_installs: Keep only package-install commands (``pip install``,
            ``poetry add``, ``npm install``, ``bun add`` and similar).

    Returns:
        list[str]: Commands in source order, duplicates included.

    Examples:
        extract_commands("```bash\\npip install httpx\\n```")  # ["pip install httpx"]
    """
    commands: list[str] = []
    block: list[str] = []
    fence: str | None = None
    collecting = False

    for line in text.splitlines():
        if fence is None:
            match = CODE_FENCE_PATTERN.match(line)
            if match:
                info = match.group("info").strip()
                language = info.split()[0].lower() if info else ""
                fence = match.group("fence")
                collecting = language in SHELL_FENCE_LANGUAGES
                block = []
            continue

        if _closes_fence(line, fence):
            if collecting:
                commands.extend(_join_continuations(block))
            fence = None
            continue

        if not collecting:
            continue

        stripped = line.strip()
        if stripped.startswith("$ "):
            stripped = stripped[2:].strip()
        if is_command_line(stripped):
            block.append(stripped)

    if fence is not None and collecting:
        commands.extend(_join_continuations(block))

    if only_installs:
        return [command for command in commands if INSTALL_COMMAND_PATTERN.match(command)]
    return commands

from __future__ import annotations

import os

import pytest
from scof_stream.commands import extract_commands
from scof_stream.constants import COMMANDS_END_MARKER, COMMANDS_START_MARKER, HEREDOC_DELIMITER
from scof_stream.exceptions import PatchApplicationError
from scof_stream.models import ParsingState
from scof_stream.parser import finish_stream, parse_chunk
from scof_stream.reconciler import apply_unified_diff

atheris = pytest.importorskip("atheris")

FRAGMENTS = [
    "cat > a.txt << 'EOF'\n",
    "cat << 'EOF' | patch a.txt\n",
    f"{HEREDOC_DELIMITER}\n",
    f"{COMMANDS_START_MARKER}\n",
    f"{COMMANDS_END_MARKER}\n",
    "```bash\n",
    "```\n",
]


def test_parse_chunk_with_fuzzed_stream():
    data = os.urandom(4096)
    provider = atheris.FuzzedDataProvider(data)
    state = ParsingState()
    fed = []

    while provider.remaining_bytes() > 0 and len(fed) < 128:
        if provider.ConsumeBool():
            chunk = FRAGMENTS[provider.ConsumeIntInRange(0, len(FRAGMENTS) - 1)]
        else:
            chunk = provider.ConsumeUnicodeNoSurrogates(32)
        fed.append(chunk)
        parse_chunk(chunk, state)

    unterminated = finish_stream(state)

    assert fed  # ensure we exercised the loop
    assert state.accumulator == "".join(fed)
    assert unterminated == list(state.pending_files)
    assert state.line_buffer == ""
    assert all(isinstance(command, str) for command in extract_commands(state.accumulator))


def test_apply_unified_diff_with_fuzzed_hunks():
    data = os.urandom(4096)
    provider = atheris.FuzzedDataProvider(data)
    previous = "\n".join(provider.ConsumeUnicodeNoSurrogates(16) for _ in range(8))

    for _ in range(64):
        if provider.remaining_bytes() == 0:
            break
        prefix = "-+ @"[provider.ConsumeIntInRange(0, 3)]
        diff = f"{prefix}{provider.ConsumeUnicodeNoSurrogates(16)}\n"
        try:
            patched = apply_unified_diff(previous, diff)
        except PatchApplicationError:
            continue
        assert isinstance(patched, str)

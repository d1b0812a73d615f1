from __future__ import annotations

import textwrap

import pytest

from scof_stream.config import StreamConfig
from scof_stream.exceptions import MalformedMarkerError
from scof_stream.models import ContentFormat, ParserMode, ParsingState
from scof_stream.parser import (
    build_marker_patterns,
    finish_stream,
    parse_chunk,
    parse_open_marker,
    parse_stream,
)
from scof_stream.reconciler import reconcile_contents

FULL = ContentFormat.FULL_CONTENT
DIFF = ContentFormat.UNIFIED_DIFF


def _stream(text: str) -> str:
    return textwrap.dedent(text).lstrip()


@pytest.mark.parametrize(
    "line, expected",
    [
        ("cat > src/app.py << 'EOF'", ("src/app.py", FULL)),
        ('cat > src/app.py << "EOF"', ("src/app.py", FULL)),
        ("cat > src/app.py <<EOF", ("src/app.py", FULL)),
        ("cat >src/app.py <<- 'EOF'", ("src/app.py", FULL)),
        ("cat > \"docs/read me.md\" << 'EOF'", ("docs/read me.md", FULL)),
        ("cat << 'EOF' | patch src/app.py", ("src/app.py", DIFF)),
        ("cat << 'EOF' | patch -p1 'src/app.py'", ("src/app.py", DIFF)),
    ],
)
def test_parse_open_marker_accepts_variants(line, expected):
    assert parse_open_marker(line, build_marker_patterns()) == expected


@pytest.mark.parametrize(
    "line",
    [
        "print('cat')",
        "cat README.md",
        "EOF",
        "cat > app.py << 'END'",
    ],
)
def test_parse_open_marker_ignores_other_lines(line):
    assert parse_open_marker(line, build_marker_patterns()) is None


def test_parse_open_marker_rejects_missing_path():
    with pytest.raises(MalformedMarkerError) as excinfo:
        parse_open_marker("cat > << 'EOF'", build_marker_patterns())

    assert excinfo.value.reason == "missing or invalid file path"
    assert excinfo.value.line == "cat > << 'EOF'"


def test_parse_open_marker_rejects_pipe_without_patch():
    with pytest.raises(MalformedMarkerError) as excinfo:
        parse_open_marker("cat << 'EOF' | tee app.py", build_marker_patterns())

    assert "patch" in excinfo.value.reason


def test_full_content_round_trip(recorder):
    state = ParsingState()

    parse_chunk(
        "cat > src/app.py << 'EOF'\nprint('hi')\nprint('bye')\nEOF\n", state, *recorder.callbacks
    )

    assert recorder.events == [
        ("open", "src/app.py"),
        ("chunk", "src/app.py", "print('hi')\n", FULL),
        ("chunk", "src/app.py", "print('bye')\n", FULL),
        ("close", "src/app.py"),
    ]
    completed = state.completed_files["src/app.py"]
    assert completed.format is FULL
    assert completed.contents == "print('hi')\nprint('bye')\n"
    assert reconcile_contents(completed.contents, completed.format) == "print('hi')\nprint('bye')"
    assert state.mode is ParserMode.OUTSIDE_FILE


def test_forwarded_chunks_reconstruct_body(recorder):
    body = "line one\n\n    indented\ntrailing spaces   \n"
    state = parse_stream([f"cat > notes.txt << 'EOF'\n{body}EOF\n"], *recorder.callbacks)

    assert recorder.body_of("notes.txt") == body
    assert state.completed_files["notes.txt"].contents == body


def test_marker_split_across_chunks(recorder):
    chunks = ["ca", "t > a.txt << 'E", "OF'\nhel", "lo\nE", "OF", "\n"]
    state = ParsingState()

    for chunk in chunks:
        parse_chunk(chunk, state, *recorder.callbacks)

    assert recorder.events == [
        ("open", "a.txt"),
        ("chunk", "a.txt", "hello\n", FULL),
        ("close", "a.txt"),
    ]
    assert state.completed_files["a.txt"].contents == "hello\n"
    assert state.accumulator == "".join(chunks)
    assert state.line_buffer == ""


def test_partial_marker_waits_for_newline(recorder):
    state = ParsingState()

    parse_chunk("cat > a.txt << 'EOF'", state, *recorder.callbacks)

    assert recorder.events == []
    assert state.line_buffer == "cat > a.txt << 'EOF'"

    parse_chunk("\n", state, *recorder.callbacks)
    assert recorder.events == [("open", "a.txt")]


def test_unified_diff_body_is_forwarded_with_format(recorder):
    stream = _stream(
        """
        cat << 'EOF' | patch src/app.py
        @@ ... @@
        -old
        +new
        EOF
        """
    )

    state = parse_stream([stream], *recorder.callbacks)

    assert ("chunk", "src/app.py", "-old\n", DIFF) in recorder.events
    assert state.completed_files["src/app.py"].format is DIFF
    assert state.completed_files["src/app.py"].contents == "@@ ... @@\n-old\n+new\n"


def test_unterminated_file_is_not_completed():
    state = ParsingState()
    parse_chunk("cat > a.ts << 'EOF'\nconst x = 1;\n", state)

    unterminated = finish_stream(state)

    assert unterminated == ["a.ts"]
    assert "a.ts" not in state.completed_files
    assert state.pending_files["a.ts"].raw_contents == "const x = 1;\n"


def test_finish_stream_processes_final_line_without_newline(recorder):
    state = ParsingState()
    parse_chunk("cat > a.txt << 'EOF'\nhello\nEOF", state, *recorder.callbacks)

    assert "a.txt" not in state.completed_files

    assert finish_stream(state, *recorder.callbacks) == []
    assert state.completed_files["a.txt"].contents == "hello\n"
    assert recorder.events[-1] == ("close", "a.txt")


def test_duplicate_open_keeps_content_after_second_open(recorder):
    stream = _stream(
        """
        cat > a.txt << 'EOF'
        first
        cat > a.txt << 'EOF'
        second
        EOF
        """
    )

    state = parse_stream([stream], *recorder.callbacks)

    assert state.completed_files["a.txt"].contents == "second\n"
    assert [event[0] for event in recorder.events] == ["open", "chunk", "open", "chunk", "close"]
    assert len(state.warnings) == 1
    assert state.warnings[0].startswith("DuplicateOpenWarning")


def test_open_of_other_path_leaves_first_unterminated():
    stream = _stream(
        """
        cat > a.txt << 'EOF'
        one
        cat > b.txt << 'EOF'
        two
        EOF
        """
    )
    state = ParsingState()
    parse_chunk(stream, state)

    assert finish_stream(state) == ["a.txt"]
    assert list(state.completed_files) == ["b.txt"]
    assert state.completed_files["b.txt"].contents == "two\n"
    assert state.warnings == ["b.txt opened before a.txt was closed; a.txt is left unterminated"]


def test_later_close_overwrites_completed_entry():
    stream = _stream(
        """
        cat > a.txt << 'EOF'
        v1
        EOF
        cat > a.txt << 'EOF'
        v2
        EOF
        """
    )

    state = parse_stream([stream])

    assert state.completed_files["a.txt"].contents == "v2\n"
    assert state.warnings == []


def test_command_block_yields_non_comment_lines():
    stream = _stream(
        """
        cat > a.py << 'EOF'
        x = 1
        EOF
        # BEGIN COMMANDS
        pip install httpx
        # create the database

        npm install
        uv add rich
        # END COMMANDS
        cat > b.py << 'EOF'
        y = 2
        EOF
        """
    )

    state = parse_stream([stream])

    assert state.extracted_install_commands == ["pip install httpx", "npm install", "uv add rich"]
    assert state.completed_files["a.py"].contents == "x = 1\n"
    assert state.completed_files["b.py"].contents == "y = 2\n"


def test_command_blocks_keep_duplicates_in_order():
    stream = _stream(
        """
        # BEGIN COMMANDS
        npm install
        # END COMMANDS
        # BEGIN COMMANDS
        pip install httpx
        npm install
        # END COMMANDS
        """
    )

    state = parse_stream([stream])

    assert state.extracted_install_commands == ["npm install", "pip install httpx", "npm install"]


def test_command_block_inside_file_body_does_not_corrupt_file(recorder):
    stream = _stream(
        """
        cat > a.py << 'EOF'
        x = 1
        # BEGIN COMMANDS
        pip install requests
        # END COMMANDS
        y = 2
        EOF
        """
    )

    state = parse_stream([stream], *recorder.callbacks)

    assert state.completed_files["a.py"].contents == "x = 1\ny = 2\n"
    assert recorder.body_of("a.py") == "x = 1\ny = 2\n"
    assert state.extracted_install_commands == ["pip install requests"]


def test_open_marker_closes_unfinished_command_block():
    stream = _stream(
        """
        # BEGIN COMMANDS
        pip install httpx
        cat > a.txt << 'EOF'
        body
        EOF
        """
    )

    state = parse_stream([stream])

    assert state.extracted_install_commands == ["pip install httpx"]
    assert state.completed_files["a.txt"].contents == "body\n"
    assert state.warnings == ["Command block not closed before opening a.txt; closing it"]


def test_delimiter_closes_command_block_and_file():
    stream = _stream(
        """
        cat > a.txt << 'EOF'
        body
        # BEGIN COMMANDS
        pip install httpx
        EOF
        """
    )

    state = parse_stream([stream])

    assert state.mode is ParserMode.OUTSIDE_FILE
    assert state.completed_files["a.txt"].contents == "body\n"
    assert state.extracted_install_commands == ["pip install httpx"]
    assert state.warnings == ["Command block not closed before a.txt ended; closing it"]


def test_malformed_marker_inside_body_is_content():
    stream = "cat > a.txt << 'EOF'\ncat > << 'EOF'\nEOF\n"

    state = parse_stream([stream])

    assert state.completed_files["a.txt"].contents == "cat > << 'EOF'\n"
    assert len(state.warnings) == 1
    assert state.warnings[0].startswith("Malformed marker")


def test_decoration_outside_files_is_ignored(recorder):
    stream = _stream(
        """
        Here is the implementation:

        ```bash
        EOF
        ```
        """
    )

    state = parse_stream([stream], *recorder.callbacks)

    assert recorder.events == []
    assert state.completed_files == {}
    assert state.accumulator == stream


def test_close_marker_must_be_whole_line():
    stream = "cat > a.txt << 'EOF'\n  EOF\nEOF is not a close\nEOF   \n"

    state = parse_stream([stream])

    assert state.completed_files["a.txt"].contents == "  EOF\nEOF is not a close\n"


def test_crlf_line_endings_are_kept_in_content():
    stream = "cat > a.txt << 'EOF'\r\nhello\r\nEOF\r\n"

    state = parse_stream([stream])

    assert state.completed_files["a.txt"].contents == "hello\r\n"


def test_custom_delimiter():
    config = StreamConfig(heredoc_delimiter="END_OF_FILE")
    stream = "cat > a.txt << 'END_OF_FILE'\nEOF\nEND_OF_FILE\n"

    state = parse_stream([stream], config=config)

    assert state.completed_files["a.txt"].contents == "EOF\n"


def test_custom_command_markers():
    config = StreamConfig(commands_start_marker="<commands>", commands_end_marker="</commands>")
    stream = "<commands>\nmake build\n</commands>\n# BEGIN COMMANDS\n"

    state = parse_stream([stream], config=config)

    assert state.extracted_install_commands == ["make build"]
    assert state.mode is ParserMode.OUTSIDE_FILE


def test_empty_chunk_is_noop():
    state = ParsingState()

    parse_chunk("", state)

    assert state == ParsingState()

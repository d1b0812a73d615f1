from scof_stream.config import StreamConfig
from scof_stream.models import CompletedFile, ContentFormat
from scof_stream.parser import parse_stream
from scof_stream.serializer import (
    format_close_marker,
    format_open_marker,
    serialize_commands,
    serialize_files,
)


def test_format_open_marker_for_each_format():
    assert format_open_marker("src/app.py", "full_content") == "cat > src/app.py << 'EOF'"
    assert (
        format_open_marker("src/app.py", ContentFormat.UNIFIED_DIFF)
        == "cat << 'EOF' | patch src/app.py"
    )


def test_format_open_marker_quotes_paths_with_spaces():
    assert format_open_marker("docs/read me.md", "full_content") == (
        "cat > \"docs/read me.md\" << 'EOF'"
    )


def test_markers_follow_configured_delimiter():
    config = StreamConfig(heredoc_delimiter="END")

    assert format_open_marker("a.txt", "full_content", config) == "cat > a.txt << 'END'"
    assert format_close_marker(config) == "END"


def test_serialize_files():
    files = [CompletedFile("a.txt", "hello"), CompletedFile("b.txt", "")]

    assert serialize_files(files) == (
        "cat > a.txt << 'EOF'\nhello\nEOF\ncat > b.txt << 'EOF'\n\nEOF\n"
    )


def test_serialized_diff_parses_back_as_diff():
    diff = CompletedFile("a.py", "@@ ... @@\n-x = 1\n+x = 2", ContentFormat.UNIFIED_DIFF)

    state = parse_stream([serialize_files([diff])])

    assert state.completed_files["a.py"].format is ContentFormat.UNIFIED_DIFF
    assert state.completed_files["a.py"].contents == "@@ ... @@\n-x = 1\n+x = 2\n"


def test_serialize_commands():
    assert serialize_commands(["pip install httpx", "npm install"]) == (
        "# BEGIN COMMANDS\npip install httpx\nnpm install\n# END COMMANDS\n"
    )
    assert serialize_commands([]) == "# BEGIN COMMANDS\n# END COMMANDS\n"


def test_body_line_matching_delimiter_ends_the_file_early():
    stream = serialize_files([CompletedFile("notes.txt", "before\nEOF\nafter")])

    state = parse_stream([stream])

    assert state.completed_files["notes.txt"].contents == "before\n"

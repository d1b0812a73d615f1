from scof_stream.exceptions import PatchApplicationError
from scof_stream.models import CompletedFile, ContentFormat, ParserMode, ParsingState


def test_parser_mode_members():
    assert list(ParserMode) == [
        ParserMode.OUTSIDE_FILE,
        ParserMode.IN_FILE_BODY,
        ParserMode.IN_COMMAND_BLOCK,
    ]


def test_content_format_accepts_format_tags():
    assert ContentFormat("full_content") is ContentFormat.FULL_CONTENT
    assert ContentFormat("unified_diff") is ContentFormat.UNIFIED_DIFF
    assert ContentFormat.UNIFIED_DIFF == "unified_diff"


def test_parsing_state_defaults():
    state = ParsingState()

    assert state.mode is ParserMode.OUTSIDE_FILE
    assert state.current_path is None
    assert state.current_format is None
    assert state.line_buffer == ""
    assert state.accumulator == ""
    assert state.pending_files == {}
    assert state.completed_files == {}
    assert state.extracted_install_commands == []
    assert state.warnings == []


def test_parsing_states_do_not_share_containers():
    first = ParsingState()
    second = ParsingState()

    first.extracted_install_commands.append("pip install httpx")
    first.warnings.append("warning")

    assert second.extracted_install_commands == []
    assert second.warnings == []


def test_completed_file_validity_follows_error():
    file = CompletedFile("app.py", "print('hi')")

    assert file.format is ContentFormat.FULL_CONTENT
    assert file.purpose == ""
    assert file.is_valid is True

    failed = CompletedFile("app.py", "", error=PatchApplicationError("boom"))
    assert failed.is_valid is False

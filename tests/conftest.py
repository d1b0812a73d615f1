import pytest
from click.testing import CliRunner


class CallbackRecorder:
    """Records parser callbacks as tuples, in invocation order."""

    def __init__(self):
        self.events = []

    def on_file_open(self, path):
        self.events.append(("open", path))

    def on_content_chunk(self, path, chunk, content_format):
        self.events.append(("chunk", path, chunk, content_format))

    def on_file_close(self, path):
        self.events.append(("close", path))

    @property
    def callbacks(self):
        return self.on_file_open, self.on_content_chunk, self.on_file_close

    def body_of(self, path):
        chunks = [event for event in self.events if event[0] == "chunk" and event[1] == path]
        return "".join(event[2] for event in chunks)


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Provides a reusable Click CLI runner."""
    return CliRunner()


@pytest.fixture()
def recorder() -> CallbackRecorder:
    return CallbackRecorder()

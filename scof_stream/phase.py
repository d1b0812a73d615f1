"""Run one generation phase: parse the stream, reconcile files, dispatch fixes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace

from .config import StreamConfig
from .log import get_logger
from .models import CompletedFile, ContentFormat, ParsingState
from .parser import finish_stream, parse_chunk
from .pipeline import Corrector, FixPipeline
from .reconciler import reconcile_file


def find_file_purpose(
    path: str, phase_files: Mapping[str, str], existing_purposes: Mapping[str, str]
) -> str:
    """Resolve a human-readable purpose for `path`.

    The phase plan wins over descriptions of files generated earlier.

    Examples:
        find_file_purpose("app.py", {"app.py": "Entry point"}, {})  # "Entry point"
    """
    purpose = phase_files.get(path) or existing_purposes.get(path)
    return purpose or ""


@dataclass
class PhaseContext:
    """What the phase knows about the project before the stream starts.

    Attributes:
        phase_files: Planned files for this phase, path to purpose.
        existing_files: Contents of files from earlier phases, by path.
        existing_purposes: Purposes of files from earlier phases, by path.
        query: Original user request, passed through to the corrector.
        load_previous: Fallback lookup for previous contents not in
            `existing_files`; returns None when the file does not exist.
    """

    phase_files: dict[str, str] = field(default_factory=dict)
    existing_files: dict[str, str] = field(default_factory=dict)
    existing_purposes: dict[str, str] = field(default_factory=dict)
    query: str = ""
    load_previous: Callable[[str], str | None] | None = None

    def previous_contents(self, path: str) -> str:
        if path in self.existing_files:
            return self.existing_files[path]
        if self.load_previous is not None:
            return self.load_previous(path) or ""
        return ""

    def purpose_of(self, path: str) -> str:
        return find_file_purpose(path, self.phase_files, self.existing_purposes)


@dataclass
class PhaseOutputs:
    """Result of `implement_phase`.

    Attributes:
        pipeline: Owner of the correction futures.
        commands: Commands extracted from command blocks, in order.
        unterminated_files: Files whose close marker never arrived.
        state: Final parsing state.
    """

    pipeline: FixPipeline
    commands: list[str]
    unterminated_files: list[str]
    state: ParsingState

    @property
    def fixed_file_futures(self) -> list[asyncio.Future[CompletedFile]]:
        return self.pipeline.futures

    @property
    def deployment_needed(self) -> bool:
        return bool(self.pipeline.futures)

    async def results(self, return_exceptions: bool = False) -> list:
        """Await every file in close order."""
        return await self.pipeline.gather(return_exceptions=return_exceptions)


async def _iterate(chunks: Iterable[str] | AsyncIterable[str]) -> AsyncIterator[str]:
    if isinstance(chunks, AsyncIterable):
        async for chunk in chunks:
            yield chunk
    else:
        for chunk in chunks:
            yield chunk


async def implement_phase(
    chunks: Iterable[str] | AsyncIterable[str],
    context: PhaseContext,
    *,
    config: StreamConfig | None = None,
    corrector: Corrector | None = None,
    auto_fix: bool = True,
    on_file_generating: Callable[[str, str], None] | None = None,
    on_file_chunk: Callable[[str, str, ContentFormat], None] | None = None,
    on_file_closed: Callable[[CompletedFile, str], None] | None = None,
    logger: logging.Logger | None = None,
) -> PhaseOutputs:
    """Consume a model stream and turn it into reconciled, possibly corrected files.

    Each closed file is reconciled against its previous contents (a file closed
    twice in one phase is patched against its first result), given its purpose,
    stored back in the parsing state and submitted to a `FixPipeline`. The
    stream keeps parsing while corrections run; callers await
    `PhaseOutputs.results()` to join on them in close order.

    Args:
        chunks: Model output, sync or async, in production order.
        context: Project knowledge for previous contents and purposes.
        config: Stream configuration; `realtime_fix_enabled` and
            `fix_min_lines` drive correction eligibility.
        corrector: Secondary corrector; without one nothing is corrected.
        auto_fix: Per-phase switch combined with `config.realtime_fix_enabled`.
        on_file_generating: Called with path and purpose when a file opens.
        on_file_chunk: Called with path, body line and format.
        on_file_closed: Called with the reconciled file and a status message.
        logger: Logger collaborator.

    Returns:
        PhaseOutputs: Futures, commands and the final state.

    Raises:
        Exception: Whatever the chunk source or a callback raises; outstanding
            corrections are cancelled first.
    """
    config = config or StreamConfig()
    logger = logger or get_logger(__name__)
    state = ParsingState()
    pipeline = FixPipeline(
        corrector,
        enabled=auto_fix and config.realtime_fix_enabled,
        min_lines=config.fix_min_lines,
        context=context,
        logger=logger,
    )
    reconciled: dict[str, str] = {}

    def handle_open(path: str) -> None:
        logger.info("Starting generation of file: %s", path)
        if on_file_generating is not None:
            on_file_generating(path, context.purpose_of(path))

    def handle_chunk(path: str, chunk: str, content_format: ContentFormat) -> None:
        if on_file_chunk is not None:
            on_file_chunk(path, chunk, content_format)

    def handle_close(path: str) -> None:
        logger.info("Completed generation of file: %s", path)
        previous = reconciled.get(path)
        if previous is None:
            previous = context.previous_contents(path)
        result = reconcile_file(state.completed_files[path], previous, logger)
        generated = replace(result, purpose=context.purpose_of(path))
        state.completed_files[path] = generated
        if generated.is_valid:
            reconciled[path] = generated.contents
        pipeline.submit(generated)
        if on_file_closed is not None:
            message = f"Completed generation of {path}"
            if not generated.is_valid:
                message = f"Failed to apply changes to {path}: {generated.error.reason}"
            on_file_closed(generated, message)

    try:
        async for chunk in _iterate(chunks):
            parse_chunk(
                chunk, state, handle_open, handle_chunk, handle_close, config=config, logger=logger
            )
        unterminated = finish_stream(
            state, handle_open, handle_chunk, handle_close, config=config, logger=logger
        )
    except BaseException:
        pipeline.discard()
        raise

    commands = list(state.extracted_install_commands)
    logger.info(
        "Generated %d files (%d being corrected); extracted %d commands",
        len(pipeline.futures),
        pipeline.pending_count,
        len(commands),
    )
    return PhaseOutputs(
        pipeline=pipeline,
        commands=commands,
        unterminated_files=unterminated,
        state=state,
    )

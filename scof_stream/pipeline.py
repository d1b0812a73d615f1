"""Secondary correction of generated files, run alongside the stream."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from .constants import MIN_FIX_LINES
from .exceptions import CorrectionTaskError
from .log import get_logger
from .models import CompletedFile


class Corrector(Protocol):
    """Asynchronous collaborator that returns a corrected copy of a file."""

    async def correct(self, file: CompletedFile, context: Any) -> CompletedFile: ...


def count_lines(contents: str) -> int:
    """Count lines the way the eligibility rule does (newline-separated)."""
    return len(contents.split("\n"))


def is_eligible_for_fix(
    file: CompletedFile, enabled: bool, min_lines: int = MIN_FIX_LINES
) -> bool:
    """Decide whether a file goes through the secondary correction.

    Args:
        file: Reconciled file.
        enabled: Feature flag supplied by the caller.
        min_lines: Files must have strictly more lines than this.

    Returns:
        bool: True when the flag is on and the file is long enough.

    Examples:
        is_eligible_for_fix(CompletedFile("a.py", "x\\n" * 60), enabled=True)  # True
    """
    return enabled and count_lines(file.contents) > min_lines


class FixPipeline:
    """Dispatch corrections as files close and keep their futures in close order.

    Eligible files get an `asyncio.Task` as soon as they are submitted, so
    corrections run while the stream keeps parsing. Other files get an
    already-resolved future so callers can await every entry the same way.
    Corrector failures are re-raised as `CorrectionTaskError` to whoever awaits
    the future; nothing is swallowed here.

    Used as an async context manager, an exceptional exit cancels corrections
    that are still running.

    Examples:
        async with FixPipeline(corrector, enabled=True) as pipeline:
            pipeline.submit(file)
            fixed = await pipeline.gather()
    """

    def __init__(
        self,
        corrector: Corrector | None = None,
        *,
        enabled: bool = False,
        min_lines: int = MIN_FIX_LINES,
        context: Any = None,
        logger: logging.Logger | None = None,
    ):
        self.corrector = corrector
        self.enabled = enabled and corrector is not None
        self.min_lines = min_lines
        self.context = context
        self.logger = logger or get_logger(__name__)
        self._futures: list[asyncio.Future[CompletedFile]] = []

    async def __aenter__(self) -> FixPipeline:
        return self

    async def __aexit__(self, exc_type, exc, traceback) -> None:
        if exc_type is not None:
            self.discard()

    @property
    def futures(self) -> list[asyncio.Future[CompletedFile]]:
        """Futures in the order their files were submitted."""
        return list(self._futures)

    @property
    def pending_count(self) -> int:
        return sum(1 for future in self._futures if not future.done())

    def submit(self, file: CompletedFile) -> asyncio.Future[CompletedFile]:
        """Schedule correction for `file` or wrap it in a resolved future.

        Files carrying a patch error are passed through untouched. Must be
        called while an event loop is running.

        Args:
            file: Reconciled file, in close order.

        Returns:
            asyncio.Future[CompletedFile]: Future appended to `futures`.
        """
        loop = asyncio.get_running_loop()
        if file.is_valid and is_eligible_for_fix(file, self.enabled, self.min_lines):
            self.logger.info("Dispatching correction for %s", file.path)
            future: asyncio.Future[CompletedFile] = loop.create_task(
                self._correct(file), name=f"correct:{file.path}"
            )
        else:
            future = loop.create_future()
            future.set_result(file)
        self._futures.append(future)
        return future

    async def _correct(self, file: CompletedFile) -> CompletedFile:
        try:
            corrected = await self.corrector.correct(file, self.context)
        except Exception as error:
            self.logger.error("Correction failed for %s: %s", file.path, error)
            raise CorrectionTaskError(file.path) from error
        self.logger.info("Correction finished for %s", file.path)
        return corrected

    async def gather(self, return_exceptions: bool = False) -> list[CompletedFile | BaseException]:
        """Await every future and return results in submission order.

        Args:
            return_exceptions: Return failures in place of results instead of
                raising the first one.

        Returns:
            list: Corrected or passed-through files, in close order.

        Raises:
            CorrectionTaskError: If a correction failed and `return_exceptions`
                is False.
        """
        return list(await asyncio.gather(*self._futures, return_exceptions=return_exceptions))

    def discard(self) -> int:
        """Cancel corrections that are still running.

        Returns:
            int: Number of tasks cancelled.
        """
        cancelled = 0
        for future in self._futures:
            if not future.done():
                future.cancel()
                cancelled += 1
        if cancelled:
            self.logger.info("Cancelled %d outstanding corrections", cancelled)
        return cancelled

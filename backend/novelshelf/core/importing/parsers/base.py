"""Common parser interface and progress reporting."""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from novelshelf.core.importing.models import (
    ImportProgress,
    ParsedNovel,
    ProgressCallback,
)


class ProgressReporter:
    """Forward clamped, non-decreasing progress updates to a callback.

    Parsing runs in a worker thread; when a loop is given, callbacks are
    scheduled on it so they always run on the event loop thread, in order,
    before ``parse`` returns.
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._callback = callback
        self._loop = loop
        self._last_percentage = 0.0

    def report(
        self,
        processed: int,
        total: int,
        percentage: float,
        current_file: Optional[str] = None,
    ) -> None:
        if self._callback is None:
            return
        percentage = min(100.0, max(0.0, float(percentage)))
        percentage = max(percentage, self._last_percentage)
        self._last_percentage = percentage

        progress = ImportProgress(
            processed_bytes=processed,
            total_bytes=total,
            percentage=percentage,
            current_file=current_file,
        )
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._callback, progress)
        else:
            self._callback(progress)


class Parser(ABC):
    """Turns one book file into a :class:`ParsedNovel`."""

    #: Human readable format name
    format_name: str = ""
    #: Lowercase file extensions handled, including the dot
    extensions: tuple[str, ...] = ()

    async def parse(
        self,
        file_path: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ParsedNovel:
        """Parse ``file_path``; blocking work runs in a worker thread."""
        reporter = ProgressReporter(on_progress, asyncio.get_running_loop())
        return await asyncio.to_thread(self.parse_sync, Path(file_path), reporter)

    def parse_sync(
        self, path: Path, progress: Optional[ProgressReporter] = None
    ) -> ParsedNovel:
        """Parse synchronously (no event loop needed)."""
        return self._parse(Path(path), progress or ProgressReporter(None))

    @abstractmethod
    def _parse(self, path: Path, progress: ProgressReporter) -> ParsedNovel:
        """Format-specific parsing; may block."""

    @classmethod
    def handles(cls, filename: str) -> bool:
        return filename.lower().endswith(cls.extensions)

"""Batch translation queue manager.

The queue lives in the ``translation_queue`` table so it survives restarts;
the manager keeps an in-memory mirror of it for cheap status reads. Items
are processed strictly one at a time, in FIFO order. A failing chapter is
recorded as ``failed`` and the batch moves on.

Pause and stop are cooperative: pause takes effect before the next item
starts, stop also cancels the stream of the chapter in flight.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from novelshelf.core.library import LibraryRepository
from novelshelf.core.llm.client import (
    CancellationToken,
    TranslationCancelledError,
    TranslationClient,
)
from novelshelf.core.translation.notifications import (
    KeepAlive,
    LoggingNotifier,
    NoopKeepAlive,
    Notifier,
    QueueCounts,
)
from novelshelf.models.database import QueueItem, QueueStatus

logger = logging.getLogger(__name__)

KEEP_ALIVE_TITLE = "Translating novel"


class BatchState(str, Enum):
    """Lifecycle of the batch queue."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


class BatchAlreadyRunningError(Exception):
    """A batch is already being processed."""


@dataclass(frozen=True)
class BatchLanguages:
    source_lang: str
    target_lang: str
    target_code: str


@dataclass
class QueueEntry:
    """In-memory copy of a queue row."""

    id: int
    chapter_id: int
    source_lang: str
    target_lang: str
    status: QueueStatus = QueueStatus.PENDING
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, item: QueueItem) -> "QueueEntry":
        return cls(
            id=item.id,
            chapter_id=item.chapter_id,
            source_lang=item.source_lang,
            target_lang=item.target_lang,
            status=QueueStatus(item.status),
            error_message=item.error_message,
            created_at=item.created_at,
            completed_at=item.completed_at,
        )


class BatchQueueManager:
    """Run batch translations one chapter at a time."""

    def __init__(
        self,
        library: LibraryRepository,
        client: TranslationClient,
        notifier: Optional[Notifier] = None,
        keep_alive: Optional[KeepAlive] = None,
        throttle_delay: float = 0.5,
        default_target_code: Optional[str] = None,
    ):
        self.library = library
        self.client = client
        self.notifier = notifier or LoggingNotifier()
        self.keep_alive = keep_alive or NoopKeepAlive()
        self.throttle_delay = throttle_delay
        self.default_target_code = default_target_code

        self._state = BatchState.IDLE
        self._is_processing = False
        self._pause_requested = False
        self._pause_after_chapter = False
        self._show_notifications = True
        self._items: list[QueueEntry] = []
        self._languages: Optional[BatchLanguages] = None
        self._novel_id: Optional[int] = None
        self._active_chapter_id: Optional[int] = None
        # Token of the processing loop currently allowed to run
        self._token: Optional[CancellationToken] = None

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def is_paused(self) -> bool:
        return self._state == BatchState.PAUSED

    @property
    def active_chapter_id(self) -> Optional[int]:
        return self._active_chapter_id

    @property
    def novel_id(self) -> Optional[int]:
        return self._novel_id

    @property
    def languages(self) -> Optional[BatchLanguages]:
        return self._languages

    @property
    def items(self) -> list[QueueEntry]:
        """Snapshot of the queue mirror."""
        return [replace(entry) for entry in self._items]

    def counts(self) -> QueueCounts:
        statuses = [entry.status for entry in self._items]
        return QueueCounts(
            total=len(statuses),
            pending=statuses.count(QueueStatus.PENDING),
            processing=statuses.count(QueueStatus.PROCESSING),
            completed=statuses.count(QueueStatus.COMPLETED),
            failed=statuses.count(QueueStatus.FAILED),
        )

    # =========================================================================
    # Control
    # =========================================================================

    def claim(self) -> None:
        """Reserve the manager for a batch that will be started later.

        Synchronous, so a caller that awaits between the check and
        :meth:`start` cannot race another caller. Pair with
        ``start(..., claimed=True)`` or :meth:`release`.

        Raises:
            BatchAlreadyRunningError: Another batch is being processed
        """
        if self._is_processing:
            raise BatchAlreadyRunningError("Translation is already running")
        self._is_processing = True

    def release(self) -> None:
        """Give back a claim that will not be followed by :meth:`start`."""
        self._is_processing = False

    async def start(
        self,
        novel_id: int,
        chapter_ids: Iterable[int],
        languages: BatchLanguages,
        pause_after_chapter: bool = False,
        show_notifications: bool = True,
        claimed: bool = False,
    ) -> None:
        """Replace the queue with ``chapter_ids`` and process it to the end.

        Returns when the batch completes, pauses or is stopped.

        Raises:
            BatchAlreadyRunningError: Another batch is being processed
        """
        if not claimed:
            self.claim()
        elif not self._is_processing:
            logger.info("[Batch] Stopped before novel %d started", novel_id)
            return

        try:
            await self.library.clear_queue()
            self._items = []
            rows = await self.library.enqueue_chapters(
                chapter_ids, languages.source_lang, languages.target_lang
            )
        except Exception:
            self._is_processing = False
            raise

        self._items = [QueueEntry.from_model(row) for row in rows]
        self._languages = languages
        self._novel_id = novel_id
        self._pause_requested = False
        self._pause_after_chapter = pause_after_chapter
        self._show_notifications = show_notifications
        self._state = BatchState.RUNNING

        token = CancellationToken()
        self._token = token

        logger.info(
            "[Batch] Starting novel %d: %d chapters -> %s",
            novel_id, len(rows), languages.target_code,
        )
        await self.keep_alive.start(KEEP_ALIVE_TITLE, f"0/{len(rows)} chapters")
        if show_notifications:
            await self.notifier.batch_started(novel_id, len(rows))

        await self._process_queue(token)

    def pause(self) -> None:
        """Pause before the next chapter; the chapter in flight finishes."""
        self._pause_requested = True
        logger.info("[Batch] Pause requested")

    async def resume(self, languages: Optional[BatchLanguages] = None) -> None:
        """Continue with the pending items left by a pause or a restart."""
        self._pause_requested = False
        self._pause_after_chapter = False
        if self._is_processing:
            # The running loop simply carries on
            return
        self._is_processing = True

        try:
            pending = await self.library.get_pending_queue_items()
            if pending and not self._items:
                self._items = [
                    QueueEntry.from_model(row) for row in await self.library.get_queue()
                ]
        except Exception:
            self._is_processing = False
            raise

        if not pending:
            self._is_processing = False
            logger.info("[Batch] Nothing to resume")
            return

        if languages is not None:
            self._languages = languages
        elif self._languages is None:
            first = pending[0]
            self._languages = BatchLanguages(
                source_lang=first.source_lang,
                target_lang=first.target_lang,
                target_code=self.default_target_code or first.target_lang,
            )

        self._state = BatchState.RUNNING
        token = CancellationToken()
        self._token = token

        logger.info("[Batch] Resuming with %d pending chapters", len(pending))
        await self.keep_alive.start(KEEP_ALIVE_TITLE, f"{len(pending)} chapters left")
        await self._process_queue(token)

    async def stop(self) -> None:
        """Stop the batch and drop the queue."""
        self._is_processing = False
        self._pause_requested = False
        self._pause_after_chapter = False
        self._state = BatchState.STOPPED
        self._active_chapter_id = None
        if self._token is not None:
            self._token.cancel()
            self._token = None

        await self.keep_alive.stop()
        await self.library.clear_queue()
        self._items = []
        logger.info("[Batch] Stopped")

    async def clear_queue(self) -> None:
        """Drop all queue items without touching the running state."""
        await self.library.clear_queue()
        self._items = []

    async def recover_orphans(self) -> int:
        """Reset items left ``processing`` by a crash and reload the mirror."""
        reset = await self.library.reset_processing_items()
        if reset:
            logger.warning("[Batch] Reset %d interrupted queue items to pending", reset)
        self._items = [QueueEntry.from_model(row) for row in await self.library.get_queue()]
        return reset

    # =========================================================================
    # Processing loop
    # =========================================================================

    def _superseded(self, token: CancellationToken) -> bool:
        return token.cancelled or token is not self._token or not self._is_processing

    async def _process_queue(self, token: CancellationToken) -> None:
        try:
            pending = await self.library.get_pending_queue_items()
            mirror = {entry.id: entry for entry in self._items}

            for index, row in enumerate(pending):
                if self._superseded(token):
                    return
                if self._pause_requested:
                    await self._enter_paused()
                    return

                entry = mirror.get(row.id)
                if entry is None:
                    entry = QueueEntry.from_model(row)
                    self._items.append(entry)

                await self._process_item(entry, token)

                if self._pause_after_chapter:
                    self._pause_requested = True
                is_last = index == len(pending) - 1
                if self.throttle_delay > 0 and not is_last and not self._pause_requested:
                    await asyncio.sleep(self.throttle_delay)

            if not self._superseded(token):
                await self._finish()
        except Exception:
            logger.exception("[Batch] Queue processing aborted")
            if token is self._token:
                self._is_processing = False
                self._state = BatchState.STOPPED
                self._active_chapter_id = None
                await self.keep_alive.stop()
            raise

    async def _process_item(self, entry: QueueEntry, token: CancellationToken) -> None:
        entry.status = QueueStatus.PROCESSING
        entry.error_message = None
        await self.library.update_queue_item(entry.id, QueueStatus.PROCESSING)
        self._active_chapter_id = entry.chapter_id

        try:
            chapter = await self.library.get_chapter(entry.chapter_id)
            if chapter is None:
                raise LookupError("Chapter not found")
            await self.client.translate(
                entry.chapter_id,
                entry.source_lang,
                entry.target_lang,
                self._languages.target_code,
                chapter.content,
                cancel_token=token,
            )
        except TranslationCancelledError:
            logger.info("[Batch] Chapter %d cancelled", entry.chapter_id)
            entry.status = QueueStatus.PENDING
            await self.library.update_queue_item(entry.id, QueueStatus.PENDING)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error("[Batch] Chapter %d failed: %s", entry.chapter_id, message)
            entry.status = QueueStatus.FAILED
            entry.error_message = message
            await self.library.update_queue_item(entry.id, QueueStatus.FAILED, message)
            if self._show_notifications:
                await self.notifier.chapter_failed(entry.chapter_id, message)
        else:
            entry.completed_at = await self.library.update_queue_item(
                entry.id, QueueStatus.COMPLETED
            )
            entry.status = QueueStatus.COMPLETED
            counts = self.counts()
            await self.keep_alive.update(
                KEEP_ALIVE_TITLE,
                f"{counts.completed + counts.failed}/{counts.total} chapters",
            )
            if self._show_notifications:
                await self.notifier.chapter_completed(entry.chapter_id, counts)
        finally:
            if token is self._token:
                self._active_chapter_id = None

    async def _enter_paused(self) -> None:
        self._is_processing = False
        self._state = BatchState.PAUSED
        self._active_chapter_id = None
        await self.keep_alive.stop()
        logger.info("[Batch] Paused")
        if self._show_notifications:
            await self.notifier.batch_paused(self.counts())

    async def _finish(self) -> None:
        self._is_processing = False
        self._state = BatchState.COMPLETED
        self._active_chapter_id = None
        await self.keep_alive.stop()
        counts = self.counts()
        logger.info(
            "[Batch] Finished: %d completed, %d failed of %d",
            counts.completed, counts.failed, counts.total,
        )
        if self._show_notifications:
            await self.notifier.batch_completed(counts)

"""Progress notification and keep-alive hooks used by the batch queue.

Front-ends plug in their own implementations (desktop notifications, a
mobile foreground service, server-sent events). The defaults only log.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueCounts:
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


def completion_message(counts: QueueCounts) -> str:
    if counts.failed == 0:
        return f"All {counts.completed} chapters translated"
    return (
        f"Completed: {counts.completed}/{counts.total} chapters "
        f"({counts.failed} with errors)"
    )


class Notifier(ABC):
    """Receives batch lifecycle events."""

    @abstractmethod
    async def batch_started(self, novel_id: int, total: int) -> None:
        ...

    @abstractmethod
    async def chapter_completed(self, chapter_id: int, counts: QueueCounts) -> None:
        ...

    @abstractmethod
    async def chapter_failed(self, chapter_id: int, message: str) -> None:
        ...

    @abstractmethod
    async def batch_paused(self, counts: QueueCounts) -> None:
        ...

    @abstractmethod
    async def batch_completed(self, counts: QueueCounts) -> None:
        ...


class KeepAlive(ABC):
    """Keeps the host process/app alive while a batch runs."""

    @abstractmethod
    async def start(self, title: str, body: str) -> None:
        ...

    @abstractmethod
    async def update(self, title: str, body: str) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...


class LoggingNotifier(Notifier):
    async def batch_started(self, novel_id: int, total: int) -> None:
        logger.info("[Batch] Translating %d chapters of novel %d", total, novel_id)

    async def chapter_completed(self, chapter_id: int, counts: QueueCounts) -> None:
        logger.info(
            "[Batch] Chapter %d done (%d/%d)",
            chapter_id, counts.completed + counts.failed, counts.total,
        )

    async def chapter_failed(self, chapter_id: int, message: str) -> None:
        logger.warning("[Batch] Chapter %d failed: %s", chapter_id, message)

    async def batch_paused(self, counts: QueueCounts) -> None:
        logger.info("[Batch] Paused with %d chapters pending", counts.pending)

    async def batch_completed(self, counts: QueueCounts) -> None:
        logger.info("[Batch] %s", completion_message(counts))


class NoopKeepAlive(KeepAlive):
    """Server processes stay alive on their own."""

    def __init__(self):
        self.active = False

    async def start(self, title: str, body: str) -> None:
        self.active = True
        logger.debug("[Batch] Keep-alive started: %s", title)

    async def update(self, title: str, body: str) -> None:
        logger.debug("[Batch] Keep-alive updated: %s - %s", title, body)

    async def stop(self) -> None:
        if self.active:
            logger.debug("[Batch] Keep-alive stopped")
        self.active = False

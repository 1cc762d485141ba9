"""Relational store for novels, chapters, translations, queue, bookmarks and images.

All access goes through :class:`LibraryRepository`, which opens a short-lived
session per operation. ORM objects returned from it are detached but fully
loaded (sessions are created with ``expire_on_commit=False``); relationship
attributes are not loaded and must not be touched by callers.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from novelshelf.core.importing.models import ParsedChapter
from novelshelf.models.database import (
    Bookmark,
    Chapter,
    Image,
    Novel,
    QueueItem,
    QueueStatus,
    TranslationCacheEntry,
)

logger = logging.getLogger(__name__)

# Upper bound on slug-2, slug-3, ... attempts before giving up
MAX_SLUG_ATTEMPTS = 1000
# Inserts retried after losing a slug race
MAX_INSERT_RETRIES = 5


class LibraryRepository:
    """CRUD operations over the library database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    # =========================================================================
    # Novels
    # =========================================================================

    async def list_novels(self) -> list[Novel]:
        """All novels, most recently imported first."""
        async with self._session_maker() as db:
            result = await db.execute(
                select(Novel).order_by(Novel.created_at.desc(), Novel.id.desc())
            )
            return list(result.scalars().all())

    async def get_novel(self, novel_id: int) -> Optional[Novel]:
        async with self._session_maker() as db:
            return await db.get(Novel, novel_id)

    async def get_novel_by_slug(self, slug: str) -> Optional[Novel]:
        async with self._session_maker() as db:
            result = await db.execute(select(Novel).where(Novel.slug == slug))
            return result.scalar_one_or_none()

    async def find_free_slug(self, slug: str) -> str:
        """First of ``slug``, ``slug-2``, ``slug-3``... not used by any novel."""
        for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
            candidate = slug if attempt == 1 else f"{slug}-{attempt}"
            if await self.get_novel_by_slug(candidate) is None:
                return candidate
        raise RuntimeError(f"Could not find a free slug for '{slug}'")

    async def create_novel(
        self,
        title: str,
        slug: str,
        cover_image_path: Optional[str] = None,
        author: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Novel:
        """Insert a novel, resolving slug collisions as ``slug-2``, ``slug-3``...

        The unique constraint on ``slug`` is the final arbiter: a candidate
        that loses a race is retried with the next suffix.
        """
        for _ in range(MAX_INSERT_RETRIES):
            candidate = await self.find_free_slug(slug)
            novel = Novel(
                title=title,
                slug=candidate,
                cover_image_path=cover_image_path,
                author=author,
                description=description,
                chapter_count=0,
            )
            async with self._session_maker() as db:
                db.add(novel)
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    logger.info("[Library] Slug %s taken concurrently, retrying", candidate)
                    continue
                await db.refresh(novel)

            if candidate != slug:
                logger.info("[Library] Slug %s already used, stored as %s", slug, candidate)
            return novel

        raise RuntimeError(f"Could not store novel with slug '{slug}'")

    async def delete_novel(self, novel_id: int) -> Optional[Novel]:
        """Delete a novel and (through FK cascades) everything it owns.

        Returns the deleted row so the caller can clean up file storage.
        """
        async with self._session_maker() as db:
            novel = await db.get(Novel, novel_id)
            if novel is None:
                return None
            await db.execute(delete(Novel).where(Novel.id == novel_id))
            await db.commit()
            return novel

    async def update_chapter_count(self, novel_id: int) -> int:
        """Recompute ``chapter_count`` from the chapters table."""
        async with self._session_maker() as db:
            count = await db.scalar(
                select(func.count(Chapter.id)).where(Chapter.novel_id == novel_id)
            )
            await db.execute(
                update(Novel)
                .where(Novel.id == novel_id)
                .values(chapter_count=count or 0, updated_at=datetime.utcnow())
            )
            await db.commit()
            return count or 0

    async def set_cover_image_path(
        self, novel_id: int, cover_image_path: Optional[str]
    ) -> None:
        async with self._session_maker() as db:
            await db.execute(
                update(Novel)
                .where(Novel.id == novel_id)
                .values(cover_image_path=cover_image_path, updated_at=datetime.utcnow())
            )
            await db.commit()

    # =========================================================================
    # Chapters
    # =========================================================================

    async def get_chapters(self, novel_id: int) -> list[Chapter]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(Chapter)
                .where(Chapter.novel_id == novel_id)
                .order_by(Chapter.chapter_number)
            )
            return list(result.scalars().all())

    async def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        async with self._session_maker() as db:
            return await db.get(Chapter, chapter_id)

    async def get_chapter_by_number(
        self, novel_id: int, chapter_number: int
    ) -> Optional[Chapter]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(Chapter).where(
                    Chapter.novel_id == novel_id,
                    Chapter.chapter_number == chapter_number,
                )
            )
            return result.scalar_one_or_none()

    async def create_chapter(
        self,
        novel_id: int,
        chapter_number: int,
        content: str,
        title: Optional[str] = None,
    ) -> Chapter:
        chapter = Chapter(
            novel_id=novel_id,
            chapter_number=chapter_number,
            title=title,
            content=content,
        )
        async with self._session_maker() as db:
            db.add(chapter)
            await db.commit()
            await db.refresh(chapter)
        return chapter

    async def create_chapters(
        self, novel_id: int, chapters: Sequence[ParsedChapter]
    ) -> list[Chapter]:
        """Insert parsed chapters in order, in a single transaction."""
        rows = [
            Chapter(
                novel_id=novel_id,
                chapter_number=parsed.number,
                title=parsed.title,
                content=parsed.content,
            )
            for parsed in chapters
        ]
        async with self._session_maker() as db:
            db.add_all(rows)
            await db.commit()
        return rows

    # =========================================================================
    # Translation cache
    # =========================================================================

    async def get_cached_translation(
        self, chapter_id: int, target_code: str
    ) -> Optional[TranslationCacheEntry]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(TranslationCacheEntry)
                .where(
                    TranslationCacheEntry.chapter_id == chapter_id,
                    TranslationCacheEntry.target_code == target_code,
                )
                .order_by(TranslationCacheEntry.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def save_cached_translation(
        self,
        chapter_id: int,
        source_lang: str,
        target_lang: str,
        target_code: str,
        translated_content: str,
    ) -> TranslationCacheEntry:
        """Insert or replace the translation for (chapter, source, target code).

        A single upsert statement, so concurrent writers of the same chapter
        never collide on the unique constraint; the last one wins.
        """
        now = datetime.utcnow()
        statement = sqlite_insert(TranslationCacheEntry).values(
            chapter_id=chapter_id,
            source_lang=source_lang,
            target_lang=target_lang,
            target_code=target_code,
            translated_content=translated_content,
            created_at=now,
        )
        statement = statement.on_conflict_do_update(
            index_elements=["chapter_id", "source_lang", "target_code"],
            set_={
                "target_lang": statement.excluded.target_lang,
                "translated_content": statement.excluded.translated_content,
                "created_at": statement.excluded.created_at,
            },
        )
        async with self._session_maker() as db:
            await db.execute(statement)
            await db.commit()
            result = await db.execute(
                select(TranslationCacheEntry).where(
                    TranslationCacheEntry.chapter_id == chapter_id,
                    TranslationCacheEntry.source_lang == source_lang,
                    TranslationCacheEntry.target_code == target_code,
                )
            )
            return result.scalar_one()

    async def get_translated_chapter_ids(
        self, novel_id: int, target_code: str
    ) -> set[int]:
        """Ids of the novel's chapters that already have a cached translation."""
        async with self._session_maker() as db:
            result = await db.execute(
                select(TranslationCacheEntry.chapter_id)
                .join(Chapter, Chapter.id == TranslationCacheEntry.chapter_id)
                .where(
                    Chapter.novel_id == novel_id,
                    TranslationCacheEntry.target_code == target_code,
                )
            )
            return set(result.scalars().all())

    async def count_cached_translations(self) -> int:
        async with self._session_maker() as db:
            return await db.scalar(select(func.count(TranslationCacheEntry.id))) or 0

    async def clear_translation_cache(self) -> int:
        async with self._session_maker() as db:
            result = await db.execute(delete(TranslationCacheEntry))
            await db.commit()
            return result.rowcount or 0

    # =========================================================================
    # Translation queue
    # =========================================================================

    async def get_queue(self) -> list[QueueItem]:
        """All queue items in FIFO order."""
        async with self._session_maker() as db:
            result = await db.execute(
                select(QueueItem).order_by(QueueItem.created_at, QueueItem.id)
            )
            return list(result.scalars().all())

    async def get_pending_queue_items(self) -> list[QueueItem]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(QueueItem)
                .where(QueueItem.status == QueueStatus.PENDING.value)
                .order_by(QueueItem.created_at, QueueItem.id)
            )
            return list(result.scalars().all())

    async def enqueue_chapters(
        self, chapter_ids: Iterable[int], source_lang: str, target_lang: str
    ) -> list[QueueItem]:
        """Add one pending item per chapter id, preserving the given order."""
        items = [
            QueueItem(
                chapter_id=chapter_id,
                source_lang=source_lang,
                target_lang=target_lang,
                status=QueueStatus.PENDING.value,
                error_message=None,
                completed_at=None,
            )
            for chapter_id in chapter_ids
        ]
        async with self._session_maker() as db:
            db.add_all(items)
            await db.commit()
        return items

    async def update_queue_item(
        self,
        item_id: int,
        status: QueueStatus,
        error_message: Optional[str] = None,
    ) -> Optional[datetime]:
        """Set an item's status; returns ``completed_at`` when it was stamped."""
        values = {"status": status.value, "error_message": error_message}
        completed_at = None
        if status == QueueStatus.COMPLETED:
            completed_at = datetime.utcnow()
            values["completed_at"] = completed_at

        async with self._session_maker() as db:
            await db.execute(
                update(QueueItem).where(QueueItem.id == item_id).values(**values)
            )
            await db.commit()
        return completed_at

    async def clear_queue(self) -> None:
        async with self._session_maker() as db:
            await db.execute(delete(QueueItem))
            await db.commit()

    async def reset_processing_items(self) -> int:
        """Return items stuck in ``processing`` to ``pending``."""
        async with self._session_maker() as db:
            result = await db.execute(
                update(QueueItem)
                .where(QueueItem.status == QueueStatus.PROCESSING.value)
                .values(status=QueueStatus.PENDING.value, error_message=None)
            )
            await db.commit()
            return result.rowcount or 0

    # =========================================================================
    # Bookmarks
    # =========================================================================

    async def get_bookmark(self, novel_id: int) -> Optional[Bookmark]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(Bookmark).where(Bookmark.novel_id == novel_id)
            )
            return result.scalar_one_or_none()

    async def get_all_bookmarks(self) -> list[Bookmark]:
        async with self._session_maker() as db:
            result = await db.execute(select(Bookmark))
            return list(result.scalars().all())

    async def set_bookmark(self, novel_id: int, chapter_number: int) -> Bookmark:
        async with self._session_maker() as db:
            result = await db.execute(
                select(Bookmark).where(Bookmark.novel_id == novel_id)
            )
            bookmark = result.scalar_one_or_none()
            if bookmark is None:
                bookmark = Bookmark(novel_id=novel_id, chapter_number=chapter_number)
                db.add(bookmark)
            else:
                bookmark.chapter_number = chapter_number
            await db.commit()
            await db.refresh(bookmark)
            return bookmark

    async def remove_bookmark(self, novel_id: int) -> bool:
        async with self._session_maker() as db:
            result = await db.execute(
                delete(Bookmark).where(Bookmark.novel_id == novel_id)
            )
            await db.commit()
            return bool(result.rowcount)

    # =========================================================================
    # Images
    # =========================================================================

    async def add_image(
        self,
        novel_id: int,
        filename: str,
        file_path: str,
        is_cover: bool = False,
        chapter_id: Optional[int] = None,
    ) -> Image:
        image = Image(
            novel_id=novel_id,
            chapter_id=chapter_id,
            filename=filename,
            file_path=file_path,
            is_cover=is_cover,
        )
        async with self._session_maker() as db:
            db.add(image)
            await db.commit()
            await db.refresh(image)
        return image

    async def get_novel_images(self, novel_id: int) -> list[Image]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(Image).where(Image.novel_id == novel_id).order_by(Image.id)
            )
            return list(result.scalars().all())

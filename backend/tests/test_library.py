# tests/test_library.py
import asyncio

import pytest

from novelshelf.core.importing.models import ParsedChapter
from novelshelf.models.database import QueueStatus


def run(coro):
    return asyncio.run(coro)


# ------------------------------------------------------------------
# Novels
# ------------------------------------------------------------------

class TestNovels:

    def test_slug_collisions_get_numeric_suffix(self, library):
        async def create_three():
            return [
                (await library.create_novel(f"Book {n}", "book")).slug
                for n in range(3)
            ]

        assert run(create_three()) == ["book", "book-2", "book-3"]

    def test_find_free_slug(self, library, novel_with_chapters):
        assert run(library.find_free_slug("test-novel")) == "test-novel-2"
        assert run(library.find_free_slug("other")) == "other"

    def test_list_newest_first(self, library):
        async def scenario():
            await library.create_novel("First", "first")
            await library.create_novel("Second", "second")
            return [n.slug for n in await library.list_novels()]

        assert run(scenario()) == ["second", "first"]

    def test_chapter_count(self, library, novel_with_chapters):
        novel, _ = novel_with_chapters
        assert run(library.get_novel(novel.id)).chapter_count == 3

    def test_delete_cascades(self, library, novel_with_chapters):
        novel, chapters = novel_with_chapters

        async def scenario():
            await library.save_cached_translation(chapters[0].id, "en", "ru", "ru", "Текст")
            await library.enqueue_chapters([chapters[1].id], "en", "ru")
            await library.set_bookmark(novel.id, 2)
            await library.add_image(novel.id, "a.png", "/tmp/a.png")

            deleted = await library.delete_novel(novel.id)
            return (
                deleted,
                await library.get_chapters(novel.id),
                await library.count_cached_translations(),
                await library.get_queue(),
                await library.get_bookmark(novel.id),
                await library.get_novel_images(novel.id),
            )

        deleted, chapters_left, cached, queue, bookmark, images = run(scenario())
        assert deleted.slug == "test-novel"
        assert chapters_left == []
        assert cached == 0
        assert queue == []
        assert bookmark is None
        assert images == []

    def test_delete_unknown_novel(self, library):
        assert run(library.delete_novel(999)) is None


# ------------------------------------------------------------------
# Chapters
# ------------------------------------------------------------------

class TestChapters:

    def test_create_chapters_in_order(self, library):
        async def scenario():
            novel = await library.create_novel("N", "n")
            parsed = [ParsedChapter(number=i, title=f"T{i}", content=f"C{i}") for i in (1, 2)]
            rows = await library.create_chapters(novel.id, parsed)
            return rows, await library.get_chapters(novel.id)

        rows, stored = run(scenario())
        assert all(row.id is not None for row in rows)
        assert [(c.chapter_number, c.title, c.content) for c in stored] == [
            (1, "T1", "C1"),
            (2, "T2", "C2"),
        ]

    def test_get_by_number(self, library, novel_with_chapters):
        novel, chapters = novel_with_chapters
        assert run(library.get_chapter_by_number(novel.id, 2)).id == chapters[1].id
        assert run(library.get_chapter_by_number(novel.id, 9)) is None


# ------------------------------------------------------------------
# Translation cache
# ------------------------------------------------------------------

class TestTranslationCache:

    def test_save_replaces_existing_entry(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        chapter_id = chapters[0].id

        async def scenario():
            await library.save_cached_translation(chapter_id, "en", "Russian", "ru", "old")
            await library.save_cached_translation(chapter_id, "en", "Russian", "ru", "new")
            return (
                await library.get_cached_translation(chapter_id, "ru"),
                await library.count_cached_translations(),
            )

        entry, count = run(scenario())
        assert entry.translated_content == "new"
        assert count == 1

    def test_concurrent_saves_of_same_chapter(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        chapter_id = chapters[0].id

        async def scenario():
            saved = await asyncio.gather(
                library.save_cached_translation(chapter_id, "en", "Russian", "ru", "one"),
                library.save_cached_translation(chapter_id, "en", "Russian", "ru", "two"),
            )
            return (
                saved,
                await library.get_cached_translation(chapter_id, "ru"),
                await library.count_cached_translations(),
            )

        saved, entry, count = run(scenario())
        assert saved[0].id == saved[1].id == entry.id
        assert entry.translated_content in ("one", "two")
        assert count == 1

    def test_lookup_is_per_target_code(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        run(library.save_cached_translation(chapters[0].id, "en", "German", "de", "Hallo"))
        assert run(library.get_cached_translation(chapters[0].id, "ru")) is None
        assert run(library.get_cached_translation(chapters[0].id, "de")).translated_content == "Hallo"

    def test_translated_chapter_ids(self, library, novel_with_chapters):
        novel, chapters = novel_with_chapters
        run(library.save_cached_translation(chapters[2].id, "en", "Russian", "ru", "x"))
        assert run(library.get_translated_chapter_ids(novel.id, "ru")) == {chapters[2].id}
        assert run(library.get_translated_chapter_ids(novel.id, "de")) == set()

    def test_clear(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        for chapter in chapters:
            run(library.save_cached_translation(chapter.id, "en", "Russian", "ru", "x"))
        assert run(library.clear_translation_cache()) == 3
        assert run(library.count_cached_translations()) == 0


# ------------------------------------------------------------------
# Queue
# ------------------------------------------------------------------

class TestQueue:

    def test_enqueue_preserves_order(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        ids = [chapters[2].id, chapters[0].id, chapters[1].id]
        run(library.enqueue_chapters(ids, "English", "Russian"))

        queue = run(library.get_queue())
        assert [item.chapter_id for item in queue] == ids
        assert all(item.status == QueueStatus.PENDING.value for item in queue)
        assert all(item.completed_at is None for item in queue)

    def test_update_status(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        first, second = run(library.enqueue_chapters([c.id for c in chapters[:2]], "en", "ru"))

        completed_at = run(library.update_queue_item(first.id, QueueStatus.COMPLETED))
        assert completed_at is not None
        assert run(library.update_queue_item(second.id, QueueStatus.FAILED, "boom")) is None

        queue = {item.id: item for item in run(library.get_queue())}
        assert queue[first.id].status == "completed"
        assert queue[first.id].completed_at is not None
        assert queue[second.id].status == "failed"
        assert queue[second.id].error_message == "boom"
        assert [i.id for i in run(library.get_pending_queue_items())] == []

    def test_reset_processing_items(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        items = run(library.enqueue_chapters([c.id for c in chapters], "en", "ru"))
        run(library.update_queue_item(items[0].id, QueueStatus.PROCESSING))
        run(library.update_queue_item(items[1].id, QueueStatus.COMPLETED))

        assert run(library.reset_processing_items()) == 1
        pending = run(library.get_pending_queue_items())
        assert [i.id for i in pending] == [items[0].id, items[2].id]

    def test_clear_queue(self, library, novel_with_chapters):
        _, chapters = novel_with_chapters
        run(library.enqueue_chapters([c.id for c in chapters], "en", "ru"))
        run(library.clear_queue())
        assert run(library.get_queue()) == []


# ------------------------------------------------------------------
# Bookmarks
# ------------------------------------------------------------------

class TestBookmarks:

    def test_set_then_move(self, library, novel_with_chapters):
        novel, _ = novel_with_chapters
        run(library.set_bookmark(novel.id, 1))
        run(library.set_bookmark(novel.id, 3))

        assert run(library.get_bookmark(novel.id)).chapter_number == 3
        assert len(run(library.get_all_bookmarks())) == 1

    def test_remove(self, library, novel_with_chapters):
        novel, _ = novel_with_chapters
        run(library.set_bookmark(novel.id, 2))
        assert run(library.remove_bookmark(novel.id)) is True
        assert run(library.remove_bookmark(novel.id)) is False
        assert run(library.get_bookmark(novel.id)) is None


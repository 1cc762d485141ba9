"""Import orchestrator: book file -> stored novel, chapters and images."""

import asyncio
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from novelshelf.core.importing.models import (
    FileTooLargeError,
    ImportProgress,
    ParsedImage,
    ParsedNovel,
    ProgressCallback,
)
from novelshelf.core.importing.parsers import get_parser_for_filename
from novelshelf.core.importing.slug import create_slug
from novelshelf.core.library import LibraryRepository
from novelshelf.core.novel_storage import NovelStorage
from novelshelf.models.database import Novel

logger = logging.getLogger(__name__)

# Overall progress milestones; parser progress is mapped into 10-70
PARSE_START = 10
PARSE_SPAN = 60


@dataclass
class ImportResult:
    novel_id: int
    title: str
    slug: str
    chapter_count: int
    image_count: int
    cover_path: Optional[str] = None


class ImportOrchestrator:
    """Run a full import: parse, store the cover, persist rows, store images."""

    def __init__(
        self,
        library: LibraryRepository,
        storage: NovelStorage,
        max_file_size_mb: Optional[int] = None,
    ):
        self.library = library
        self.storage = storage
        self.max_file_size_mb = max_file_size_mb

    async def import_file(
        self,
        file_path: Union[str, Path],
        original_filename: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Import one book file.

        Args:
            file_path: Location of the uploaded file
            original_filename: Name used to pick the parser (defaults to the
                file's own name; uploads are often stored under temp names)
            on_progress: Receives overall progress (0-100) with a step label
                in ``current_file``

        Returns:
            ImportResult describing the stored novel

        Raises:
            UnsupportedFormatError: No parser for the extension
            FileTooLargeError: The file exceeds ``max_file_size_mb``
            NovelImportError: The parser rejected the file (propagated unchanged)
        """
        path = Path(file_path)
        filename = original_filename or path.name

        def report(percentage: float, step: str) -> None:
            if on_progress is not None:
                on_progress(ImportProgress(
                    processed_bytes=int(percentage),
                    total_bytes=100,
                    percentage=percentage,
                    current_file=step,
                ))

        parser = get_parser_for_filename(filename)
        await self._check_size(path)

        report(PARSE_START, f"Parsing {parser.format_name}...")
        novel = await parser.parse(
            path,
            on_progress=lambda p: report(
                PARSE_START + p.percentage * PARSE_SPAN / 100,
                p.current_file or f"Parsing {parser.format_name}...",
            ),
        )
        logger.info(
            "[Import] %s parsed: '%s', %d chapters, %d images",
            filename, novel.metadata.title, len(novel.chapters), len(novel.images),
        )

        report(70, "Preparing data...")
        slug = await self.library.find_free_slug(create_slug(novel.metadata.title))

        report(75, "Saving cover...")
        cover = novel.find_cover()
        cover_path = await self._save_cover(cover, slug)

        report(80, "Creating database record...")
        record = await self.library.create_novel(
            title=novel.metadata.title,
            slug=slug,
            cover_image_path=cover_path,
            author=novel.metadata.author,
            description=novel.metadata.description,
        )
        try:
            if record.slug != slug:
                cover_path = await self._move_cover(cover, cover_path, slug, record)

            if cover_path is not None:
                await self.library.add_image(
                    record.id, cover.filename, cover_path, is_cover=True
                )

            report(85, f"Saving chapters ({len(novel.chapters)})...")
            await self.library.create_chapters(record.id, novel.chapters)
            chapter_count = await self.library.update_chapter_count(record.id)

            report(95, "Saving illustrations...")
            image_count = await self._save_images(novel, cover, record.id, record.slug)
        except Exception:
            logger.error("[Import] Failed to store '%s', rolling back", record.title)
            await self.library.delete_novel(record.id)
            await asyncio.to_thread(self.storage.delete_novel, record.slug)
            raise

        report(100, "Done")
        logger.info(
            "[Import] Stored novel %d (%s): %d chapters, %d images",
            record.id, record.slug, chapter_count, image_count,
        )
        return ImportResult(
            novel_id=record.id,
            title=record.title,
            slug=record.slug,
            chapter_count=chapter_count,
            image_count=image_count,
            cover_path=cover_path,
        )

    async def _check_size(self, path: Path) -> None:
        if not self.max_file_size_mb:
            return
        size = (await asyncio.to_thread(path.stat)).st_size
        if size > self.max_file_size_mb * 1024 * 1024:
            raise FileTooLargeError(
                f"File is too large ({size / (1024 * 1024):.1f} MB). "
                f"Maximum size is {self.max_file_size_mb} MB"
            )

    async def _save_cover(self, cover: Optional[ParsedImage], slug: str) -> Optional[str]:
        if cover is None:
            return None
        try:
            return await asyncio.to_thread(
                self.storage.save_image, cover.data, cover.filename, slug
            )
        except (binascii.Error, ValueError, OSError) as e:
            logger.error("[Import] Failed to save cover %s: %s", cover.filename, e)
            return None

    async def _move_cover(
        self,
        cover: Optional[ParsedImage],
        cover_path: Optional[str],
        old_slug: str,
        record: Novel,
    ) -> Optional[str]:
        """Re-home a cover written before the novel row claimed a different slug."""
        logger.warning(
            "[Import] Slug changed from %s to %s while importing", old_slug, record.slug
        )
        if cover_path is None:
            return None
        # The file under old_slug is left alone: that folder now belongs to another novel
        new_path = await self._save_cover(cover, record.slug)
        await self.library.set_cover_image_path(record.id, new_path)
        return new_path

    async def _save_images(
        self,
        novel: ParsedNovel,
        cover: Optional[ParsedImage],
        novel_id: int,
        slug: str,
    ) -> int:
        saved = 0
        for image in novel.images:
            if image is cover:
                continue
            try:
                file_path = await asyncio.to_thread(
                    self.storage.save_image, image.data, image.filename, slug
                )
            except (binascii.Error, ValueError, OSError) as e:
                logger.warning("[Import] Skipping image %s: %s", image.filename, e)
                continue
            await self.library.add_image(novel_id, image.filename, file_path)
            saved += 1
        return saved

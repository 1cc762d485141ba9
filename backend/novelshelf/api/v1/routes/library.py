"""Library API routes: novels, chapters and bookmarks."""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from novelshelf.api.dependencies import Library, Storage, ValidatedNovel
from novelshelf.config import settings
from novelshelf.models.database import Novel

logger = logging.getLogger(__name__)

router = APIRouter()


class BookmarkRequest(BaseModel):
    """Reading position to remember."""
    chapter_number: int = Field(ge=1)


def _novel_summary(novel: Novel) -> dict:
    return {
        "id": novel.id,
        "title": novel.title,
        "slug": novel.slug,
        "author": novel.author,
        "cover_image_path": novel.cover_image_path,
        "chapter_count": novel.chapter_count,
        "created_at": novel.created_at.isoformat() if novel.created_at else None,
    }


@router.get("/novels")
async def list_novels(library: Library):
    """List all novels, newest first, with their bookmarks."""
    novels = await library.list_novels()
    bookmarks = {b.novel_id: b.chapter_number for b in await library.get_all_bookmarks()}
    return [
        {**_novel_summary(novel), "bookmark": bookmarks.get(novel.id)}
        for novel in novels
    ]


@router.get("/novels/{novel_id}")
async def get_novel(novel: ValidatedNovel, library: Library, storage: Storage):
    """Novel details."""
    bookmark = await library.get_bookmark(novel.id)
    images = await library.get_novel_images(novel.id)
    size = await asyncio.to_thread(storage.get_novel_size, novel.slug)
    return {
        **_novel_summary(novel),
        "description": novel.description,
        "bookmark": bookmark.chapter_number if bookmark else None,
        "image_count": len(images),
        "storage_bytes": size,
    }


@router.delete("/novels/{novel_id}")
async def delete_novel(novel: ValidatedNovel, library: Library, storage: Storage):
    """Delete a novel with its chapters, translations, images and files."""
    await library.delete_novel(novel.id)
    await asyncio.to_thread(storage.delete_novel, novel.slug)
    logger.info("Deleted novel %d (%s)", novel.id, novel.slug)
    return {"status": "deleted"}


@router.get("/novels/{novel_id}/chapters")
async def list_chapters(
    novel: ValidatedNovel,
    library: Library,
    target_code: str = Query(default=settings.target_code),
):
    """Chapter list with a flag telling which chapters are already translated."""
    chapters = await library.get_chapters(novel.id)
    translated = await library.get_translated_chapter_ids(novel.id, target_code)
    return [
        {
            "id": chapter.id,
            "chapter_number": chapter.chapter_number,
            "title": chapter.title,
            "length": len(chapter.content),
            "translated": chapter.id in translated,
        }
        for chapter in chapters
    ]


@router.get("/novels/{novel_id}/chapters/{chapter_number}")
async def get_chapter(
    novel: ValidatedNovel,
    chapter_number: int,
    library: Library,
    target_code: str = Query(default=settings.target_code),
):
    """Chapter text, with the cached translation when there is one."""
    chapter = await library.get_chapter_by_number(novel.id, chapter_number)
    if chapter is None:
        raise HTTPException(status_code=404, detail="Chapter not found")
    cached = await library.get_cached_translation(chapter.id, target_code)
    return {
        "id": chapter.id,
        "novel_id": novel.id,
        "chapter_number": chapter.chapter_number,
        "title": chapter.title,
        "content": chapter.content,
        "translation": cached.translated_content if cached else None,
    }


@router.put("/novels/{novel_id}/bookmark")
async def set_bookmark(novel: ValidatedNovel, request: BookmarkRequest, library: Library):
    """Remember the last chapter read."""
    bookmark = await library.set_bookmark(novel.id, request.chapter_number)
    return {"novel_id": novel.id, "chapter_number": bookmark.chapter_number}


@router.delete("/novels/{novel_id}/bookmark")
async def remove_bookmark(novel: ValidatedNovel, library: Library):
    removed = await library.remove_bookmark(novel.id)
    return {"removed": removed}

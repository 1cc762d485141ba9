"""Batch translation API routes."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel

from novelshelf.api.dependencies import BatchManager, Library
from novelshelf.config import settings
from novelshelf.core.library import LibraryRepository
from novelshelf.core.translation.queue import BatchAlreadyRunningError, BatchLanguages

logger = logging.getLogger(__name__)

router = APIRouter()


class StartBatchRequest(BaseModel):
    """Request to translate several chapters of a novel."""
    novel_id: int
    # None = every chapter not yet translated
    chapter_ids: Optional[list[int]] = None
    source_lang: Optional[str] = None
    target_lang: Optional[str] = None
    target_code: Optional[str] = None
    pause_after_chapter: bool = False
    show_notifications: bool = True


@router.post("/batch/start")
async def start_batch(
    request: StartBatchRequest,
    background_tasks: BackgroundTasks,
    manager: BatchManager,
    library: Library,
):
    """Queue chapters and translate them in the background."""
    try:
        manager.claim()
    except BatchAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    try:
        chapter_ids, languages = await _select_chapters(request, library)
    except BaseException:
        manager.release()
        raise

    if not chapter_ids:
        manager.release()
        return {"status": "nothing_to_do", "queued": 0}

    logger.info(
        "[Batch API] Starting batch: novel=%d chapters=%d target=%s",
        request.novel_id, len(chapter_ids), languages.target_code,
    )
    background_tasks.add_task(
        manager.start,
        novel_id=request.novel_id,
        chapter_ids=chapter_ids,
        languages=languages,
        pause_after_chapter=request.pause_after_chapter,
        show_notifications=request.show_notifications,
        claimed=True,
    )
    return {"status": "started", "queued": len(chapter_ids)}


async def _select_chapters(
    request: StartBatchRequest, library: LibraryRepository
) -> tuple[list[int], BatchLanguages]:
    """Validate the request and resolve the chapters to translate."""
    novel = await library.get_novel(request.novel_id)
    if novel is None:
        raise HTTPException(status_code=404, detail="Novel not found")

    languages = BatchLanguages(
        source_lang=request.source_lang or settings.source_language,
        target_lang=request.target_lang or settings.target_language,
        target_code=request.target_code or settings.target_code,
    )

    chapters = await library.get_chapters(novel.id)
    if request.chapter_ids is not None:
        known = {chapter.id for chapter in chapters}
        unknown = [cid for cid in request.chapter_ids if cid not in known]
        if unknown:
            raise HTTPException(
                status_code=400,
                detail=f"Chapters not in novel {novel.id}: {unknown}",
            )
        chapter_ids = request.chapter_ids
    else:
        done = await library.get_translated_chapter_ids(novel.id, languages.target_code)
        chapter_ids = [chapter.id for chapter in chapters if chapter.id not in done]
    return chapter_ids, languages


@router.post("/batch/pause")
async def pause_batch(manager: BatchManager):
    if not manager.is_processing:
        raise HTTPException(status_code=400, detail="Translation is not running")
    manager.pause()
    return {"status": "pausing"}


@router.post("/batch/resume")
async def resume_batch(background_tasks: BackgroundTasks, manager: BatchManager):
    """Continue a paused (or interrupted) batch in the background."""
    background_tasks.add_task(manager.resume)
    return {"status": "resuming"}


@router.post("/batch/stop")
async def stop_batch(manager: BatchManager):
    await manager.stop()
    return {"status": "stopped"}


@router.delete("/batch/queue")
async def clear_queue(manager: BatchManager):
    await manager.clear_queue()
    return {"status": "cleared"}


@router.get("/batch/status")
async def get_batch_status(manager: BatchManager):
    """Queue counters and per-item state."""
    return {
        "state": manager.state.value,
        "is_processing": manager.is_processing,
        "novel_id": manager.novel_id,
        "active_chapter_id": manager.active_chapter_id,
        "counts": asdict(manager.counts()),
        "items": [
            {
                "id": entry.id,
                "chapter_id": entry.chapter_id,
                "status": entry.status.value,
                "error_message": entry.error_message,
                "completed_at": entry.completed_at.isoformat() if entry.completed_at else None,
            }
            for entry in manager.items
        ],
    }

"""Single-chapter translation API routes."""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from novelshelf.api.dependencies import Library, Translator
from novelshelf.config import settings
from novelshelf.core.llm.client import TranslationError

logger = logging.getLogger(__name__)

router = APIRouter()


class TranslateChapterRequest(BaseModel):
    """Languages for a chapter translation (defaults from settings)."""
    source_lang: Optional[str] = None
    target_lang: Optional[str] = None
    target_code: Optional[str] = None


class TranslationSettingsRequest(BaseModel):
    """Runtime changes to the translation endpoint."""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    instruction: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/translation/chapters/{chapter_id}")
async def translate_chapter(
    chapter_id: int,
    request: TranslateChapterRequest,
    library: Library,
    client: Translator,
):
    """Translate one chapter, streaming the growing text as server-sent events.

    Each event carries ``{"text": <translation so far>}``; the last one adds
    ``"done": true`` (or carries ``"error"``).
    """
    chapter = await library.get_chapter(chapter_id)
    if chapter is None:
        raise HTTPException(status_code=404, detail="Chapter not found")

    source_lang = request.source_lang or settings.source_language
    target_lang = request.target_lang or settings.target_language
    target_code = request.target_code or settings.target_code

    events: asyncio.Queue = asyncio.Queue()

    async def run() -> None:
        try:
            text = await client.translate(
                chapter.id, source_lang, target_lang, target_code, chapter.content,
                on_chunk=lambda partial: events.put_nowait({"text": partial}),
            )
            events.put_nowait({"text": text, "done": True})
        except TranslationError as e:
            events.put_nowait({"error": str(e), "done": True})
        except Exception as e:
            logger.exception("[Translation API] Chapter %d failed", chapter.id)
            events.put_nowait({"error": str(e) or "Translation failed", "done": True})

    task = asyncio.create_task(run())

    async def stream():
        try:
            while True:
                event = await events.get()
                yield _sse(event)
                if event.get("done"):
                    break
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(stream(), media_type="text/event-stream")


@router.get("/translation/cache")
async def get_cache_size(client: Translator):
    return {"entries": await client.cache_size()}


@router.delete("/translation/cache")
async def clear_cache(client: Translator):
    """Delete all cached translations."""
    return {"removed": await client.clear_cache()}


@router.get("/translation/check")
async def check_connection(client: Translator):
    """Verify that the configured endpoint, key and model work."""
    ok = await client.check_connection()
    return {"ok": ok, "base_url": client.config.base_url, "model": client.config.model}


@router.put("/translation/settings")
async def update_settings(request: TranslationSettingsRequest, client: Translator):
    config = client.update_config(**request.model_dump(exclude_none=True))
    return {
        "base_url": config.base_url,
        "model": config.model,
        "has_api_key": bool(config.api_key),
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
    }

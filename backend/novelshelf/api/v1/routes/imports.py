"""Import API routes."""

import asyncio
import logging
import re
import uuid
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile

from novelshelf.api.dependencies import Importer
from novelshelf.config import settings
from novelshelf.core.importing.models import (
    FileTooLargeError,
    NovelImportError,
    UnsupportedFormatError,
)
from novelshelf.core.importing.parsers import SUPPORTED_EXTENSIONS

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_CHUNK_SIZE = 1024 * 1024


def secure_filename(filename: str) -> str:
    """Sanitize an uploaded filename.

    - Keeps only the last path component
    - Replaces characters other than word characters, dash and dot
    - Falls back to a random name when nothing is left
    """
    filename = Path(filename.replace("\\", "/")).name
    filename = re.sub(r"[^\w\-.]", "_", filename)
    filename = filename.strip(". ")

    max_length = 200
    if len(filename) > max_length:
        suffix = Path(filename).suffix[:10]
        filename = f"{Path(filename).stem[:max_length - 10]}{suffix}"

    if not filename or filename.startswith("."):
        filename = f"upload_{uuid.uuid4().hex[:8]}"
    return filename


def _save_upload_file_with_limit(file_obj, dest_path: Path, max_size: int) -> None:
    """Copy the upload to disk, enforcing the size limit while reading.

    Clients may lie about Content-Length, so the limit is checked on the
    bytes actually received.
    """
    total_read = 0
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    with open(dest_path, "wb") as buffer:
        while True:
            chunk = file_obj.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            total_read += len(chunk)
            if total_read > max_size:
                buffer.close()
                dest_path.unlink(missing_ok=True)
                raise FileTooLargeError(
                    f"File exceeds maximum size of {max_size // (1024 * 1024)}MB"
                )
            buffer.write(chunk)


@router.post("/imports")
async def import_novel(importer: Importer, file: UploadFile = File(...)):
    """Upload a FB2, EPUB, ZIP or TXT book and add it to the library."""
    if not file.filename or not file.filename.lower().endswith(SUPPORTED_EXTENSIONS):
        raise HTTPException(
            status_code=400,
            detail=f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}",
        )

    max_size = settings.max_upload_size_mb * 1024 * 1024
    if file.size and file.size > max_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
        )

    safe_filename = secure_filename(file.filename)
    temp_path = settings.upload_dir / f"temp_{uuid.uuid4().hex[:8]}_{safe_filename}"
    loop = asyncio.get_running_loop()

    try:
        await loop.run_in_executor(
            None, _save_upload_file_with_limit, file.file, temp_path, max_size
        )
        result = await importer.import_file(temp_path, original_filename=file.filename)
    except FileTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except UnsupportedFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NovelImportError as e:
        logger.warning("Import of %s failed: %s", file.filename, e)
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        await loop.run_in_executor(None, lambda: temp_path.unlink(missing_ok=True))

    return {
        "novel_id": result.novel_id,
        "title": result.title,
        "slug": result.slug,
        "chapter_count": result.chapter_count,
        "image_count": result.image_count,
        "cover_path": result.cover_path,
    }

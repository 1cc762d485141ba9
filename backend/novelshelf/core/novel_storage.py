"""Novel file storage.

Each novel keeps its image files under the storage root::

    {base_dir}/novels/{slug}/
    └── images/          # Cover and illustrations extracted at import
"""

import base64
import logging
import re
import shutil
import time
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Keep the basename and replace anything outside ``[a-zA-Z0-9._-]`` with ``_``."""
    name = re.split(r"[\\/]", filename or "")[-1]
    name = _UNSAFE_FILENAME_RE.sub("_", name).lstrip(".")
    return name or f"img_{int(time.time() * 1000)}.png"


class NovelStorage:
    """Manage per-novel file storage."""

    NOVELS_DIR = "novels"
    IMAGES_DIR = "images"

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def get_novel_dir(self, slug: str) -> Path:
        """Root directory of a novel.

        Args:
            slug: Novel slug

        Returns:
            Path to the novel directory
        """
        return self.base_dir / self.NOVELS_DIR / sanitize_filename(slug)

    def get_images_dir(self, slug: str) -> Path:
        return self.get_novel_dir(slug) / self.IMAGES_DIR

    def save_image(self, data: str, filename: str, slug: str) -> str:
        """Decode a base64 image and write it into the novel's image folder.

        Args:
            data: Base64 payload
            filename: Original image name (sanitized before use)
            slug: Novel slug

        Returns:
            Absolute path of the written file

        Raises:
            binascii.Error: The payload is not valid base64
            OSError: The file could not be written
        """
        payload = base64.b64decode(data)
        images_dir = self.get_images_dir(slug)
        images_dir.mkdir(parents=True, exist_ok=True)

        target = images_dir / sanitize_filename(filename)
        target.write_bytes(payload)
        return str(target.resolve())

    def delete_novel(self, slug: str) -> None:
        """Delete all files of a novel."""
        novel_dir = self.get_novel_dir(slug)
        if novel_dir.exists():
            shutil.rmtree(novel_dir)
            logger.info("Deleted storage for novel %s", slug)

    def get_novel_size(self, slug: str) -> int:
        """Total size of the novel's files in bytes."""
        novel_dir = self.get_novel_dir(slug)
        if not novel_dir.exists():
            return 0
        return sum(path.stat().st_size for path in novel_dir.rglob("*") if path.is_file())

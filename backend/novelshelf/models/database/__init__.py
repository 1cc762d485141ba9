"""Database models package."""

from novelshelf.models.database.base import Base, create_engine, create_session_maker, init_db
from novelshelf.models.database.novel import Novel
from novelshelf.models.database.chapter import Chapter
from novelshelf.models.database.translation_cache import TranslationCacheEntry
from novelshelf.models.database.queue_item import QueueItem
from novelshelf.models.database.bookmark import Bookmark
from novelshelf.models.database.image import Image
# Centralized enums
from novelshelf.models.database.enums import QueueStatus

__all__ = [
    # Base
    "Base",
    "create_engine",
    "create_session_maker",
    "init_db",
    # Models
    "Novel",
    "Chapter",
    "TranslationCacheEntry",
    "QueueItem",
    "Bookmark",
    "Image",
    # Enums
    "QueueStatus",
]

"""Translated chapter cache model."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from novelshelf.models.database.base import Base


class TranslationCacheEntry(Base):
    """Full translation of one chapter into one target language variant.

    ``target_code`` distinguishes variants of the same target language
    (e.g. two prompt styles for Russian); lookups use it together with the
    chapter id.
    """

    __tablename__ = "translation_cache"
    __table_args__ = (
        UniqueConstraint(
            "chapter_id", "source_lang", "target_code", name="uq_translation_cache"
        ),
        Index("ix_translation_cache_lookup", "chapter_id", "target_code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chapter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False
    )
    source_lang: Mapped[str] = mapped_column(String(20), nullable=False)
    target_lang: Mapped[str] = mapped_column(String(20), nullable=False)
    target_code: Mapped[str] = mapped_column(String(50), nullable=False)
    translated_content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

"""Novel database model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from novelshelf.models.database.base import Base

if TYPE_CHECKING:
    from novelshelf.models.database.bookmark import Bookmark
    from novelshelf.models.database.chapter import Chapter
    from novelshelf.models.database.image import Image


class Novel(Base):
    """Imported novel."""

    __tablename__ = "novels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Book metadata
    author: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    cover_image_path: Mapped[Optional[str]] = mapped_column(String(1000))

    chapter_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    chapters: Mapped[list["Chapter"]] = relationship(
        "Chapter", back_populates="novel", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    images: Mapped[list["Image"]] = relationship(
        "Image", back_populates="novel", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    bookmark: Mapped[Optional["Bookmark"]] = relationship(
        "Bookmark", back_populates="novel", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )

"""Translation queue model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from novelshelf.models.database.base import Base
from novelshelf.models.database.enums import QueueStatus


class QueueItem(Base):
    """One chapter waiting for (or done with) batch translation."""

    __tablename__ = "translation_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chapter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False
    )
    source_lang: Mapped[str] = mapped_column(String(20), nullable=False)
    target_lang: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=QueueStatus.PENDING.value, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    # FIFO order is (created_at, id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

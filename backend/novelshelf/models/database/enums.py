"""Centralized enum definitions for database models."""

from enum import Enum


class QueueStatus(str, Enum):
    """Translation queue item status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

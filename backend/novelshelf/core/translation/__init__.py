"""Batch translation queue."""

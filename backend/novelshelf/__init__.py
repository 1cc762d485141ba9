"""NovelShelf backend: e-book import and queued chapter translation."""

__version__ = "0.1.0"

"""User interface components (terminal rendering)."""

from media_dedup.ui.review import ReviewUI, format_size

__all__ = ["ReviewUI", "format_size"]

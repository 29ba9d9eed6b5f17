"""
Media Dedup - exact and near-duplicate resolution for a catalogued media library.

Groups catalogued files by content hash or perceptual fingerprint, suggests
which copy to keep and trashes the rest with a best-effort batch delete.
"""

__version__ = "0.1.0"
__author__ = "Media Dedup Contributors"

from media_dedup.core.executor import TrashExecutor
from media_dedup.core.grouper import Grouper
from media_dedup.core.service import DuplicateService
from media_dedup.core.session import ResolutionSession
from media_dedup.core.summary import SummaryService

__all__ = [
    "DuplicateService",
    "Grouper",
    "ResolutionSession",
    "SummaryService",
    "TrashExecutor",
    "__version__",
]

"""Core functionality for duplicate grouping and resolution."""

from media_dedup.core.errors import DataUnavailableError, DedupError, InvalidConfirmError
from media_dedup.core.executor import TrashExecutor
from media_dedup.core.grouper import Grouper
from media_dedup.core.models import (
    BatchResult,
    Decision,
    DuplicateGroup,
    DuplicateSummary,
    FolderRule,
    FolderSuperGroup,
    GroupPage,
    MatchKind,
    MediaKind,
    MediaRecord,
    TrashOutcome,
)
from media_dedup.core.service import DuplicateService
from media_dedup.core.session import ResolutionSession, SessionState
from media_dedup.core.summary import SummaryService

__all__ = [
    "BatchResult",
    "DataUnavailableError",
    "Decision",
    "DedupError",
    "DuplicateGroup",
    "DuplicateService",
    "DuplicateSummary",
    "FolderRule",
    "FolderSuperGroup",
    "GroupPage",
    "Grouper",
    "InvalidConfirmError",
    "MatchKind",
    "MediaKind",
    "MediaRecord",
    "ResolutionSession",
    "SessionState",
    "SummaryService",
    "TrashExecutor",
    "TrashOutcome",
]

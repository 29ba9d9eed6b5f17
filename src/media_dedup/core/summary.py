"""Aggregate duplicate counts for a persistent indicator."""

from typing import Optional

from media_dedup.core.grouper import Grouper
from media_dedup.core.models import DuplicateSummary, MatchKind


class SummaryService:
    """Counts exact and similar groups without involving any session."""

    def __init__(self, grouper: Grouper):
        self.grouper = grouper

    def summary(
        self, threshold: Optional[int] = None, subdir: Optional[str] = None
    ) -> DuplicateSummary:
        """
        Count duplicate groups and files of both kinds.

        Uses the grouper's cached clustering, which is rebuilt whenever the
        metadata source changes, so a query made after a trash reflects it.
        Files the catalog has not hashed yet are counted separately, since
        they cannot appear in any group.

        Args:
            threshold: Similarity threshold for the similar counts
            subdir: Only count groups under this library-relative folder

        Raises:
            DataUnavailableError: If the metadata source cannot be read
        """
        exact = self.grouper.listing(MatchKind.EXACT, subdir=subdir)
        similar = self.grouper.listing(MatchKind.SIMILAR, threshold, subdir=subdir)
        return DuplicateSummary(
            exact_groups=len(exact.groups),
            exact_files=exact.file_count,
            similar_groups=len(similar.groups),
            similar_files=similar.file_count,
            unhashed_files=exact.unhashed_files,
            unfingerprinted_images=similar.unfingerprinted_images,
        )

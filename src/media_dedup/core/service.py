"""Collaborator-facing duplicate operations: summary, listing and trash."""

from pathlib import Path
from typing import List, Optional, Sequence, Union

from media_dedup.core.executor import resolve_folder_rule_targets
from media_dedup.core.grouper import DEFAULT_PER_PAGE, Grouper
from media_dedup.core.models import (
    BatchResult,
    DuplicateSummary,
    FolderRule,
    GroupPage,
    MatchKind,
    TrashOutcome,
)
from media_dedup.core.source import MetadataSource, Trasher
from media_dedup.core.summary import SummaryService
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)


class DuplicateService:
    """
    Wires a metadata source, a grouper and a trash backend together.

    Also serves as the delete primitive a TrashExecutor calls.
    """

    def __init__(
        self,
        source: MetadataSource,
        trasher: Trasher,
        grouper: Optional[Grouper] = None,
        library_root: Optional[Path] = None,
    ):
        """
        Initialize the service.

        Args:
            source: Metadata source holding the catalogued files
            trasher: Backend that moves a single file to the trash
            grouper: Grouper over `source` (created if not given)
            library_root: Directory record paths are relative to
                (default: source.library_root)
        """
        self.source = source
        self.trasher = trasher
        self.grouper = grouper or Grouper(source)
        self.summary_service = SummaryService(self.grouper)
        self.library_root = library_root or source.library_root

    def fetch_summary(
        self, threshold: Optional[int] = None, subdir: Optional[str] = None
    ) -> DuplicateSummary:
        return self.summary_service.summary(threshold, subdir)

    def fetch_groups(
        self,
        match_kind: Union[MatchKind, str],
        max_distance: Optional[int] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        subdir: Optional[str] = None,
    ) -> GroupPage:
        return self.grouper.fetch_groups(
            match_kind, max_distance, page, per_page, subdir
        )

    def trash_files(self, file_ids: Sequence[int]) -> List[TrashOutcome]:
        """
        Trash files by id, each independently of the others.

        Ids are resolved through the metadata source, each file is handed to
        the trash backend, and the rows of files that were trashed are then
        removed from the source.

        Args:
            file_ids: Files to trash; repeated ids are trashed once

        Returns:
            One outcome per distinct id, in request order

        Raises:
            DataUnavailableError: If the metadata source cannot be read
        """
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return []

        records = self.source.get_records(ids)
        outcomes: List[TrashOutcome] = []

        for file_id in ids:
            record = records.get(file_id)
            if record is None:
                outcomes.append(
                    TrashOutcome.failure(file_id, "File not found in catalog")
                )
                continue
            if self.library_root is None:
                outcomes.append(
                    TrashOutcome.failure(file_id, "Library root is not known")
                )
                continue

            error = self.trasher.trash(self.library_root / record.full_path, record)
            if error is None:
                outcomes.append(TrashOutcome.success(file_id))
            else:
                outcomes.append(TrashOutcome.failure(file_id, error))

        trashed = [o.file_id for o in outcomes if o.ok]
        if trashed:
            self.source.remove_records(trashed)

        failed = len(outcomes) - len(trashed)
        if failed:
            logger.warning(f"{failed} of {len(outcomes)} files could not be trashed")
        logger.info(f"Trashed {len(trashed)} files")
        return outcomes

    def trash_folder_rule(
        self,
        match_kind: Union[MatchKind, str],
        keep_folder: str,
        trash_folder: str,
        max_distance: Optional[int] = None,
        subdir: Optional[str] = None,
    ) -> BatchResult:
        """
        Trash every file under `trash_folder` in groups split between the two
        folders, deciding from current data.

        Returns:
            Outcomes of the delete call and the number of groups resolved
        """
        match_kind = MatchKind.parse(match_kind)
        to_trash, groups_resolved = resolve_folder_rule_targets(
            self.grouper,
            match_kind,
            max_distance,
            FolderRule(keep_folder, trash_folder),
            subdir,
        )
        outcomes = self.trash_files(to_trash)
        return BatchResult(outcomes=tuple(outcomes), groups_resolved=groups_resolved)

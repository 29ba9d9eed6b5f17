"""Best-effort execution of keep/trash decisions against the delete primitive."""

from typing import Callable, List, Optional, Tuple

from media_dedup.core.errors import DataUnavailableError, InvalidConfirmError
from media_dedup.core.grouper import Grouper
from media_dedup.core.models import BatchResult, FolderRule, MatchKind
from media_dedup.core.session import ResolutionSession
from media_dedup.core.source import DeletePrimitive
from media_dedup.core.super_groups import find_super_group
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)


def resolve_folder_rule_targets(
    grouper: Grouper,
    match_kind: MatchKind,
    threshold: Optional[int],
    rule: FolderRule,
    subdir: Optional[str] = None,
) -> Tuple[List[int], int]:
    """
    Work out, from fresh data, which files a folder rule would trash.

    The listing is rebuilt from the metadata source rather than taken from
    any page a session holds, so the result reflects what is on disk now.

    Args:
        grouper: Grouper over the authoritative metadata source
        match_kind: Listing the rule applies to
        threshold: Similarity threshold (similar listings only)
        rule: Folder to keep and folder to trash
        subdir: Only consider groups under this library-relative folder

    Returns:
        (file ids under the trash folder, number of groups the rule resolves)
    """
    listing = grouper.listing(match_kind, threshold, fresh=True, subdir=subdir)
    super_group = find_super_group(
        listing.folder_super_groups, rule.keep_folder, rule.trash_folder
    )
    if super_group is None:
        logger.info(
            f"No {match_kind.value} groups split between '{rule.keep_folder}' "
            f"and '{rule.trash_folder}'"
        )
        return [], 0

    wanted = set(super_group.group_indices)
    to_trash = [
        member.id
        for group in listing.groups
        if group.group_index in wanted
        for member in group.members
        if member.directory_path == rule.trash_folder
    ]
    return to_trash, len(super_group.group_indices)


def _report(result: BatchResult, what: str) -> None:
    for failure in result.failures:
        logger.warning(f"Failed to trash file {failure.file_id}: {failure.error}")
    logger.info(
        f"{what}: trashed {result.trashed}/{len(result.outcomes)} files, "
        f"{result.groups_resolved} group(s) resolved"
    )


def _refresh(session: ResolutionSession, load: Callable[[], None]) -> None:
    # Trashed files must not stay on offer when the page cannot be reloaded
    try:
        load()
    except DataUnavailableError:
        session.discard_page()
        logger.warning("Could not reload duplicate groups after trashing; page cleared")
        raise


class TrashExecutor:
    """
    Submits a session's trash decisions to the delete primitive.

    Deletions are independent: files that were trashed stay trashed when
    others fail, and the group or rule counts as resolved either way.
    """

    def __init__(self, deleter: DeletePrimitive):
        """
        Initialize the executor.

        Args:
            deleter: Batch delete primitive (e.g. DuplicateService)
        """
        self.deleter = deleter

    def confirm_group(self, session: ResolutionSession, group_index: int) -> BatchResult:
        """
        Trash every member of one group that is marked Trash.

        A group with nothing to trash is skipped without a delete call. If
        the session was reloaded while the delete was running, the outcomes
        are returned but not applied to the session.

        Once the last group of the page is resolved the page is refilled
        with the groups that followed it.

        Raises:
            InvalidConfirmError: If the group has undecided members or no keeper
            DataUnavailableError: If the page cannot be refilled afterwards;
                the page is then cleared
        """
        if session.group(group_index) is None:
            logger.debug(f"Ignoring confirm for stale group {group_index}")
            return BatchResult()

        if not session.can_confirm(group_index):
            raise InvalidConfirmError(
                f"Group {group_index} needs every file decided and at least one kept"
            )

        to_trash = session.trash_ids(group_index)
        if not to_trash:
            session.advance()
            return BatchResult()

        generation = session.generation
        outcomes = self.deleter.trash_files(to_trash)
        result = BatchResult(outcomes=tuple(outcomes), groups_resolved=1)
        _report(result, f"Group {group_index}")

        if session.generation != generation:
            logger.warning(
                f"Session reloaded while group {group_index} was being trashed; "
                "result not applied"
            )
            return result

        session.remove_group(group_index)
        if not session.groups:
            _refresh(session, session.refill)
        return result

    def confirm_folder_rule(self, session: ResolutionSession) -> BatchResult:
        """
        Trash everything under the active rule's trash folder, across every
        group of the matching super-group, in one delete call.

        Afterwards the rule and all decisions are cleared and the session
        reloads its page, since whole folders were emptied.

        Raises:
            InvalidConfirmError: If no folder rule is active
            DataUnavailableError: If the page cannot be reloaded afterwards;
                the page is then cleared
        """
        rule = session.active_folder_rule
        if rule is None:
            raise InvalidConfirmError("No folder rule is active")

        generation = session.generation
        to_trash, groups_resolved = resolve_folder_rule_targets(
            session.grouper, session.match_kind, session.threshold, rule, session.subdir
        )
        outcomes = self.deleter.trash_files(to_trash) if to_trash else []
        result = BatchResult(outcomes=tuple(outcomes), groups_resolved=groups_resolved)
        _report(result, f"Folder rule keep '{rule.keep_folder}'")

        if session.generation != generation:
            logger.warning("Session reloaded during folder rule; result not applied")
            return result

        session.resolved_count += groups_resolved
        session.active_folder_rule = None
        session.decisions.clear()
        _refresh(session, session.reload)
        _refresh(session, session.refill)
        return result

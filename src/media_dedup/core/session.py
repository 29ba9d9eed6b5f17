"""Interactive per-group keep/trash decisions for one resolution pass."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from media_dedup.core.grouper import DEFAULT_PER_PAGE, Grouper
from media_dedup.core.models import (
    Decision,
    DuplicateGroup,
    FolderRule,
    FolderSuperGroup,
    GroupPage,
    MatchKind,
)
from media_dedup.core.super_groups import find_super_group
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    VIEWING = "viewing"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class PageRequest:
    """Identifies a page fetch; its result only applies to the same generation."""

    generation: int
    match_kind: MatchKind
    threshold: Optional[int]
    page: int
    per_page: int
    subdir: Optional[str] = None


class ResolutionSession:
    """
    Holds the decision state a user drives while resolving duplicates.

    The session is single-writer: callers serialize operations on it. Only
    the loading methods touch the grouper; every other operation is local.
    Decisions are keyed by (group_index, file_id), so a reloaded page never
    leaves references to replaced groups behind. Operations addressing a
    group or file that is not on the current page are ignored.
    """

    def __init__(
        self,
        grouper: Grouper,
        match_kind: Union[MatchKind, str] = MatchKind.EXACT,
        threshold: Optional[int] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        subdir: Optional[str] = None,
    ):
        """
        Create an idle session.

        Args:
            grouper: Source of duplicate group pages
            match_kind: Initial match kind filter
            threshold: Similarity threshold for similar listings
            page: 1-based page to load
            per_page: Groups per page
            subdir: Only work on groups under this library-relative folder
        """
        self.grouper = grouper
        self.match_kind = MatchKind.parse(match_kind)
        self.threshold = threshold
        self.page = page
        self.per_page = per_page
        self.subdir = subdir

        self.groups: List[DuplicateGroup] = []
        self.folder_super_groups: Tuple[FolderSuperGroup, ...] = ()
        self.total_groups = 0
        self.decisions: Dict[int, Dict[int, Decision]] = {}
        self.cursor = 0
        self.resolved_count = 0
        self.active_folder_rule: Optional[FolderRule] = None
        self.generation = 0
        self._loaded = False

    # ------------------------------------------------------------------
    # Loading

    @property
    def state(self) -> SessionState:
        if not self._loaded:
            return SessionState.IDLE
        if not self.groups:
            return SessionState.RESOLVED
        return SessionState.VIEWING

    def begin_load(
        self, match_kind: Union[MatchKind, str, None] = None
    ) -> PageRequest:
        """
        Reset the session for a new listing and describe the page to fetch.

        Bumps the generation, so results of any earlier request are dropped
        when they arrive.
        """
        if match_kind is not None:
            self.match_kind = MatchKind.parse(match_kind)

        self.generation += 1
        self.decisions = {}
        self.cursor = 0
        self.resolved_count = 0
        self.active_folder_rule = None

        return PageRequest(
            generation=self.generation,
            match_kind=self.match_kind,
            threshold=self.threshold,
            page=self.page,
            per_page=self.per_page,
            subdir=self.subdir,
        )

    def receive_page(self, request: PageRequest, page: GroupPage) -> bool:
        """
        Install a fetched page if it belongs to the current generation.

        Returns:
            True if the page was installed, False if it was stale
        """
        if request.generation != self.generation:
            logger.debug(
                f"Dropping stale page (generation {request.generation}, "
                f"current {self.generation})"
            )
            return False

        self._install_page(page)
        return True

    def load(self, match_kind: Union[MatchKind, str, None] = None) -> SessionState:
        """
        Start a fresh pass over the first requested page of duplicates.

        Resets decisions, cursor, resolved count and folder rule, fetches a
        page and seeds every group with the keep suggestion.

        Raises:
            DataUnavailableError: The session is left exactly as it was
        """
        snapshot = self._snapshot()
        request = self.begin_load(match_kind)
        try:
            page = self.grouper.fetch_groups(
                request.match_kind,
                request.threshold,
                request.page,
                request.per_page,
                request.subdir,
            )
        except Exception:
            self._restore(snapshot)
            raise

        self.receive_page(request, page)
        return self.state

    def reload(self) -> None:
        """Refresh the page from the grouper, keeping counters and decisions."""
        page = self.grouper.fetch_groups(
            self.match_kind, self.threshold, self.page, self.per_page, self.subdir
        )
        self._install_page(page)

    @property
    def has_more_pages(self) -> bool:
        """True if the listing has groups beyond the current page."""
        return self.page * self.per_page < self.total_groups

    def next_page(self) -> None:
        """Move to the following page of the listing, keeping counters."""
        self.page += 1
        self.cursor = 0
        self.reload()

    def refill(self) -> None:
        """
        Reload an emptied page so the groups behind it move up.

        Resolved groups leave the listing, so the same page number now holds
        the groups that followed. If the listing shrank below the current
        page, its last page is loaded instead.
        """
        if not self._loaded or self.groups:
            return
        self.reload()
        if not self.groups and self.total_groups and self.page > 1:
            self.page = (self.total_groups - 1) // self.per_page + 1
            self.reload()

    def discard_page(self) -> None:
        """Forget the groups on the page after a failed reload."""
        self.groups = []
        self.folder_super_groups = ()
        self.decisions = {}
        self.cursor = 0

    def _install_page(self, page: GroupPage) -> None:
        self.page = page.page
        self.per_page = page.per_page
        self.groups = list(page.groups)
        self.folder_super_groups = page.folder_super_groups
        self.total_groups = page.total_groups
        self._loaded = True

        # A group index can be reused for different files after the listing
        # changed; only decisions covering exactly the same members survive.
        members_by_index = {g.group_index: set(g.member_ids) for g in self.groups}
        for group_index in list(self.decisions):
            if set(self.decisions[group_index]) != members_by_index.get(group_index):
                del self.decisions[group_index]
        for group in self.groups:
            if group.group_index not in self.decisions:
                self._seed(group)

        self._clamp_cursor()
        logger.debug(
            f"Session page installed: {len(self.groups)} of {self.total_groups} "
            f"{self.match_kind.value} groups"
        )

    def _snapshot(self) -> tuple:
        return (
            self.match_kind,
            list(self.groups),
            self.folder_super_groups,
            self.total_groups,
            {k: dict(v) for k, v in self.decisions.items()},
            self.cursor,
            self.resolved_count,
            self.active_folder_rule,
            self.generation,
            self._loaded,
        )

    def _restore(self, snapshot: tuple) -> None:
        (
            self.match_kind,
            self.groups,
            self.folder_super_groups,
            self.total_groups,
            self.decisions,
            self.cursor,
            self.resolved_count,
            self.active_folder_rule,
            self.generation,
            self._loaded,
        ) = snapshot

    # ------------------------------------------------------------------
    # Lookups

    def group(self, group_index: int) -> Optional[DuplicateGroup]:
        for group in self.groups:
            if group.group_index == group_index:
                return group
        return None

    @property
    def current_group(self) -> Optional[DuplicateGroup]:
        if 0 <= self.cursor < len(self.groups):
            return self.groups[self.cursor]
        return None

    def select(self, group_index: int) -> None:
        """Move the cursor onto a group of the page (ignored if not on it)."""
        for position, group in enumerate(self.groups):
            if group.group_index == group_index:
                self.cursor = position
                return

    def decisions_for(self, group_index: int) -> Dict[int, Decision]:
        """Copy of the decisions of one group (empty if not on the page)."""
        return dict(self.decisions.get(group_index, {}))

    def decision_of(self, group_index: int, file_id: int) -> Decision:
        return self.decisions.get(group_index, {}).get(file_id, Decision.UNDECIDED)

    def super_group_for(self, group_index: int) -> Optional[FolderSuperGroup]:
        for super_group in self.folder_super_groups:
            if group_index in super_group.group_indices:
                return super_group
        return None

    def active_super_group(self) -> Optional[FolderSuperGroup]:
        """Super-group the active folder rule applies to, if any."""
        rule = self.active_folder_rule
        if rule is None:
            return None
        return find_super_group(
            self.folder_super_groups, rule.keep_folder, rule.trash_folder
        )

    def trash_ids(self, group_index: int) -> List[int]:
        """Ids of the group's members currently marked Trash, in member order."""
        group = self.group(group_index)
        if group is None:
            return []
        decisions = self.decisions.get(group_index, {})
        return [m.id for m in group.members if decisions.get(m.id) is Decision.TRASH]

    # ------------------------------------------------------------------
    # Decisions

    def _seed(self, group: DuplicateGroup) -> None:
        self.decisions[group.group_index] = {
            member.id: (
                Decision.KEEP if member.id == group.suggested_keep_id else Decision.TRASH
            )
            for member in group.members
        }

    def toggle_decision(
        self, group_index: int, file_id: int, target: Union[Decision, str]
    ) -> None:
        """
        Set a file to `target`, or to the opposite of `target` if it already is.

        Args:
            group_index: Group on the current page
            file_id: Member of that group
            target: Decision.KEEP or Decision.TRASH
        """
        target = Decision(target)
        if target is Decision.UNDECIDED:
            raise ValueError("Toggle target must be keep or trash")

        group = self.group(group_index)
        if group is None or group.member(file_id) is None:
            logger.debug(f"Ignoring toggle for stale group {group_index}/{file_id}")
            return

        decisions = self.decisions.setdefault(group_index, {})
        if decisions.get(file_id) is target:
            decisions[file_id] = target.opposite
        else:
            decisions[file_id] = target

    def accept_suggestion(self, group_index: int) -> None:
        """Overwrite the group's decisions with the keep suggestion."""
        group = self.group(group_index)
        if group is None:
            return
        self._seed(group)

    def can_confirm(self, group_index: int) -> bool:
        """True if every member is decided and at least one is kept."""
        group = self.group(group_index)
        if group is None:
            return False
        decisions = self.decisions.get(group_index, {})

        has_keep = False
        for member in group.members:
            decision = decisions.get(member.id, Decision.UNDECIDED)
            if decision is Decision.UNDECIDED:
                return False
            if decision is Decision.KEEP:
                has_keep = True
        return has_keep

    def apply_folder_rule(
        self, super_group: FolderSuperGroup, keep_folder_index: int
    ) -> None:
        """
        Preview keeping one folder of a super-group and trashing the other.

        Purely local: decisions of every referenced group on the page are
        overwritten, nothing is deleted until confirm_folder_rule.

        Args:
            super_group: Folder pair and its groups
            keep_folder_index: 0 or 1, index into super_group.folders
        """
        if keep_folder_index not in (0, 1):
            raise ValueError(f"keep_folder_index must be 0 or 1, got {keep_folder_index}")

        keep_folder = super_group.folders[keep_folder_index]
        trash_folder = super_group.folders[1 - keep_folder_index]
        self.active_folder_rule = FolderRule(keep_folder, trash_folder)

        for group_index in super_group.group_indices:
            group = self.group(group_index)
            if group is None:
                continue
            self.decisions[group_index] = {
                member.id: (
                    Decision.KEEP
                    if member.directory_path == keep_folder
                    else Decision.TRASH
                )
                for member in group.members
            }

    def clear_folder_rule(self) -> None:
        self.active_folder_rule = None

    # ------------------------------------------------------------------
    # Navigation

    def _clamp_cursor(self) -> None:
        if not self.groups:
            self.cursor = 0
        else:
            self.cursor = min(max(self.cursor, 0), len(self.groups) - 1)

    def advance(self) -> None:
        if self.cursor < len(self.groups) - 1:
            self.cursor += 1
        self._clamp_cursor()

    def retreat(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def skip(self) -> None:
        """Move past the current group without resolving it."""
        self.advance()

    def remove_group(self, group_index: int) -> None:
        """
        Drop a resolved group from the page and count it.

        Decisions of other groups are left untouched.
        """
        for position, group in enumerate(self.groups):
            if group.group_index == group_index:
                break
        else:
            return

        del self.groups[position]
        self.decisions.pop(group_index, None)
        if position < self.cursor:
            self.cursor -= 1
        self._clamp_cursor()
        self.resolved_count += 1

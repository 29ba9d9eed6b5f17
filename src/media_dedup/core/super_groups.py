"""Detection of folder pairs that mirror each other across many groups."""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from media_dedup.core.models import DuplicateGroup, FolderSuperGroup


def detect_folder_super_groups(
    groups: Iterable[DuplicateGroup],
) -> List[FolderSuperGroup]:
    """
    Find folder pairs that split one or more duplicate groups between them.

    A group takes part only if its members live in exactly two distinct
    directories. Every pair with at least one group is reported; deciding
    when a batch action is worth offering is left to the caller.

    Args:
        groups: Duplicate groups, typically a whole listing

    Returns:
        Super-groups ordered by group count (descending), then folder pair
    """
    pairs: Dict[Tuple[str, str], List[int]] = defaultdict(list)

    for group in groups:
        folders = group.directories
        if len(folders) != 2:
            continue
        pairs[(folders[0], folders[1])].append(group.group_index)

    super_groups = [
        FolderSuperGroup(folders=pair, group_indices=tuple(sorted(indices)))
        for pair, indices in pairs.items()
    ]
    super_groups.sort(key=lambda sg: (-len(sg.group_indices), sg.folders))
    return super_groups


def find_super_group(
    super_groups: Iterable[FolderSuperGroup], first: str, second: str
) -> Optional[FolderSuperGroup]:
    """Return the super-group for the folder pair {first, second}, if any."""
    for super_group in super_groups:
        if super_group.matches(first, second):
            return super_group
    return None

"""Data model shared by the grouper, session and trash executor."""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union


class MatchKind(str, Enum):
    """How members of a duplicate group were matched."""

    EXACT = "exact"
    SIMILAR = "similar"

    @classmethod
    def parse(cls, value: Union[str, "MatchKind"]) -> "MatchKind":
        """
        Convert a user supplied value to a MatchKind.

        Raises:
            ValueError: If the value is neither 'exact' nor 'similar'
        """
        if isinstance(value, MatchKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Invalid match kind {value!r}: must be 'exact' or 'similar'"
            ) from None


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class Decision(str, Enum):
    """Per-file resolution choice inside a group."""

    KEEP = "keep"
    TRASH = "trash"
    UNDECIDED = "undecided"

    @property
    def opposite(self) -> "Decision":
        if self is Decision.KEEP:
            return Decision.TRASH
        if self is Decision.TRASH:
            return Decision.KEEP
        return Decision.UNDECIDED


@dataclass(frozen=True)
class MediaRecord:
    """A single catalogued file, as supplied by the metadata source."""

    id: int
    directory_path: str
    filename: str
    content_hash: Optional[str] = None
    similarity_fingerprint: Optional[int] = None
    size_bytes: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    rating: Optional[int] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    media_kind: MediaKind = MediaKind.IMAGE
    modified_time: Optional[int] = None

    @property
    def full_path(self) -> str:
        """Path relative to the library root."""
        if not self.directory_path:
            return self.filename
        return f"{self.directory_path}/{self.filename}"

    @property
    def pixel_count(self) -> Optional[int]:
        """width * height, or None when either dimension is unknown."""
        if self.width is None or self.height is None:
            return None
        return self.width * self.height


@dataclass(frozen=True)
class DuplicateGroup:
    """
    A cluster of files considered copies of each other.

    `group_index` is only meaningful within one listing. For similar groups
    `max_distance` is the largest pairwise distance actually observed among
    the members, while `threshold` is the admission threshold used to build
    the cluster.
    """

    group_index: int
    match_kind: MatchKind
    members: Tuple[MediaRecord, ...]
    suggested_keep_id: int
    content_hash: Optional[str] = None
    max_distance: Optional[int] = None
    threshold: Optional[int] = None

    @property
    def member_ids(self) -> Tuple[int, ...]:
        return tuple(m.id for m in self.members)

    @property
    def directories(self) -> Tuple[str, ...]:
        """Sorted distinct directory paths of the members."""
        return tuple(sorted({m.directory_path for m in self.members}))

    @property
    def total_bytes(self) -> int:
        return sum(m.size_bytes for m in self.members)

    @property
    def reclaimable_bytes(self) -> int:
        """Bytes freed if every member but the largest were removed."""
        return self.total_bytes - max(m.size_bytes for m in self.members)

    def member(self, file_id: int) -> Optional[MediaRecord]:
        for record in self.members:
            if record.id == file_id:
                return record
        return None


@dataclass(frozen=True)
class FolderSuperGroup:
    """Groups whose members all live in exactly the same two folders."""

    folders: Tuple[str, str]
    group_indices: Tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.folders) != 2 or self.folders[0] == self.folders[1]:
            raise ValueError(
                f"A folder super-group needs two distinct folders, got {self.folders!r}"
            )

    def matches(self, first: str, second: str) -> bool:
        """True if {first, second} is this super-group's folder pair."""
        return {first, second} == set(self.folders)


@dataclass(frozen=True)
class FolderRule:
    keep_folder: str
    trash_folder: str


@dataclass(frozen=True)
class GroupPage:
    """Immutable snapshot of one page of a duplicate listing."""

    match_kind: MatchKind
    threshold: Optional[int]
    page: int
    per_page: int
    groups: Tuple[DuplicateGroup, ...]
    total_groups: int
    folder_super_groups: Tuple[FolderSuperGroup, ...] = ()

    def group(self, group_index: int) -> Optional[DuplicateGroup]:
        for candidate in self.groups:
            if candidate.group_index == group_index:
                return candidate
        return None


@dataclass(frozen=True)
class DuplicateSummary:
    exact_groups: int
    exact_files: int
    similar_groups: int
    similar_files: int
    unhashed_files: int = 0
    unfingerprinted_images: int = 0

    @property
    def total_groups(self) -> int:
        return self.exact_groups + self.similar_groups


@dataclass(frozen=True)
class TrashOutcome:
    """Result of trashing one file; `error` is None on success."""

    file_id: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, file_id: int) -> "TrashOutcome":
        return cls(file_id)

    @classmethod
    def failure(cls, file_id: int, reason: str) -> "TrashOutcome":
        return cls(file_id, reason)


@dataclass(frozen=True)
class BatchResult:
    outcomes: Tuple[TrashOutcome, ...] = ()
    groups_resolved: int = 0

    @property
    def trashed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failures(self) -> Tuple[TrashOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

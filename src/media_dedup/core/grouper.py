"""Clustering of catalogued files into exact and similar duplicate groups."""

import threading
from collections import defaultdict
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from tqdm import tqdm

from media_dedup.core.models import (
    DuplicateGroup,
    FolderSuperGroup,
    GroupPage,
    MatchKind,
    MediaKind,
    MediaRecord,
)
from media_dedup.core.source import MetadataSource
from media_dedup.core.suggester import suggest_keep_id
from media_dedup.core.super_groups import detect_folder_super_groups
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)

FINGERPRINT_BITS = 64
FINGERPRINT_MASK = (1 << FINGERPRINT_BITS) - 1
DEFAULT_THRESHOLD = 8
DEFAULT_PER_PAGE = 50
MAX_PER_PAGE = 200


def hamming_distance(a: int, b: int) -> int:
    """Number of differing bits between two 64-bit fingerprints."""
    return bin((a ^ b) & FINGERPRINT_MASK).count("1")


def normalize_subdir(subdir: Optional[str]) -> Optional[str]:
    """Library-relative folder without surrounding slashes (None for the whole library)."""
    if subdir is None:
        return None
    subdir = subdir.strip().strip("/")
    return subdir or None


def path_in_subdir(path: str, subdir: str) -> bool:
    """True if `path` is `subdir` itself or lies anywhere below it."""
    return path == subdir or path.startswith(subdir + "/")


def max_pairwise_distance(fingerprints: Sequence[int]) -> int:
    """Largest distance between any two fingerprints (0 for fewer than two)."""
    largest = 0
    for i in range(len(fingerprints)):
        for j in range(i + 1, len(fingerprints)):
            largest = max(largest, hamming_distance(fingerprints[i], fingerprints[j]))
    return largest


class UnionFind:
    """Disjoint set union with path compression and union by rank."""

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True


def _band_masks(threshold: int) -> List[int]:
    # Split the fingerprint into threshold + 1 bands: two fingerprints within
    # `threshold` bits of each other must agree exactly on at least one band.
    bands = threshold + 1
    masks = []
    for b in range(bands):
        start = b * FINGERPRINT_BITS // bands
        end = (b + 1) * FINGERPRINT_BITS // bands
        masks.append(((1 << (end - start)) - 1) << start)
    return masks


def candidate_pairs(
    fingerprints: Sequence[int], threshold: int, show_progress: bool = False
) -> Iterator[Tuple[int, int]]:
    """
    Yield index pairs whose fingerprints are within `threshold` of each other.

    Pairs are found by bucketing on fingerprint bands, so only fingerprints
    sharing a band are compared. A pair may be yielded more than once.

    Args:
        fingerprints: 64-bit fingerprints
        threshold: Maximum Hamming distance (inclusive)
        show_progress: Show a tqdm bar over the bands

    Yields:
        (i, j) with i < j
    """
    if threshold < 0:
        raise ValueError(f"Threshold must be non-negative, got {threshold}")

    n = len(fingerprints)
    if threshold >= FINGERPRINT_BITS:
        for i in range(n):
            for j in range(i + 1, n):
                yield i, j
        return

    masks = _band_masks(threshold)
    band_iter = tqdm(masks, desc="Clustering", unit="band") if show_progress else masks

    for mask in band_iter:
        buckets: Dict[int, List[int]] = defaultdict(list)
        for index, fingerprint in enumerate(fingerprints):
            buckets[fingerprint & mask].append(index)

        for members in buckets.values():
            for pos, i in enumerate(members):
                for j in members[pos + 1 :]:
                    if hamming_distance(fingerprints[i], fingerprints[j]) <= threshold:
                        yield i, j


def cluster_by_similarity(
    records: Sequence[MediaRecord], threshold: int, show_progress: bool = False
) -> List[List[MediaRecord]]:
    """
    Connect records whose fingerprints are within `threshold` and return the
    connected components with two or more members.

    A chain of near-duplicates ends up in one component even when its
    endpoints are further apart than the threshold.
    """
    fingerprints = [r.similarity_fingerprint for r in records]
    uf = UnionFind(len(records))
    for i, j in candidate_pairs(fingerprints, threshold, show_progress):
        uf.union(i, j)

    components: Dict[int, List[MediaRecord]] = defaultdict(list)
    for index, record in enumerate(records):
        components[uf.find(index)].append(record)

    return [members for members in components.values() if len(members) >= 2]


@dataclass(frozen=True)
class _Listing:
    version: int
    groups: Tuple[DuplicateGroup, ...]
    folder_super_groups: Tuple[FolderSuperGroup, ...]
    unhashed_files: int = 0
    unfingerprinted_images: int = 0

    @property
    def file_count(self) -> int:
        return sum(len(g.members) for g in self.groups)


def _restrict_to_subdir(
    clusters: List[List[MediaRecord]], match_kind: MatchKind, subdir: str
) -> List[List[MediaRecord]]:
    # An exact group is kept whole when any copy lives under the folder.
    # Similar groups keep only their members under it.
    restricted = []
    for members in clusters:
        inside = [r for r in members if path_in_subdir(r.directory_path, subdir)]
        if match_kind is MatchKind.EXACT:
            if inside:
                restricted.append(members)
        elif len(inside) >= 2:
            restricted.append(inside)
    return restricted


def _order_and_index(
    clusters: List[List[MediaRecord]],
    match_kind: MatchKind,
    threshold: Optional[int],
) -> Tuple[DuplicateGroup, ...]:
    drafts = []
    for members in clusters:
        members = sorted(members, key=lambda r: r.id)
        total = sum(m.size_bytes for m in members)
        reclaimable = total - max(m.size_bytes for m in members)
        drafts.append((reclaimable, members))

    drafts.sort(key=lambda d: (-d[0], d[1][0].id))

    groups = []
    for index, (_, members) in enumerate(drafts):
        if match_kind is MatchKind.EXACT:
            groups.append(
                DuplicateGroup(
                    group_index=index,
                    match_kind=match_kind,
                    members=tuple(members),
                    suggested_keep_id=suggest_keep_id(members),
                    content_hash=members[0].content_hash,
                )
            )
        else:
            groups.append(
                DuplicateGroup(
                    group_index=index,
                    match_kind=match_kind,
                    members=tuple(members),
                    suggested_keep_id=suggest_keep_id(members),
                    max_distance=max_pairwise_distance(
                        [m.similarity_fingerprint for m in members]
                    ),
                    threshold=threshold,
                )
            )
    return tuple(groups)


class Grouper:
    """
    Builds paginated duplicate listings from a metadata source.

    The clustering of each (match kind, threshold, subdir) is cached against the
    source's change counter, so paging through an unchanged library does
    not recluster. Listings are immutable and may be read from any thread.
    """

    def __init__(
        self,
        source: MetadataSource,
        default_threshold: int = DEFAULT_THRESHOLD,
        max_per_page: int = MAX_PER_PAGE,
        show_progress: bool = False,
    ):
        """
        Initialize the grouper.

        Args:
            source: Metadata source to read records from
            default_threshold: Similarity threshold used when a call gives none
            max_per_page: Upper bound for page sizes
            show_progress: Show a progress bar while clustering
        """
        self.source = source
        self.default_threshold = default_threshold
        self.max_per_page = max_per_page
        self.show_progress = show_progress
        self._cache: Dict[Tuple[MatchKind, Optional[int], Optional[str]], _Listing] = {}
        self._lock = threading.Lock()

    def effective_threshold(
        self, match_kind: MatchKind, threshold: Optional[int]
    ) -> Optional[int]:
        """Threshold actually used for a request (None for exact listings)."""
        if match_kind is MatchKind.EXACT:
            return None
        if threshold is None:
            threshold = self.default_threshold
        if threshold < 0:
            raise ValueError(f"Threshold must be non-negative, got {threshold}")
        return threshold

    def invalidate(self) -> None:
        """Drop every cached listing."""
        with self._lock:
            self._cache.clear()

    def listing(
        self,
        match_kind: Union[MatchKind, str],
        threshold: Optional[int] = None,
        fresh: bool = False,
        subdir: Optional[str] = None,
    ) -> _Listing:
        """
        Return the full, ordered listing for a match kind.

        Args:
            match_kind: 'exact' or 'similar'
            threshold: Similarity threshold (similar only)
            fresh: Re-read the metadata source even if a cached listing exists
            subdir: Only report groups under this library-relative folder

        Raises:
            DataUnavailableError: If the metadata source cannot be read
            ValueError: For an unknown match kind or negative threshold
        """
        match_kind = MatchKind.parse(match_kind)
        threshold = self.effective_threshold(match_kind, threshold)

        subdir = normalize_subdir(subdir)

        key = (match_kind, threshold, subdir)
        version = self.source.version
        with self._lock:
            cached = self._cache.get(key)
        if not fresh and cached is not None and cached.version == version:
            return cached

        records = self.source.list_records()
        if match_kind is MatchKind.EXACT:
            clusters = self._exact_clusters(records)
        else:
            clusters = self._similar_clusters(records, threshold)

        scoped = records
        if subdir is not None:
            clusters = _restrict_to_subdir(clusters, match_kind, subdir)
            scoped = [r for r in records if path_in_subdir(r.directory_path, subdir)]
        unhashed = sum(1 for r in scoped if not r.content_hash)
        unfingerprinted = sum(
            1
            for r in scoped
            if r.media_kind is MediaKind.IMAGE and r.similarity_fingerprint is None
        )

        groups = _order_and_index(clusters, match_kind, threshold)
        listing = _Listing(
            version=version,
            groups=groups,
            folder_super_groups=tuple(detect_folder_super_groups(groups)),
            unhashed_files=unhashed,
            unfingerprinted_images=unfingerprinted,
        )
        with self._lock:
            self._cache[key] = listing

        logger.info(
            f"Clustered {len(records)} records into {len(groups)} "
            f"{match_kind.value} groups"
        )
        if match_kind is MatchKind.EXACT and unhashed:
            logger.warning(
                f"{unhashed} files have no content hash and are left out of exact groups"
            )
        if match_kind is MatchKind.SIMILAR and unfingerprinted:
            logger.warning(
                f"{unfingerprinted} images have no similarity fingerprint and are "
                "left out of similar groups"
            )
        return listing

    def fetch_groups(
        self,
        match_kind: Union[MatchKind, str],
        threshold: Optional[int] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        subdir: Optional[str] = None,
    ) -> GroupPage:
        """
        Return one page of duplicate groups plus the listing's folder super-groups.

        Args:
            match_kind: 'exact' or 'similar'
            threshold: Similarity threshold (similar only; default from grouper)
            page: 1-based page number
            per_page: Groups per page (clamped to [1, max_per_page])
            subdir: Only report groups under this library-relative folder

        Returns:
            Immutable page snapshot; empty when there are no duplicates

        Raises:
            DataUnavailableError: If the metadata source cannot be read
        """
        match_kind = MatchKind.parse(match_kind)
        page = max(1, page)
        per_page = min(max(1, per_page), self.max_per_page)

        listing = self.listing(match_kind, threshold, subdir=subdir)
        start = (page - 1) * per_page

        return GroupPage(
            match_kind=match_kind,
            threshold=self.effective_threshold(match_kind, threshold),
            page=page,
            per_page=per_page,
            groups=listing.groups[start : start + per_page],
            total_groups=len(listing.groups),
            folder_super_groups=listing.folder_super_groups,
        )

    def fetch_groups_async(
        self,
        executor: Executor,
        match_kind: Union[MatchKind, str],
        threshold: Optional[int] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        subdir: Optional[str] = None,
    ) -> "Future[GroupPage]":
        """Run fetch_groups on an executor, off the interactive path."""
        return executor.submit(
            self.fetch_groups, match_kind, threshold, page, per_page, subdir
        )

    def _exact_clusters(self, records: Sequence[MediaRecord]) -> List[List[MediaRecord]]:
        by_hash: Dict[str, List[MediaRecord]] = defaultdict(list)
        for record in records:
            if record.content_hash:
                by_hash[record.content_hash].append(record)
        return [members for members in by_hash.values() if len(members) >= 2]

    def _similar_clusters(
        self, records: Sequence[MediaRecord], threshold: int
    ) -> List[List[MediaRecord]]:
        # Files that already have an exact copy are reported as exact only
        exact_ids: Set[int] = {
            r.id for members in self._exact_clusters(records) for r in members
        }
        candidates = [
            r
            for r in records
            if r.similarity_fingerprint is not None and r.id not in exact_ids
        ]
        if len(candidates) < 2:
            return []
        return cluster_by_similarity(candidates, threshold, self.show_progress)

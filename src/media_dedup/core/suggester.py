"""Deterministic choice of which duplicate to keep."""

from typing import Iterable, Tuple

from media_dedup.core.models import MediaRecord


def _rank_key(record: MediaRecord) -> Tuple:
    # Smaller key wins: most pixels, best rating, oldest mtime, lowest id.
    # Unknown dimensions, rating or mtime always rank behind known values.
    pixels = record.pixel_count
    return (
        pixels is None,
        -(pixels or 0),
        -(record.rating if record.rating is not None else -1),
        record.modified_time is None,
        record.modified_time or 0,
        record.id,
    )


def suggest_keep_id(members: Iterable[MediaRecord]) -> int:
    """
    Pick the member a user would most likely want to keep.

    Rules are applied in order until one member wins: highest pixel count,
    highest rating, oldest modification time, lowest file id. The result
    depends only on the members, so repeated calls agree.

    Args:
        members: Records of one duplicate group

    Returns:
        Id of the suggested keeper

    Raises:
        ValueError: If the group is empty
    """
    members = list(members)
    if not members:
        raise ValueError("Cannot suggest a keeper for an empty group")
    return min(members, key=_rank_key).id

"""Interfaces of the collaborators the core consumes."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from media_dedup.core.models import MediaRecord, TrashOutcome


class MetadataSource(Protocol):
    """Read path onto the catalogued files, plus row removal after a trash."""

    @property
    def version(self) -> int:
        """Change counter; moves whenever records are added or removed."""
        ...

    @property
    def library_root(self) -> Optional[Path]:
        ...

    def list_records(self) -> List[MediaRecord]:
        """Return every record. Raises DataUnavailableError if unreachable."""
        ...

    def get_records(self, file_ids: Iterable[int]) -> Dict[int, MediaRecord]:
        ...

    def remove_records(self, file_ids: Iterable[int]) -> None:
        ...


class DeletePrimitive(Protocol):
    """Batch trash call; one independent outcome per requested file id."""

    def trash_files(self, file_ids: Sequence[int]) -> List[TrashOutcome]:
        ...


class Trasher(Protocol):
    """Moves one file out of the library."""

    def trash(self, path: Path, record: MediaRecord) -> Optional[str]:
        """Trash one file; return None on success or a failure reason."""
        ...

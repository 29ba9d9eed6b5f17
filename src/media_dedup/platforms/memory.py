"""Dictionary backed metadata source."""

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from media_dedup.core.errors import DataUnavailableError
from media_dedup.core.models import MediaRecord
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)


class InMemoryMetadataSource:
    """Holds MediaRecords in memory; safe to share between threads."""

    def __init__(
        self,
        records: Iterable[MediaRecord] = (),
        library_root: Optional[Path] = None,
    ):
        """
        Initialize the source.

        Args:
            records: Initial records
            library_root: Directory the records' paths are relative to
        """
        self._lock = threading.Lock()
        self._records: Dict[int, MediaRecord] = {r.id: r for r in records}
        self._version = 0
        self._library_root = library_root
        self.available = True

    @property
    def version(self) -> int:
        return self._version

    @property
    def library_root(self) -> Optional[Path]:
        return self._library_root

    def _check_available(self) -> None:
        if not self.available:
            raise DataUnavailableError("In-memory metadata source is offline")

    def list_records(self) -> List[MediaRecord]:
        with self._lock:
            self._check_available()
            return sorted(self._records.values(), key=lambda r: r.id)

    def get_records(self, file_ids: Iterable[int]) -> Dict[int, MediaRecord]:
        with self._lock:
            self._check_available()
            return {
                fid: self._records[fid] for fid in file_ids if fid in self._records
            }

    def add_records(self, records: Iterable[MediaRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record
            self._version += 1

    def remove_records(self, file_ids: Iterable[int]) -> None:
        with self._lock:
            self._check_available()
            removed = 0
            for fid in file_ids:
                if self._records.pop(fid, None) is not None:
                    removed += 1
            if removed:
                self._version += 1
            logger.debug(f"Removed {removed} records from memory source")

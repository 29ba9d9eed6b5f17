"""SQLite catalog reader for the library's file metadata."""

import sqlite3
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from media_dedup.core.errors import DataUnavailableError
from media_dedup.core.models import MediaKind, MediaRecord
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS directories (
    id INTEGER PRIMARY KEY,
    path TEXT UNIQUE NOT NULL,
    parent_id INTEGER REFERENCES directories(id),
    rating INTEGER CHECK (rating IS NULL OR (rating >= 1 AND rating <= 5)),
    mtime INTEGER
);

CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY,
    directory_id INTEGER NOT NULL REFERENCES directories(id),
    filename TEXT NOT NULL,
    size INTEGER NOT NULL,
    mtime INTEGER NOT NULL,
    hash TEXT,
    rating INTEGER CHECK (rating IS NULL OR (rating >= 1 AND rating <= 5)),
    media_type TEXT CHECK (media_type IN ('image', 'video', 'other')),
    width INTEGER,
    height INTEGER,
    perceptual_hash INTEGER,
    UNIQUE(directory_id, filename)
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY,
    name TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS file_tags (
    file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (file_id, tag_id)
);

CREATE INDEX IF NOT EXISTS idx_files_hash ON files(hash);
CREATE INDEX IF NOT EXISTS idx_files_directory ON files(directory_id);
"""

_RECORD_QUERY = """
SELECT f.id, d.path, f.filename, f.hash, f.perceptual_hash, f.size,
       f.width, f.height, f.rating, f.media_type, f.mtime
FROM files f
JOIN directories d ON f.directory_id = d.id
"""

# Keep well under SQLite's bound-variable limit
_CHUNK_SIZE = 500


def _to_unsigned(value: Optional[int]) -> Optional[int]:
    """SQLite stores 64-bit fingerprints as signed integers."""
    if value is None:
        return None
    return value & 0xFFFFFFFFFFFFFFFF


def _to_signed(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    return value - (1 << 64) if value >= (1 << 63) else value


class SqliteCatalog:
    """Metadata source backed by the library's SQLite catalog."""

    def __init__(
        self,
        db_path: Path,
        library_root: Optional[Path] = None,
        create: bool = False,
    ):
        """
        Open a catalog.

        Args:
            db_path: Path to the SQLite database
            library_root: Directory file paths are relative to (default: db's parent)
            create: Create the database and schema if missing

        Raises:
            DataUnavailableError: If the catalog does not exist or cannot be opened
        """
        self.db_path = db_path
        self._library_root = library_root or db_path.parent
        self._lock = threading.Lock()
        self._version = 0

        if not create and not db_path.exists():
            raise DataUnavailableError(f"No catalog found at {db_path}")

        try:
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.execute("PRAGMA foreign_keys = ON")
            if create:
                self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise DataUnavailableError(f"Cannot open catalog {db_path}: {e}") from e

    @property
    def version(self) -> int:
        return self._version

    @property
    def library_root(self) -> Optional[Path]:
        return self._library_root

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def list_records(self) -> List[MediaRecord]:
        with self._lock:
            try:
                rows = self._conn.execute(_RECORD_QUERY + " ORDER BY f.id").fetchall()
                tags = self._load_tags(None)
            except sqlite3.Error as e:
                raise DataUnavailableError(f"Catalog query failed: {e}") from e

        records = [self._row_to_record(row, tags) for row in rows]
        logger.debug(f"Loaded {len(records)} records from {self.db_path}")
        return records

    def get_records(self, file_ids: Iterable[int]) -> Dict[int, MediaRecord]:
        ids = list(dict.fromkeys(file_ids))
        result: Dict[int, MediaRecord] = {}
        if not ids:
            return result

        with self._lock:
            try:
                for start in range(0, len(ids), _CHUNK_SIZE):
                    chunk = ids[start : start + _CHUNK_SIZE]
                    placeholders = ",".join("?" for _ in chunk)
                    rows = self._conn.execute(
                        _RECORD_QUERY + f" WHERE f.id IN ({placeholders})", chunk
                    ).fetchall()
                    tags = self._load_tags(chunk)
                    for row in rows:
                        record = self._row_to_record(row, tags)
                        result[record.id] = record
            except sqlite3.Error as e:
                raise DataUnavailableError(f"Catalog query failed: {e}") from e

        return result

    def remove_records(self, file_ids: Iterable[int]) -> None:
        ids = list(file_ids)
        if not ids:
            return

        with self._lock:
            try:
                with self._conn:
                    self._conn.executemany(
                        "DELETE FROM files WHERE id = ?", [(fid,) for fid in ids]
                    )
            except sqlite3.Error as e:
                raise DataUnavailableError(f"Catalog delete failed: {e}") from e
            self._version += 1

        logger.debug(f"Removed {len(ids)} rows from catalog")

    def add_record(self, record: MediaRecord) -> None:
        """
        Insert a record (and its directory and tags) into the catalog.

        Args:
            record: Record to insert; its id is used as the row id
        """
        with self._lock:
            with self._conn:
                self._conn.execute(
                    "INSERT OR IGNORE INTO directories (path) VALUES (?)",
                    (record.directory_path,),
                )
                (directory_id,) = self._conn.execute(
                    "SELECT id FROM directories WHERE path = ?",
                    (record.directory_path,),
                ).fetchone()
                self._conn.execute(
                    "INSERT INTO files (id, directory_id, filename, size, mtime, hash, "
                    "rating, media_type, width, height, perceptual_hash) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.id,
                        directory_id,
                        record.filename,
                        record.size_bytes,
                        record.modified_time or 0,
                        record.content_hash,
                        record.rating,
                        record.media_kind.value,
                        record.width,
                        record.height,
                        _to_signed(record.similarity_fingerprint),
                    ),
                )
                for tag in sorted(record.tags):
                    self._conn.execute(
                        "INSERT OR IGNORE INTO tags (name) VALUES (?)", (tag,)
                    )
                    self._conn.execute(
                        "INSERT OR IGNORE INTO file_tags (file_id, tag_id) "
                        "SELECT ?, id FROM tags WHERE name = ?",
                        (record.id, tag),
                    )
            self._version += 1

    def _load_tags(self, file_ids: Optional[List[int]]) -> Dict[int, List[str]]:
        query = (
            "SELECT ft.file_id, t.name FROM file_tags ft "
            "JOIN tags t ON ft.tag_id = t.id"
        )
        params: List[int] = []
        if file_ids is not None:
            query += f" WHERE ft.file_id IN ({','.join('?' for _ in file_ids)})"
            params = list(file_ids)

        tags: Dict[int, List[str]] = {}
        for file_id, name in self._conn.execute(query, params):
            tags.setdefault(file_id, []).append(name)
        return tags

    @staticmethod
    def _row_to_record(row: tuple, tags: Dict[int, List[str]]) -> MediaRecord:
        (
            file_id,
            dir_path,
            filename,
            content_hash,
            phash,
            size,
            width,
            height,
            rating,
            media_type,
            mtime,
        ) = row
        return MediaRecord(
            id=file_id,
            directory_path=dir_path,
            filename=filename,
            content_hash=content_hash,
            similarity_fingerprint=_to_unsigned(phash),
            size_bytes=size,
            width=width,
            height=height,
            rating=rating,
            tags=frozenset(tags.get(file_id, ())),
            media_kind=MediaKind.VIDEO if media_type == "video" else MediaKind.IMAGE,
            modified_time=mtime,
        )

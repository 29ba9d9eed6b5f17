"""Trash backends that move a single file out of the library."""

import shutil
from pathlib import Path
from typing import Optional

from send2trash import send2trash

from media_dedup.core.models import MediaRecord
from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)


class RecycleBinTrasher:
    """Moves files to the operating system's recycle bin."""

    def trash(self, path: Path, record: MediaRecord) -> Optional[str]:
        """
        Send a file to the recycle bin.

        Args:
            path: Absolute path of the file
            record: Catalog record of the file

        Returns:
            None on success, otherwise the failure reason
        """
        if not path.exists():
            return f"File not found: {path}"

        try:
            send2trash(str(path))
        except OSError as e:
            return f"Failed to move file to recycle bin: {e}"

        logger.debug(f"Moved to recycle bin: {path}")
        return None


class LibraryTrasher:
    """Moves files into a trash folder inside the library, mirroring their directories."""

    def __init__(self, trash_root: Path):
        """
        Initialize the trasher.

        Args:
            trash_root: Directory that receives trashed files
        """
        self.trash_root = trash_root

    def destination_for(self, record: MediaRecord) -> Path:
        """
        Pick a free destination path for a record inside the trash folder.

        Name clashes are resolved as name_2.ext, name_3.ext, ...
        """
        trash_dir = (
            self.trash_root / record.directory_path
            if record.directory_path
            else self.trash_root
        )
        trash_path = trash_dir / record.filename

        counter = 2
        while trash_path.exists():
            stem = Path(record.filename).stem
            suffix = Path(record.filename).suffix
            trash_path = trash_dir / f"{stem}_{counter}{suffix}"
            counter += 1

        return trash_path

    def trash(self, path: Path, record: MediaRecord) -> Optional[str]:
        if not path.exists():
            return f"File not found: {path}"

        trash_path = self.destination_for(record)
        try:
            trash_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return f"Failed to create trash dir: {e}"

        try:
            shutil.move(str(path), str(trash_path))
        except OSError as e:
            return f"Failed to move file: {e}"

        logger.debug(f"Trashed: {path} -> {trash_path}")
        return None

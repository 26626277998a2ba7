"""
Package byte storage on the local filesystem

Files live at <base_dir>/<version_id>/<package_id><ext>.
"""

from pathlib import Path
from typing import BinaryIO, Tuple
import hashlib
import os
import uuid

import structlog

from update_manager.core.errors import InvalidRequest, NotFound

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class PackageStorage:
    """Streams package uploads to disk and locates them for download"""

    def __init__(self, base_dir: str, max_bytes: int = 0):
        self.base_dir = Path(base_dir)
        self.max_bytes = max_bytes

    def path_for(self, version_id: uuid.UUID, package_id: uuid.UUID, file_name: str) -> Path:
        extension = os.path.splitext(file_name)[1]
        return self.base_dir / str(version_id) / f"{package_id}{extension}"

    def save(
        self,
        version_id: uuid.UUID,
        package_id: uuid.UUID,
        file_name: str,
        source: BinaryIO
    ) -> Tuple[Path, int, str]:
        """Copy source to its final path, hashing while streaming.

        Returns the path, the byte count and the hex SHA-256 digest. The
        partial file is removed when anything goes wrong.
        """
        path = self.path_for(version_id, package_id, file_name)
        path.parent.mkdir(parents=True, exist_ok=True)

        hasher = hashlib.sha256()
        size = 0
        try:
            with open(path, "wb") as target:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if self.max_bytes and size > self.max_bytes:
                        raise InvalidRequest(f"Package exceeds the maximum size of {self.max_bytes} bytes")
                    hasher.update(chunk)
                    target.write(chunk)
        except BaseException:
            self.remove(path)
            raise

        logger.info(f"Stored package {package_id} for version {version_id} ({size} bytes)")
        return path, size, hasher.hexdigest()

    def open_existing(self, version_id: uuid.UUID, package_id: uuid.UUID, file_name: str) -> Path:
        path = self.path_for(version_id, package_id, file_name)
        if not path.is_file():
            raise NotFound(f"Package file not found: {package_id}")
        return path

    def remove(self, path: Path):
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove package file {path}: {e}")

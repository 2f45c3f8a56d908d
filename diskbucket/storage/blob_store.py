"""Flat blob files inside a bucket directory.

Blobs are stored as ``<dir>/<key>.<extension>``. Writes go to a temporary
file which is fsynced and then renamed over the target, so a reader never
sees a half-written blob under the final name.
"""
from __future__ import annotations
import os
import shutil
from pathlib import Path
from typing import IO, Optional, Union
import logging

logger = logging.getLogger(__name__)

BUFFER_SIZE = 8 * 1024
TMP_SUFFIX = ".tmp"

BlobSource = Union[bytes, bytearray, memoryview, str, IO[bytes]]


class BlobStore:
    def __init__(self, directory: str | Path, extension: str = "blob") -> None:
        self.directory = Path(directory)
        self.extension = extension.lstrip(".")

    def name_for(self, key: str) -> str:
        return f"{key}.{self.extension}"

    def path_for(self, key: str) -> Path:
        return self.directory / self.name_for(key)

    def save(self, key: str, source: BlobSource) -> Path:
        """Copy `source` to the blob file for `key`, replacing any existing file.

        `source` may be bytes-like, a str (stored as UTF-8) or a readable
        binary stream. Streams are read to the end but not closed.
        """
        path = self.path_for(key)
        tmp = path.with_name(path.name + TMP_SUFFIX)
        try:
            with open(tmp, "wb") as f:
                if isinstance(source, str):
                    f.write(source.encode("utf-8"))
                elif isinstance(source, (bytes, bytearray, memoryview)):
                    f.write(bytes(source))
                else:
                    shutil.copyfileobj(source, f, BUFFER_SIZE)
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(path)
        finally:
            tmp.unlink(missing_ok=True)
        logger.debug("Stored blob %s (%d bytes)", path, path.stat().st_size)
        return path

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def size(self, key: str) -> Optional[int]:
        """Return the blob size in bytes, or None when it is not a regular file."""
        path = self.path_for(key)
        if not path.is_file():
            return None
        return path.stat().st_size

    def delete(self, key: str) -> bool:
        """Delete the blob for `key`; a missing file is not an error."""
        path = self.path_for(key)
        if not path.is_file():
            return False
        path.unlink()
        return True

"""Index file manager implementing the backup/commit/recover protocol.

An index rewrite always runs in three steps:

1. `backup()` renames the live index to ``<index>.bak`` so the previous
   content is safe and nothing is left at the canonical path.
2. `commit(lines)` writes the new content to the canonical path, verifies
   it and deletes the backup, or removes the new file and renames the backup
   back when verification fails.
3. `recover()` runs when every bucket operation enters and exits. If the
   canonical file is missing and a backup exists (a process died between
   steps 1 and 2) the backup becomes the index again.

At any interruption point exactly one of the two files holds a complete
index, and `recover()` puts it back at the canonical path.
"""
from __future__ import annotations
import os
from pathlib import Path
from typing import List, Optional, Sequence
import logging

from .codec import Entry, parse_lines

logger = logging.getLogger(__name__)

INDEX_NAME = "bucket.map"
BACKUP_SUFFIX = ".bak"


class IndexFile:
    def __init__(
        self,
        directory: str | Path,
        name: str = INDEX_NAME,
        backup_suffix: str = BACKUP_SUFFIX,
    ) -> None:
        self.directory = Path(directory)
        self.path = self.directory / name
        self.backup_path = self.path.with_name(self.path.name + backup_suffix)

    def open_or_create(self) -> Path:
        if not self.path.exists():
            self.path.touch()
        return self.path

    def backup(self) -> Optional[Path]:
        """Move the live index aside; return the backup path or None on failure."""
        self.open_or_create()
        try:
            os.replace(self.path, self.backup_path)
        except OSError:
            logger.exception("Failed to back up index %s", self.path)
            return None
        if self.path.exists():
            # someone recreated the index between the rename and this check
            logger.warning("Index %s reappeared after backup; aborting update", self.path)
            self.backup_path.unlink(missing_ok=True)
            return None
        return self.backup_path

    def commit(self, lines: Sequence[str]) -> bool:
        """Write `lines` as the new index, or roll back to the backup."""
        payload = "".join(f"{line}\n" for line in lines).encode("utf-8")
        try:
            with open(self.path, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError:
            logger.exception("Failed to write index %s", self.path)
            self._rollback()
            return False

        if not self._verify(len(payload)):
            logger.warning("Index %s failed verification; rolling back", self.path)
            self._rollback()
            return False

        self.backup_path.unlink(missing_ok=True)
        return True

    def recover(self) -> None:
        if self.path.exists() or not self.backup_path.exists():
            return
        logger.warning("Restoring index %s from backup", self.path)
        try:
            os.replace(self.backup_path, self.path)
        except FileNotFoundError:
            # a concurrent reader restored it first
            if not self.path.exists():
                raise

    def read_lines(self, path: Optional[Path] = None) -> List[str]:
        """Return the non-blank lines of the index (or of `path`).

        Lines that are not valid UTF-8 are skipped with a warning.
        """
        target = path or self.path
        if not target.is_file():
            return []
        lines: List[str] = []
        with open(target, "rb") as f:
            for raw in f:
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning("Skipping undecodable index line %r in %s", raw, target)
                    continue
                if line.strip():
                    lines.append(line.rstrip("\r\n"))
        return lines

    def read_entries(self, path: Optional[Path] = None) -> List[Entry]:
        return parse_lines(self.read_lines(path))

    def _verify(self, expected_size: int) -> bool:
        # an index with no entries is legitimately empty
        if not self.path.is_file():
            return False
        return self.path.stat().st_size == expected_size

    def _rollback(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
            if self.backup_path.exists():
                os.replace(self.backup_path, self.path)
        except OSError:
            # recover() retries the rename when the operation exits
            logger.exception("Failed to roll back index %s", self.path)

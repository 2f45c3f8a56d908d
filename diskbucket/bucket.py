"""Bucket facade composing the blob store, index file, guard and gc.

Every public operation runs inside the bucket's `ConcurrencyGuard` and
returns a value instead of raising: `put` returns a `Result`, `get` a path
or None, `delete` a bool and `ls` a (possibly empty) list. Lock timeouts and
I/O errors are logged and converted here.
"""
from __future__ import annotations
import shutil
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional
import logging

from diskbucket.config import BucketConfig
from diskbucket.errors import ErrorKind, LockTimeout, Result
from diskbucket.storage.blob_store import BlobSource, BlobStore
from diskbucket.storage.codec import Entry, serialize, serialize_lines
from diskbucket.storage.eviction import EvictionEngine, EvictionReport
from diskbucket.storage.guard import ConcurrencyGuard
from diskbucket.storage.index_file import IndexFile
from diskbucket.storage.interfaces import DirectoryResolver, StaticRootResolver
from diskbucket.validation import validate_fields

logger = logging.getLogger(__name__)

Action = Callable[[IndexFile, BlobStore], Result]


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def _find(entries: Iterable[Entry], key: str) -> Optional[Entry]:
    for entry in entries:
        if entry.key == key:
            return entry
    return None


class Bucket:
    def __init__(
        self,
        name: str,
        config: Optional[BucketConfig] = None,
        resolver: Optional[DirectoryResolver] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.name = name
        self.config = config or BucketConfig()
        self.resolver = resolver or StaticRootResolver(self.config.data_dir)
        self._clock = clock
        self._guard = ConcurrencyGuard(timeout=self.config.lock_timeout)

    def __repr__(self) -> str:
        return f"Bucket(name={self.name!r})"

    def _bucket_path(self) -> Path:
        return Path(self.resolver.root_dir(self.name)) / self.config.namespace / self.name

    @property
    def directory(self) -> Path:
        """The bucket directory, created if it does not exist."""
        path = self._bucket_path()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _index(self, directory: Path) -> IndexFile:
        return IndexFile(directory, self.config.index_name, self.config.backup_suffix)

    def _blobs(self, directory: Path) -> BlobStore:
        return BlobStore(directory, self.config.blob_extension)

    def _recover(self) -> None:
        self._index(self._bucket_path()).recover()

    def _execute(self, operation: str, action: Action, shared: bool = False) -> Result:
        try:
            with self._guard.hold(shared=shared, cleanup=self._recover):
                directory = self.directory
                index = self._index(directory)
                # an earlier process may have died between backup and commit
                index.recover()
                return action(index, self._blobs(directory))
        except LockTimeout as e:
            logger.warning("%s on bucket %r timed out: %s", operation, self.name, e)
            return Result.failure(ErrorKind.LOCK_TIMEOUT, str(e), bucket=self.name, operation=operation)
        except OSError as e:
            logger.exception("%s on bucket %r failed", operation, self.name)
            return Result.failure(ErrorKind.IO_FAILURE, str(e), bucket=self.name, operation=operation)
        except ValueError as e:
            # undecodable paths or payloads surface as ValueError rather than OSError
            logger.exception("%s on bucket %r failed", operation, self.name)
            return Result.failure(ErrorKind.IO_FAILURE, str(e), bucket=self.name, operation=operation)

    # -- public operations -------------------------------------------------

    def put(self, key: str, blob: BlobSource, meta: str = "") -> Result[Path]:
        """Store `blob` under `key`, replacing any previous entry for it."""
        blob_name = self._blobs(self._bucket_path()).name_for(key)
        error = validate_fields(key, meta, blob_name, self.config.index_name)
        if error is not None:
            logger.debug("Rejected put on bucket %r: %s", self.name, error)
            return Result.from_error(error)

        def action(index: IndexFile, blobs: BlobStore) -> Result:
            backup = index.backup()
            if backup is None:
                return Result.failure(ErrorKind.IO_FAILURE, "index backup failed", key=key)
            entries = index.read_entries(backup)
            path = blobs.save(key, blob)
            retained = [e for e in entries if e.key != key]
            retained.append(Entry(key=key, meta=meta, count=0, stamp=self._clock()))
            if not index.commit(serialize_lines(retained)):
                self._discard_blob(blobs, key)
                return Result.failure(ErrorKind.INDEX_COMMIT, "index commit failed", key=key)
            return Result.success(path)

        return self._execute("put", action)

    def get(self, key: str) -> Optional[Path]:
        """Return the blob path for `key` and bump its access count."""
        if not key:
            return None

        def action(index: IndexFile, blobs: BlobStore) -> Result:
            entry = _find(index.read_entries(), key)
            if entry is None:
                return Result.failure(ErrorKind.NOT_FOUND, "no such key", key=key)
            if not blobs.exists(key):
                return Result.failure(ErrorKind.NOT_FOUND, "blob file missing", key=key)
            path = blobs.path_for(key)

            backup = index.backup()
            if backup is None:
                logger.warning("Access count for %r not updated: index backup failed", key)
                return Result.success(path)
            lines = [serialize(e, increase=e.key == key) for e in index.read_entries(backup)]
            if not index.commit(lines):
                logger.warning("Access count for %r not updated: index commit failed", key)
            return Result.success(path)

        return self._execute("get", action).value

    def delete(self, keys: Iterable[str]) -> bool:
        """Delete the entries and blobs of `keys`; False when none matched."""
        if isinstance(keys, str):
            keys = [keys]
        wanted = list(keys)
        if not wanted:
            return False
        result = self._execute("delete", lambda index, blobs: self._delete_keys(index, blobs, wanted))
        return bool(result.value)

    def ls(self) -> List[str]:
        """Snapshot of the raw index lines."""
        result = self._execute("ls", lambda index, blobs: Result.success(index.read_lines()), shared=True)
        return result.value or []

    def entries(self) -> List[Entry]:
        result = self._execute("entries", lambda index, blobs: Result.success(index.read_entries()), shared=True)
        return result.value or []

    def exists(self, key: str) -> bool:
        if not key:
            return False
        result = self._execute(
            "exists",
            lambda index, blobs: Result.success(_find(index.read_entries(), key) is not None),
            shared=True,
        )
        return bool(result.value)

    def clean(self) -> None:
        """Remove the bucket directory with its index and every blob."""

        def action(index: IndexFile, blobs: BlobStore) -> Result:
            shutil.rmtree(index.directory)
            logger.info("Cleaned bucket %r at %s", self.name, index.directory)
            return Result.success(None)

        self._execute("clean", action)

    def gc(self, byte_budget: int, entry_capacity: int) -> None:
        """Sweep orphaned files and evict entries beyond the given budgets."""

        def action(index: IndexFile, blobs: BlobStore) -> Result:
            index.open_or_create()
            report: EvictionReport = EvictionEngine(index, blobs).collect(
                byte_budget, entry_capacity, self._clock()
            )
            if report.evicted:
                result = self._delete_keys(index, blobs, report.evicted)
                if not result.value:
                    logger.warning("gc on bucket %r could not evict %s", self.name, report.evicted)
                    return result
            logger.info(
                "gc on bucket %r: %d orphan(s) removed, %d evicted, %d kept (%d bytes)",
                self.name,
                len(report.orphans),
                len(report.evicted),
                len(report.kept),
                report.kept_bytes,
            )
            return Result.success(report)

        self._execute("gc", action)

    # -- helpers -----------------------------------------------------------

    def _delete_keys(self, index: IndexFile, blobs: BlobStore, keys: List[str]) -> Result:
        wanted = set(keys)
        entries = index.read_entries()
        hits = [e for e in entries if e.key in wanted]
        if not hits:
            return Result.success(False)
        backup = index.backup()
        if backup is None:
            return Result.failure(ErrorKind.IO_FAILURE, "index backup failed", keys=keys)
        for entry in hits:
            self._discard_blob(blobs, entry.key)
        remaining = [e for e in index.read_entries(backup) if e.key not in wanted]
        if not index.commit(serialize_lines(remaining)):
            return Result.failure(ErrorKind.INDEX_COMMIT, "index commit failed", keys=keys)
        logger.debug("Deleted %d entr(ies) from bucket %r", len(hits), self.name)
        return Result.success(True)

    def _discard_blob(self, blobs: BlobStore, key: str) -> None:
        try:
            blobs.delete(key)
        except OSError:
            logger.warning("Could not delete blob for %r in bucket %r", key, self.name, exc_info=True)

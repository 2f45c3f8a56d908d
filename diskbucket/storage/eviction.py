"""Garbage collection for a bucket directory.

Collection runs in two passes:

- the orphan sweep removes every file in the directory that is neither the
  index nor the blob of an indexed entry;
- ranked eviction orders entries by usage score (``count / age``) and marks
  those that do not fit the byte budget or the entry capacity.

The engine only decides and sweeps; removing marked entries from the index
is left to the caller so it shares the delete path used by `Bucket.delete`.
"""
from __future__ import annotations
import math
import shutil
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence
import logging

from .blob_store import BlobStore
from .codec import Entry
from .index_file import IndexFile

logger = logging.getLogger(__name__)


@dataclass
class EvictionReport:
    orphans: List[str] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    kept_bytes: int = 0


def usage_score(entry: Entry, now: int) -> float:
    """Return ``count / age`` in accesses per millisecond.

    An entry whose age is zero (or negative, after a clock step) scores
    infinity so freshly written entries are never evicted for being new.
    """
    age = now - entry.stamp
    if age <= 0:
        return math.inf
    return entry.count / age


def rank(entries: Sequence[Entry], now: int) -> List[Entry]:
    # sorted() is stable, so equal scores keep their index order
    return sorted(entries, key=lambda e: usage_score(e, now), reverse=True)


def plan_eviction(
    entries: Sequence[Entry],
    size_of: Callable[[Entry], Optional[int]],
    byte_budget: int,
    entry_capacity: int,
    now: int,
) -> EvictionReport:
    """Decide which entries to keep and which to evict.

    `size_of` returns the blob size of an entry, or None when its blob is
    missing. Entries are walked in rank order; once one entry overflows the
    byte budget it and every lower-ranked entry are evicted. Survivors past
    `entry_capacity` are evicted as well.
    """
    report = EvictionReport()
    total = 0
    overflowed = byte_budget <= 0
    survivors: List[Entry] = []
    for entry in rank(entries, now):
        size = size_of(entry)
        if size is None:
            report.evicted.append(entry.key)
            continue
        if overflowed or total + size > byte_budget:
            overflowed = True
            report.evicted.append(entry.key)
            continue
        total += size
        survivors.append(entry)

    capacity = max(entry_capacity, 0)
    for entry in survivors[capacity:]:
        report.evicted.append(entry.key)
        total -= size_of(entry) or 0
    report.kept = [e.key for e in survivors[:capacity]]
    report.kept_bytes = total
    return report


class EvictionEngine:
    def __init__(self, index: IndexFile, blobs: BlobStore) -> None:
        self.index = index
        self.blobs = blobs

    def sweep_orphans(self, entries: Sequence[Entry]) -> List[str]:
        """Delete files that no index entry accounts for; return their names."""
        known = {self.blobs.name_for(e.key) for e in entries}
        known.add(self.index.path.name)
        removed: List[str] = []
        for path in sorted(self.index.directory.iterdir()):
            if path.name in known:
                continue
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
            removed.append(path.name)
        if removed:
            logger.info("Removed %d orphaned file(s) from %s", len(removed), self.index.directory)
        return removed

    def collect(self, byte_budget: int, entry_capacity: int, now: int) -> EvictionReport:
        entries = self.index.read_entries()
        orphans = self.sweep_orphans(entries)
        report = plan_eviction(entries, lambda e: self.blobs.size(e.key), byte_budget, entry_capacity, now)
        report.orphans = orphans
        return report

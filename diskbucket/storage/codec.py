"""Line codec for the bucket index file.

Each index line holds one entry as four comma-joined fields:
``key,meta,count,stamp``. Field values never contain the delimiter; that is
enforced when entries are created, not by escaping here.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

DELIMITER = ","
FIELD_COUNT = 4
KEY_MAX_LENGTH = 48
META_MAX_LENGTH = 64


@dataclass(frozen=True)
class Entry:
    key: str
    meta: str = ""
    count: int = 0
    stamp: int = 0


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse(line: str) -> Optional[Entry]:
    """Parse one index line; return None unless it has exactly four fields.

    Non-numeric `count`/`stamp` fields parse as 0.
    """
    parts = line.rstrip("\r\n").split(DELIMITER)
    if len(parts) != FIELD_COUNT:
        return None
    key, meta, count, stamp = parts
    return Entry(key=key, meta=meta, count=_to_int(count), stamp=_to_int(stamp))


def serialize(entry: Entry, increase: bool = False) -> str:
    count = entry.count + 1 if increase else entry.count
    return DELIMITER.join((entry.key, entry.meta, str(count), str(entry.stamp)))


def parse_lines(lines: Iterable[str]) -> List[Entry]:
    entries: List[Entry] = []
    for line in lines:
        if not line.strip():
            continue
        entry = parse(line)
        if entry is None:
            logger.warning("Skipping corrupt index line %r", line)
            continue
        entries.append(entry)
    return entries


def serialize_lines(entries: Iterable[Entry]) -> List[str]:
    return [serialize(e) for e in entries]

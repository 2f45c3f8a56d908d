"""Storage components used by `diskbucket.Bucket`."""

from .blob_store import BlobStore
from .codec import Entry, parse, serialize
from .eviction import EvictionEngine, EvictionReport
from .guard import ConcurrencyGuard, FairReadWriteLock
from .index_file import IndexFile
from .interfaces import DirectoryResolver, StaticRootResolver

__all__ = [
    "BlobStore",
    "Entry",
    "parse",
    "serialize",
    "EvictionEngine",
    "EvictionReport",
    "ConcurrencyGuard",
    "FairReadWriteLock",
    "IndexFile",
    "DirectoryResolver",
    "StaticRootResolver",
]

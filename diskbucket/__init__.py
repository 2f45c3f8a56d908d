"""File-backed key-value buckets with crash-tolerant index updates."""

from .bucket import Bucket
from .config import BucketConfig, load_config, save_config
from .errors import BucketError, ErrorKind, Result
from .registry import BucketRegistry
from .storage.codec import Entry

__all__ = [
    "Bucket",
    "BucketConfig",
    "BucketError",
    "BucketRegistry",
    "Entry",
    "ErrorKind",
    "Result",
    "load_config",
    "save_config",
]

import threading
import logging
from typing import Dict, List, Optional

from diskbucket.bucket import Bucket
from diskbucket.config import BucketConfig
from diskbucket.storage.interfaces import DirectoryResolver, StaticRootResolver

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = ("/", "\\", "\r", "\n")


class BucketRegistry:
    """Explicit registry handing out one `Bucket` per name.

    Buckets are created lazily on the first `acquire` and cached until
    `release`. Keeping a single instance per name is what makes the
    in-process bucket lock exclusive, so callers should share one registry
    rather than constructing `Bucket` objects directly.
    """

    def __init__(
        self,
        config: Optional[BucketConfig] = None,
        resolver: Optional[DirectoryResolver] = None,
    ) -> None:
        self.config = config or BucketConfig()
        self.resolver = resolver or StaticRootResolver(self.config.data_dir)
        self._lock = threading.Lock()
        self._buckets: Dict[str, Bucket] = {}

    def acquire(self, name: str) -> Bucket:
        if not name or not name.strip() or name in (".", ".."):
            raise ValueError(f"invalid bucket name {name!r}")
        if any(c in name for c in _INVALID_NAME_CHARS):
            raise ValueError(f"invalid bucket name {name!r}")
        with self._lock:
            bucket = self._buckets.get(name)
            if bucket is None:
                bucket = Bucket(name, config=self.config, resolver=self.resolver)
                self._buckets[name] = bucket
                logger.debug("Created bucket handle %r", name)
            return bucket

    def release(self, name: str) -> bool:
        with self._lock:
            return self._buckets.pop(name, None) is not None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._buckets)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._buckets

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

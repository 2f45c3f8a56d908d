from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class DirectoryResolver(Protocol):
    """Supplies the writable root directory for a bucket.

    The bucket appends its namespace segment and its own name to the
    returned path and creates any missing directories itself.
    """

    def root_dir(self, bucket: str) -> Path: ...


class StaticRootResolver:
    """Resolve every bucket under one fixed data directory."""

    def __init__(self, data_dir: str | Path = "./data") -> None:
        self.data_dir = Path(data_dir)

    def root_dir(self, bucket: str) -> Path:
        return self.data_dir

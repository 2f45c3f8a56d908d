"""Bucket configuration loaded from a YAML file.

Example ``bucket_config.yml``::

    data_dir: ./data
    namespace: DiskBucket
    lock_timeout: 1.0
    log_level: INFO
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any
import yaml

DEFAULT_CONFIG_PATH = Path("data/config/bucket_config.yml")


@dataclass
class BucketConfig:
    data_dir: str = "./data"
    namespace: str = "DiskBucket"
    index_name: str = "bucket.map"
    backup_suffix: str = ".bak"
    blob_extension: str = "blob"
    lock_timeout: float = 1.0
    log_level: str = "WARNING"


def load_config(path: str | Path | None = None) -> BucketConfig:
    """Load a `BucketConfig` from YAML; a missing file yields the defaults."""
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        return BucketConfig()
    with cfg_path.open("r", encoding="utf-8") as f:
        try:
            data: Any = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError("invalid config format: parse error") from e
    if data is None:
        return BucketConfig()
    if not isinstance(data, dict):
        raise ValueError("invalid config format: expected mapping")

    known = {f.name for f in fields(BucketConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"invalid config format: unknown keys {unknown}")
    cfg = BucketConfig(**data)
    try:
        cfg.lock_timeout = float(cfg.lock_timeout)
    except (TypeError, ValueError) as e:
        raise ValueError("invalid config format: lock_timeout must be a number") from e
    return cfg


def save_config(path: str | Path, cfg: BucketConfig) -> None:
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    payload = yaml.safe_dump(asdict(cfg), sort_keys=False)
    with cfg_path.open("w", encoding="utf-8") as f:
        f.write(payload)

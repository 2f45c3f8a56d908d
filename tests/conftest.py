"""Pytest configuration helpers for test collection.

Ensure the project root is on sys.path so tests can import the package
without requiring PYTHONPATH to be set externally.
"""
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    # Insert repo root (one level up from tests/) to sys.path
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


@pytest.fixture
def bucket_config(tmp_path):
    from diskbucket.config import BucketConfig
    return BucketConfig(data_dir=str(tmp_path / "data"), lock_timeout=0.2)


@pytest.fixture
def registry(bucket_config):
    from diskbucket.registry import BucketRegistry
    return BucketRegistry(config=bucket_config)

"""
Pytest configuration and shared fixtures for backup-storage tests.

This module provides:
- Isolated storage roots under tmp_path
- Connected local backend fixtures
- Reader helpers for streaming writes
"""

import logging
from pathlib import Path
from typing import AsyncGenerator, List, Tuple
from unittest.mock import MagicMock

import pytest
import structlog

from backup_storage.core.config import LocalConfig
from backup_storage.storage.local import LocalStorageBackend
from backup_storage.storage.types import RemoteFile


# ============================================================================
# Test environment fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_env(tmp_path: Path) -> dict:
    """Create isolated storage roots.

    Returns:
        dict: Paths of the primary and object disk roots
    """
    base_path = tmp_path / "backup"
    object_disk_path = tmp_path / "object_disks"

    return {
        "base_path": str(base_path),
        "object_disk_path": str(object_disk_path),
        "tmp_path": tmp_path,
    }


@pytest.fixture
def local_config(test_env: dict) -> LocalConfig:
    """Backend configuration with both roots set."""
    return LocalConfig(
        path=test_env["base_path"],
        object_disk_path=test_env["object_disk_path"],
        debug=True,
    )


# ============================================================================
# Storage fixtures
# ============================================================================

@pytest.fixture
def mock_logger() -> MagicMock:
    """Logging collaborator that records calls.

    bind() hands back the same mock so events logged by a backend stay
    visible on it.
    """
    logger = MagicMock()
    logger.bind.return_value = logger
    return logger


@pytest.fixture
def restore_logging():
    """Undo setup_logging() on the root logger and structlog after a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
async def storage(local_config: LocalConfig, mock_logger: MagicMock) -> AsyncGenerator[LocalStorageBackend, None]:
    """Connected local backend.

    Yields:
        LocalStorageBackend: Backend with both roots created
    """
    backend = LocalStorageBackend(local_config, logger=mock_logger)
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def base_dir(test_env: dict) -> Path:
    return Path(test_env["base_path"])


@pytest.fixture
def object_disk_dir(test_env: dict) -> Path:
    return Path(test_env["object_disk_path"])


# ============================================================================
# Test data fixtures
# ============================================================================

@pytest.fixture
def sample_bytes() -> bytes:
    """Payload spanning several copy chunks."""
    return bytes(range(256)) * 9000


class FailingReader:
    """Reader that returns data once and then fails, like a dropped connection."""

    def __init__(self, first_chunk: bytes):
        self._first_chunk = first_chunk
        self.calls = 0

    def read(self, size: int = -1) -> bytes:
        self.calls += 1
        if self.calls == 1:
            return self._first_chunk
        raise OSError("connection reset while streaming")


@pytest.fixture
def failing_reader() -> FailingReader:
    return FailingReader(b"partial-data" * 100)


class Collector:
    """Walk visitor recording every entry it receives."""

    def __init__(self):
        self.entries: List[RemoteFile] = []

    async def __call__(self, entry: RemoteFile) -> None:
        self.entries.append(entry)

    @property
    def names(self) -> List[str]:
        return sorted(e.name for e in self.entries)


@pytest.fixture
def collector() -> Collector:
    return Collector()


def write_tree(root: Path, files: List[Tuple[str, bytes]]) -> None:
    """Create files (relative path, content) under root."""
    for relative, content in files:
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)


@pytest.fixture
def write_files():
    """Helper fixture exposing write_tree to tests."""
    return write_tree

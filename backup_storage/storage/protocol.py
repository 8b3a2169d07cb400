"""Storage backend protocol definition."""

import asyncio
from typing import (
    Any,
    AsyncContextManager,
    Awaitable,
    BinaryIO,
    Callable,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from backup_storage.storage.types import RemoteFile


WalkCallback = Callable[[RemoteFile], Awaitable[None]]


class StorageLogger(Protocol):
    """Logging collaborator injected into backends.

    Satisfied by structlog bound loggers; events are snake_case names with
    keyword context. Backends bind their own identity once via bind().
    """

    def debug(self, event: str, **kwargs: Any) -> Any:
        ...

    def info(self, event: str, **kwargs: Any) -> Any:
        ...

    def warning(self, event: str, **kwargs: Any) -> Any:
        ...

    def error(self, event: str, **kwargs: Any) -> Any:
        ...

    def bind(self, **kwargs: Any) -> "StorageLogger":
        ...


@runtime_checkable
class RemoteStorage(Protocol):
    """Protocol implemented by every backup storage backend.

    Upload, download and retention code talks to this interface only, so the
    local filesystem backend and network backends are interchangeable.
    """

    @property
    def kind(self) -> str:
        """Short backend identifier, e.g. "LOCAL"."""
        ...

    async def connect(self) -> None:
        """Prepare the backend for use (create roots, open sessions)."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...

    async def stat_file(self, key: str) -> RemoteFile:
        """Describe one stored file.

        Raises:
            NotFoundError: If the key does not exist
        """
        ...

    async def stat_file_absolute(self, path: str) -> RemoteFile:
        """Describe a file addressed by an already vetted absolute path."""
        ...

    def get_file_reader(self, key: str) -> AsyncContextManager[Any]:
        """Open a stored file for reading.

        Usage:
            async with storage.get_file_reader("backup1/metadata.json") as reader:
                data = await reader.read()
        """
        ...

    def get_file_reader_absolute(self, path: str) -> AsyncContextManager[Any]:
        """Open a file addressed by an absolute path for reading."""
        ...

    def get_file_reader_with_local_path(
        self, key: str, local_path: str, remote_size: int
    ) -> AsyncContextManager[Any]:
        """Open a stored file for reading, with a hint of the local staging path."""
        ...

    async def put_file(self, key: str, reader: BinaryIO, expected_size: int = -1) -> int:
        """Store all bytes of reader under key. Returns bytes written."""
        ...

    async def put_file_absolute(self, path: str, reader: BinaryIO, expected_size: int = -1) -> int:
        """Store all bytes of reader at an absolute path. Returns bytes written."""
        ...

    async def delete_file(self, key: str) -> None:
        """Delete a key; deleting a missing key succeeds."""
        ...

    async def delete_file_from_object_disk_backup(self, key: str) -> None:
        """Delete a key from the object disk key space."""
        ...

    async def copy_object(self, src_size: int, src_bucket: str, src_key: str, dst_key: str) -> int:
        """Copy src_key into the object disk key space. Returns bytes copied."""
        ...

    async def walk(
        self,
        prefix: str,
        recursive: bool,
        process: WalkCallback,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Call process once per file found under prefix."""
        ...

    async def walk_absolute(
        self,
        prefix: str,
        recursive: bool,
        process: WalkCallback,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Same as walk, for an absolute prefix."""
        ...


@runtime_checkable
class BatchDeleter(Protocol):
    """Optional protocol for backends able to delete many keys per call."""

    async def delete_keys_batch(
        self, keys: List[str], cancel_event: Optional[asyncio.Event] = None
    ) -> None:
        """Delete keys best-effort.

        Raises:
            BatchDeleteError: If one or more keys failed
            OperationCancelledError: If cancel_event fired
        """
        ...

    async def delete_keys_from_object_disk_backup_batch(
        self, keys: List[str], cancel_event: Optional[asyncio.Event] = None
    ) -> None:
        """Delete keys from the object disk key space best-effort."""
        ...

"""Local filesystem storage backend."""

import asyncio
import inspect
import os
import shutil
import stat
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, BinaryIO, List, Optional

import aiofiles
import aiofiles.os

from backup_storage.core.config import LocalConfig
from backup_storage.core.errors import (
    BatchDeleteError,
    ErrorCode,
    KeyFailure,
    NotFoundError,
    ObjectDiskNotConfiguredError,
    OperationCancelledError,
    PathEscapeError,
    RootDeleteRefusedError,
    SizeMismatchError,
    StorageError,
)
from backup_storage.core.logging_config import get_logger
from backup_storage.storage.paths import contained_path
from backup_storage.storage.protocol import StorageLogger, WalkCallback
from backup_storage.storage.types import RemoteFile


COPY_CHUNK_SIZE = 1024 * 1024

_rmtree = aiofiles.os.wrap(shutil.rmtree)


async def _read_chunk(reader: Any, size: int = COPY_CHUNK_SIZE) -> bytes:
    """Read from a sync file object or an aiofiles handle."""
    chunk = reader.read(size)
    if inspect.isawaitable(chunk):
        chunk = await chunk
    return chunk


def _check_cancelled(cancel_event: Optional[asyncio.Event], operation: str, processed: int = 0) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(operation, processed)


class LocalStorageBackend:
    """Local filesystem implementation of RemoteStorage and BatchDeleter.

    Keys map verbatim onto paths under `config.path`; object disk copies land
    under `config.object_disk_path`. Every key based operation goes through
    contained_path() first, the *_absolute variants trust their caller.

    The backend keeps no state besides its configuration and never locks:
    callers must not write or delete the same key concurrently.
    """

    def __init__(self, config: LocalConfig, logger: Optional[StorageLogger] = None):
        """Initialize local storage backend.

        Args:
            config: Backend configuration
            logger: Logging collaborator, defaults to this module's structlog logger
        """
        self.config = config
        logger = logger if logger is not None else get_logger(__name__)
        self.logger = logger.bind(backend=self.kind, root=config.path)

    @property
    def kind(self) -> str:
        return "LOCAL"

    def _debug(self, event: str, **kwargs: Any) -> None:
        if self.config.debug:
            self.logger.info(event, **kwargs)

    def _object_disk_base(self, operation: str) -> str:
        if not self.config.object_disk_path:
            raise ObjectDiskNotConfiguredError(operation)
        return self.config.object_disk_path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Create the configured root directories.

        Raises:
            StorageError: If no base path is configured
            OSError: If a root directory cannot be created
        """
        if not self.config.path:
            raise StorageError(ErrorCode.CONFIG_MISSING_PATH, "local path is required")

        roots = [self.config.path]
        if self.config.object_disk_path:
            roots.append(self.config.object_disk_path)

        for root in roots:
            try:
                await aiofiles.os.makedirs(root, mode=self.config.dir_mode, exist_ok=True)
            except OSError as exc:
                self.logger.error(
                    "local_connect_failed",
                    path=root,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise

        self._debug(
            "local_connected",
            object_disk_path=self.config.object_disk_path or None,
        )

    async def close(self) -> None:
        self._debug("local_closed")

    # ------------------------------------------------------------------
    # Stat
    # ------------------------------------------------------------------

    async def stat_file(self, key: str) -> RemoteFile:
        return await self.stat_file_absolute(contained_path(self.config.path, key))

    async def stat_file_absolute(self, path: str) -> RemoteFile:
        """Describe the file at path.

        Raises:
            NotFoundError: If nothing exists at path
            OSError: Any other stat failure, unchanged
        """
        try:
            st = await aiofiles.os.stat(path)
        except FileNotFoundError:
            self._debug("local_stat_not_found", path=path)
            raise NotFoundError(path) from None
        except OSError as exc:
            self._debug("local_stat_failed", path=path, error=str(exc))
            raise
        return RemoteFile.from_stat(os.path.basename(path), st)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def get_file_reader(self, key: str) -> AsyncIterator[Any]:
        path = contained_path(self.config.path, key)
        async with self.get_file_reader_absolute(path) as reader:
            yield reader

    @asynccontextmanager
    async def get_file_reader_absolute(self, path: str) -> AsyncIterator[Any]:
        """Open path for binary reading; the handle is closed on exit."""
        self._debug("local_open_read", path=path)
        try:
            reader = await aiofiles.open(path, "rb")
        except FileNotFoundError:
            raise NotFoundError(path) from None
        try:
            yield reader
        finally:
            await reader.close()

    def get_file_reader_with_local_path(self, key: str, local_path: str, remote_size: int):
        # local_path and remote_size only matter to network backends
        return self.get_file_reader(key)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def put_file(self, key: str, reader: BinaryIO, expected_size: int = -1) -> int:
        path = contained_path(self.config.path, key)
        return await self.put_file_absolute(path, reader, expected_size)

    async def put_file_absolute(self, path: str, reader: BinaryIO, expected_size: int = -1) -> int:
        """Stream reader into path, creating parent directories.

        Args:
            path: Destination file
            reader: Object with read(size), sync or async
            expected_size: Announced size; checked only when verify_size is on

        Returns:
            int: Bytes written

        Nothing is left at path if any step fails.
        """
        written = await self._write_stream(path, reader, expected_size)
        self._debug("local_put_file", path=path, bytes_written=written, expected_size=expected_size)
        return written

    async def _write_stream(self, path: str, reader: Any, expected_size: int = -1) -> int:
        parent = os.path.dirname(path)
        await aiofiles.os.makedirs(parent, mode=self.config.dir_mode, exist_ok=True)

        # Written next to the destination so the final replace stays on one filesystem
        tmp_path = os.path.join(parent, f".{os.path.basename(path)}.tmp-{uuid.uuid4().hex[:12]}")
        written = 0
        try:
            async with aiofiles.open(tmp_path, "wb") as dst:
                while chunk := await _read_chunk(reader):
                    await dst.write(chunk)
                    written += len(chunk)

            if self.config.verify_size and expected_size >= 0 and written != expected_size:
                raise SizeMismatchError(path, expected_size, written)

            await aiofiles.os.replace(tmp_path, path)
        except BaseException:
            await self._discard_partial(tmp_path)
            raise

        return written

    async def _discard_partial(self, path: str) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            self.logger.warning("local_partial_file_remove_failed", path=path, error=str(exc))

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_file(self, key: str) -> None:
        self._debug("local_delete", key=key)
        await self._remove_all(self._deletable_path(self.config.path, key))

    async def delete_file_from_object_disk_backup(self, key: str) -> None:
        self._debug("local_delete_from_object_disk_backup", key=key)
        base = self._object_disk_base("delete_file_from_object_disk_backup")
        await self._remove_all(self._deletable_path(base, key))

    def _deletable_path(self, base_path: str, key: str) -> str:
        """Resolve key for deletion; the root itself is never a delete target."""
        path = contained_path(base_path, key)
        if path == os.path.abspath(base_path):
            self.logger.warning("local_delete_root_refused", key=key, base_path=base_path)
            raise RootDeleteRefusedError(key, base_path)
        return path

    async def _remove_all(self, path: str) -> None:
        """Remove a file or a whole directory tree; a missing path is fine."""
        try:
            st = await aiofiles.os.stat(path, follow_symlinks=False)
            if stat.S_ISDIR(st.st_mode):
                await _rmtree(path)
            else:
                await aiofiles.os.remove(path)
        except FileNotFoundError:
            return

    async def delete_keys_batch(
        self, keys: List[str], cancel_event: Optional[asyncio.Event] = None
    ) -> None:
        if not keys:
            return
        self._debug("local_batch_delete_started", keys=len(keys))
        await self._delete_keys_batch(self.config.path, keys, cancel_event)

    async def delete_keys_from_object_disk_backup_batch(
        self, keys: List[str], cancel_event: Optional[asyncio.Event] = None
    ) -> None:
        if not keys:
            return
        base = self._object_disk_base("delete_keys_from_object_disk_backup_batch")
        self._debug("local_object_disk_batch_delete_started", keys=len(keys))
        await self._delete_keys_batch(base, keys, cancel_event)

    async def _delete_keys_batch(
        self, base_path: str, keys: List[str], cancel_event: Optional[asyncio.Event]
    ) -> None:
        """Delete every key, collecting failures instead of stopping at the first.

        Raises:
            OperationCancelledError: As soon as cancel_event is set
            BatchDeleteError: After all keys were tried, if any failed
        """
        failures: List[KeyFailure] = []
        deleted = 0

        for index, key in enumerate(keys):
            _check_cancelled(cancel_event, "batch delete", index)
            try:
                await self._remove_all(self._deletable_path(base_path, key))
            except (PathEscapeError, RootDeleteRefusedError, OSError) as exc:
                failures.append(KeyFailure(key=key, error=exc))
                continue
            deleted += 1

        if failures:
            self.logger.warning(
                "local_batch_delete_partial_failure",
                base_path=base_path,
                deleted=deleted,
                failed=len(failures),
            )
            raise BatchDeleteError(
                f"LOCAL batch delete: {deleted} keys deleted, {len(failures)} failed",
                failures,
                deleted,
            )

        self.logger.debug("local_batch_delete_completed", base_path=base_path, deleted=deleted)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    async def copy_object(self, src_size: int, src_bucket: str, src_key: str, dst_key: str) -> int:
        """Copy a backup file into the object disk tree.

        Hardlinks when source and destination share a filesystem, otherwise
        streams the bytes. src_bucket is ignored by this backend.

        Returns:
            int: src_size for a hardlink, bytes actually copied otherwise
        """
        dst_base = self._object_disk_base("copy_object")
        src_path = contained_path(self.config.path, src_key)
        dst_path = contained_path(dst_base, dst_key)
        self._debug("local_copy_object", src=src_path, dst=dst_path)

        await aiofiles.os.makedirs(os.path.dirname(dst_path), mode=self.config.dir_mode, exist_ok=True)

        try:
            await aiofiles.os.link(src_path, dst_path)
        except OSError as exc:
            self._debug("local_copy_object_hardlink_failed", src=src_path, dst=dst_path, error=str(exc))
        else:
            self._debug("local_copy_object_hardlink", src=src_path, dst=dst_path)
            return src_size

        async with aiofiles.open(src_path, "rb") as src:
            copied = await self._write_stream(dst_path, src)

        self._debug("local_copy_object_copied", src=src_path, dst=dst_path, bytes_copied=copied)
        return copied

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    async def walk(
        self,
        prefix: str,
        recursive: bool,
        process: WalkCallback,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        path = contained_path(self.config.path, prefix)
        await self.walk_absolute(path, recursive, process, cancel_event)

    async def walk_absolute(
        self,
        prefix: str,
        recursive: bool,
        process: WalkCallback,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Call process for entries under prefix.

        Shallow mode passes every immediate child, directories included, named
        by base name. Recursive mode passes every entry of the subtree, each
        directory before its contents, named relative to prefix with "/"
        separators, and never the prefix itself. A missing prefix is an empty
        listing. Exceptions raised by process stop the walk and propagate.
        """
        self._debug("local_walk", prefix=prefix, recursive=recursive)

        if not recursive:
            await self._walk_shallow(prefix, process, cancel_event)
            return

        root = await self._lstat(prefix)
        if root is None or not stat.S_ISDIR(root.st_mode):
            return
        await self._walk_tree(prefix, "", process, cancel_event)

    async def _walk_shallow(
        self, prefix: str, process: WalkCallback, cancel_event: Optional[asyncio.Event]
    ) -> None:
        try:
            names = await self._list_dir(prefix, cancel_event)
        except OSError as exc:
            self._debug("local_walk_read_dir_failed", prefix=prefix, error=str(exc))
            raise
        for name in names:
            st = await self._lstat(os.path.join(prefix, name))
            if st is None:
                continue
            _check_cancelled(cancel_event, "walk")
            await process(RemoteFile.from_stat(name, st))

    async def _walk_tree(
        self,
        directory: str,
        relative: str,
        process: WalkCallback,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        for name in await self._list_dir(directory, cancel_event):
            full = os.path.join(directory, name)
            st = await self._lstat(full)
            if st is None:
                continue
            rel_name = f"{relative}/{name}" if relative else name
            _check_cancelled(cancel_event, "walk")
            await process(RemoteFile.from_stat(rel_name, st))
            if stat.S_ISDIR(st.st_mode):
                await self._walk_tree(full, rel_name, process, cancel_event)

    async def _list_dir(self, path: str, cancel_event: Optional[asyncio.Event]) -> List[str]:
        _check_cancelled(cancel_event, "walk")
        try:
            names = await aiofiles.os.listdir(path)
        except FileNotFoundError:
            return []
        return sorted(names)

    @staticmethod
    async def _lstat(path: str) -> Optional[os.stat_result]:
        # Entries removed between listing and stat are skipped
        try:
            return await aiofiles.os.stat(path, follow_symlinks=False)
        except FileNotFoundError:
            return None

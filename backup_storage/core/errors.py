"""
Storage Error Handling

Standardized error codes and exceptions shared by every storage backend.
Callers branch on the exception class (or its code), never on message text.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for storage backends."""

    # Configuration errors (CONFIG_xxx)
    CONFIG_MISSING_PATH = "CONFIG_001"
    CONFIG_OBJECT_DISK_UNAVAILABLE = "CONFIG_002"

    # Storage errors (STORAGE_xxx)
    STORAGE_WRITE_FAILED = "STORAGE_001"
    STORAGE_DELETE_FAILED = "STORAGE_003"
    STORAGE_PATH_ESCAPE = "STORAGE_004"
    STORAGE_NOT_FOUND = "STORAGE_005"
    STORAGE_CANCELLED = "STORAGE_006"
    STORAGE_ROOT_DELETE_REFUSED = "STORAGE_007"


class StorageError(Exception):
    """
    Base class for storage backend errors.

    Carries a machine-readable code plus optional details so callers that
    aggregate many failures can report them in a consistent structure:

    {
        "code": "STORAGE_004",
        "message": "path '../etc' escapes base '/backups'",
        "details": {"key": "../etc", "base": "/backups"}
    }

    Plain OS-level failures (permissions, disk full) are NOT wrapped in this
    class; they propagate unchanged as OSError.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in log events and reports."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class PathEscapeError(StorageError, ValueError):
    """A key resolved outside its configured base directory."""

    def __init__(self, key: str, base: str):
        super().__init__(
            ErrorCode.STORAGE_PATH_ESCAPE,
            f"path {key!r} escapes base {base!r}",
            {"key": key, "base": base},
        )
        self.key = key
        self.base = base


class RootDeleteRefusedError(StorageError, ValueError):
    """A delete key resolved to the storage root itself.

    Keys such as "" or "." are contained by definition but would wipe every
    backup under the root, so delete operations reject them.
    """

    def __init__(self, key: str, base: str):
        super().__init__(
            ErrorCode.STORAGE_ROOT_DELETE_REFUSED,
            f"refusing to delete storage root {base!r} (key {key!r})",
            {"key": key, "base": base},
        )
        self.key = key
        self.base = base


class NotFoundError(StorageError, FileNotFoundError):
    """Stat target does not exist.

    Expected condition ("not backed up yet"), not a fault.
    """

    def __init__(self, path: str):
        super().__init__(
            ErrorCode.STORAGE_NOT_FOUND,
            f"{path} not found",
            {"path": path},
        )
        self.path = path

    def __str__(self) -> str:
        return self.message


class OperationCancelledError(StorageError):
    """Batch or walk operation aborted because its cancel event fired."""

    def __init__(self, operation: str, processed: int = 0):
        super().__init__(
            ErrorCode.STORAGE_CANCELLED,
            f"{operation} cancelled after {processed} items",
            {"operation": operation, "processed": processed},
        )
        self.operation = operation
        self.processed = processed


class ObjectDiskNotConfiguredError(StorageError):
    """An object-disk operation was requested but no object disk path is set."""

    def __init__(self, operation: str):
        super().__init__(
            ErrorCode.CONFIG_OBJECT_DISK_UNAVAILABLE,
            f"{operation} requires object_disk_path to be configured",
            {"operation": operation},
        )


class SizeMismatchError(StorageError):
    """Bytes written differ from the size announced by the caller."""

    def __init__(self, path: str, expected: int, written: int):
        super().__init__(
            ErrorCode.STORAGE_WRITE_FAILED,
            f"{path}: expected {expected} bytes, wrote {written}",
            {"path": path, "expected_size": expected, "written": written},
        )
        self.expected = expected
        self.written = written


@dataclass(frozen=True)
class KeyFailure:
    """One failed key of a batch operation."""
    key: str
    error: BaseException


class BatchDeleteError(StorageError):
    """Aggregate result of a batch delete where at least one key failed.

    The batch has already attempted every key when this is raised; `failures`
    names exactly the keys that may still exist.
    """

    def __init__(self, message: str, failures: List[KeyFailure], deleted: int = 0):
        super().__init__(
            ErrorCode.STORAGE_DELETE_FAILED,
            message,
            {
                "deleted": deleted,
                "failed": len(failures),
                "failed_keys": [f.key for f in failures],
            },
        )
        self.failures = failures
        self.deleted = deleted

    @property
    def failed_keys(self) -> List[str]:
        return [f.key for f in self.failures]

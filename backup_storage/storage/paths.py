"""Key-to-path resolution for filesystem backed storage."""

import os

from backup_storage.core.errors import PathEscapeError


def contained_path(base_path: str, key: str) -> str:
    """Join base_path and key, and ensure the result stays inside base_path.

    Both paths are canonicalized lexically (".", "..", repeated separators)
    before comparing. A key starting with a separator is still joined
    relative to base_path, never to the filesystem root. Symlinks are not
    resolved.

    Args:
        base_path: Configured root directory
        key: Caller supplied, untrusted relative key

    Returns:
        str: Cleaned absolute path of base_path/key

    Raises:
        PathEscapeError: If the cleaned path is outside base_path
    """
    base = os.path.abspath(base_path)
    relative = key.lstrip(os.sep)
    if os.altsep:
        relative = relative.lstrip(os.altsep)
    joined = os.path.normpath(os.path.join(base, relative))

    # abspath only keeps a trailing separator for the filesystem root
    prefix = base if base.endswith(os.sep) else base + os.sep
    if joined != base and not joined.startswith(prefix):
        raise PathEscapeError(key, base_path)
    return joined

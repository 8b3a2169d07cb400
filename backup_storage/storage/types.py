"""Value types returned by storage backends."""

import os
import stat
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class RemoteFile(BaseModel):
    """Point-in-time description of one stored file.

    Holds no handle to the underlying file; the file may be gone by the time
    the caller looks at it.
    """
    name: str
    size: int = Field(ge=0)
    last_modified: datetime
    is_dir: bool = False

    class Config:
        """Pydantic configuration."""
        frozen = True

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result) -> "RemoteFile":
        """Build a descriptor from an os.stat()/lstat() result."""
        return cls(
            name=name,
            size=st.st_size,
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            is_dir=stat.S_ISDIR(st.st_mode),
        )

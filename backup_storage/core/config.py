"""Storage configuration using Pydantic Settings."""

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings


class LocalConfig(BaseModel):
    """Immutable configuration of the local filesystem backend.

    Built once from Settings (or directly in tests) and handed to the backend,
    which never mutates it.

    Example:
        LocalConfig(path="/var/lib/backups", object_disk_path="/var/lib/object_disks")
    """
    path: str = ""
    object_disk_path: str = ""
    debug: bool = False
    verify_size: bool = False
    dir_mode: int = 0o750

    @field_validator('path', 'object_disk_path')
    @classmethod
    def strip_path(cls, v: str) -> str:
        """Whitespace around a configured path is never meaningful."""
        return v.strip()

    @field_validator('dir_mode')
    @classmethod
    def validate_dir_mode(cls, v: int) -> int:
        """Directory mode must fit in permission bits."""
        if not 0 <= v <= 0o7777:
            raise ValueError(f"dir_mode must be between 0 and 0o7777, got {oct(v)}")
        return v

    class Config:
        """Pydantic configuration."""
        frozen = True


class Settings(BaseSettings):
    """Process settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "backup-storage"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False      # Enable debug mode features

    # Remote Storage Selection
    REMOTE_STORAGE: str = "local"

    # Local Backend Configuration
    LOCAL_PATH: str = os.path.join(os.getcwd(), "backup")
    LOCAL_OBJECT_DISK_PATH: str = ""
    LOCAL_DEBUG: bool = False
    LOCAL_VERIFY_SIZE: bool = False
    LOCAL_DIR_MODE: int = 0o750

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard level names in any case."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL '{v}'")
        return level

    @field_validator('REMOTE_STORAGE')
    @classmethod
    def validate_remote_storage(cls, v: str) -> str:
        """Only backends shipped in this package can be selected."""
        kind = v.strip().lower()
        if kind not in ("local",):
            raise ValueError(f"Unknown REMOTE_STORAGE '{v}', expected one of: local")
        return kind

    @model_validator(mode='after')
    def validate_local_configuration(self):
        """Ensure the local backend has a base path."""
        if self.REMOTE_STORAGE == "local" and not self.LOCAL_PATH.strip():
            raise ValueError("LOCAL_PATH must be set when REMOTE_STORAGE=local")
        return self

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In development, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    def local_config(self) -> LocalConfig:
        """Build the immutable backend configuration."""
        return LocalConfig(
            path=self.LOCAL_PATH,
            object_disk_path=self.LOCAL_OBJECT_DISK_PATH,
            debug=self.LOCAL_DEBUG,
            verify_size=self.LOCAL_VERIFY_SIZE,
            dir_mode=self.LOCAL_DIR_MODE,
        )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Settings loaded once per process from the environment."""
    return Settings()

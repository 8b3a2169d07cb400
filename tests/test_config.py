"""
Configuration tests for backup-storage.

Tests the type-safe Pydantic configuration system.
"""

import pytest
from pydantic import ValidationError

from backup_storage.core.config import LocalConfig, Settings


# ============================================================================
# LocalConfig tests
# ============================================================================

@pytest.mark.unit
def test_local_config_default_values():
    """Test LocalConfig has correct default values."""
    config = LocalConfig()

    assert config.path == ""
    assert config.object_disk_path == ""
    assert config.debug is False
    assert config.verify_size is False
    assert config.dir_mode == 0o750


@pytest.mark.unit
def test_local_config_strips_paths():
    """Test surrounding whitespace is removed from paths."""
    config = LocalConfig(path="  /var/lib/backups ", object_disk_path=" /disks ")

    assert config.path == "/var/lib/backups"
    assert config.object_disk_path == "/disks"


@pytest.mark.unit
def test_local_config_is_immutable():
    """Test LocalConfig cannot be changed after construction."""
    config = LocalConfig(path="/var/lib/backups")

    with pytest.raises(ValidationError):
        config.path = "/tmp"


@pytest.mark.unit
def test_local_config_rejects_invalid_dir_mode():
    """Test dir_mode outside permission bits is rejected."""
    with pytest.raises(ValidationError) as exc_info:
        LocalConfig(path="/x", dir_mode=0o17777)

    errors = exc_info.value.errors()
    assert len(errors) > 0
    assert "dir_mode" in str(errors[0]["msg"])


# ============================================================================
# Settings tests
# ============================================================================

@pytest.mark.unit
def test_settings_defaults():
    """Test Settings provide a usable local backend by default."""
    settings = Settings()

    assert settings.REMOTE_STORAGE == "local"
    assert settings.LOCAL_PATH
    assert settings.LOCAL_OBJECT_DISK_PATH == ""


@pytest.mark.unit
def test_settings_read_environment(monkeypatch):
    """Test Settings pick up LOCAL_* environment variables."""
    monkeypatch.setenv("LOCAL_PATH", "/srv/backups")
    monkeypatch.setenv("LOCAL_OBJECT_DISK_PATH", "/srv/object_disks")
    monkeypatch.setenv("LOCAL_DEBUG", "true")
    monkeypatch.setenv("LOCAL_VERIFY_SIZE", "1")

    config = Settings().local_config()

    assert config.path == "/srv/backups"
    assert config.object_disk_path == "/srv/object_disks"
    assert config.debug is True
    assert config.verify_size is True


@pytest.mark.unit
def test_settings_log_level_normalized():
    """Test LOG_LEVEL accepts lowercase names."""
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


@pytest.mark.unit
def test_settings_log_level_rejected():
    """Test unknown LOG_LEVEL values are rejected."""
    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="verbose")


@pytest.mark.unit
def test_settings_unknown_remote_storage_rejected():
    """Test only shipped backends can be selected."""
    with pytest.raises(ValidationError) as exc_info:
        Settings(REMOTE_STORAGE="ftp")

    assert "REMOTE_STORAGE" in str(exc_info.value)


@pytest.mark.unit
def test_settings_local_requires_path():
    """Test the local backend needs LOCAL_PATH."""
    with pytest.raises(ValidationError) as exc_info:
        Settings(REMOTE_STORAGE="local", LOCAL_PATH="   ")

    assert "LOCAL_PATH" in str(exc_info.value)


@pytest.mark.unit
def test_settings_json_logs():
    """Test JSON logs are forced in production and optional in debug."""
    assert Settings(ENVIRONMENT="production", DEBUG=True, LOG_JSON=False).use_json_logs is True
    assert Settings(DEBUG=True, LOG_JSON=False).use_json_logs is False

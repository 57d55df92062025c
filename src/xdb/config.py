"""
Configuration for XDB.

Settings come from an optional YAML file, then environment overrides:

    XDB_DATA_DIR         data_dir
    XDB_ENCRYPTION_KEY   encryption_key
    MAX_DATABASE_SIZE    max_database_size (bytes)
    XDB_MAX_BACKUPS      max_backups

Example YAML:

    data_dir: /var/lib/xdb
    encryption_key: change-me
    max_database_size: 104857600
    max_backups: 5
    kdf:
      scrypt_n: 16384
"""

import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from xdb.crypto import KdfParams
from xdb.errors import ConfigurationError

ENV_OVERRIDES: dict[str, str] = {
    "XDB_DATA_DIR": "data_dir",
    "XDB_ENCRYPTION_KEY": "encryption_key",
    "MAX_DATABASE_SIZE": "max_database_size",
    "XDB_MAX_BACKUPS": "max_backups",
}


def default_data_dir() -> Path:
    return Path(tempfile.gettempdir()) / "xdb"


class Settings(BaseModel):
    """
    Runtime settings for an XDB context.

    Attributes:
        data_dir: Directory holding database files, the registry and backups
        encryption_key: Secret every file is encrypted under
        max_database_size: Largest serialized database accepted on save, in bytes
        max_backups: Backups kept in the registry before the oldest is evicted
        kdf: Key-derivation cost parameters
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    data_dir: Path = Field(default_factory=default_data_dir)
    encryption_key: str = Field(..., min_length=1, repr=False)
    max_database_size: int = Field(default=100 * 1024 * 1024, gt=0)
    max_backups: int = Field(default=5, gt=0)
    kdf: KdfParams = Field(default_factory=KdfParams)


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load settings from a YAML file and the environment.

    Args:
        path: Optional YAML file
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If the file is unreadable or a setting is invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        try:
            with path.open() as f:
                loaded = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                message=f"Config file not found: {path}",
                setting="config",
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                message=f"Config file is not valid YAML: {e}",
                setting="config",
            ) from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(
                message=f"Config file must contain a mapping: {path}",
                setting="config",
            )
        data.update(loaded or {})

    env = os.environ if env is None else env
    for variable, setting in ENV_OVERRIDES.items():
        value = env.get(variable)
        if value:
            data[setting] = value

    return settings_from_dict(data)


def settings_from_dict(data: Mapping[str, Any]) -> Settings:
    """Validate a settings mapping, reporting the first bad setting."""
    try:
        return Settings.model_validate(dict(data))
    except ValidationError as e:
        first = e.errors()[0]
        setting = ".".join(str(part) for part in first["loc"]) or "settings"
        suggestion = None
        if setting == "encryption_key":
            suggestion = "Set XDB_ENCRYPTION_KEY or encryption_key in the config file"
        raise ConfigurationError(
            message=f"Invalid setting '{setting}': {first['msg']}",
            setting=setting,
            suggestion=suggestion,
        ) from e

# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/config/manager.py

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Any, Final, Literal, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from titor.system.exceptions import ConfigError


# ---- Constants ----

CONFIG_FILE: Final = "titor.yml"
DEFAULT_LOCK_FILE: Final = Path("/var/run/titor.pid")

# Group/other permission bits that must not be set on the config file
UNSAFE_MODE_BITS: Final = 0o077


def _get_config_search_paths() -> tuple[Path, ...]:
    """Get config file search paths (ordered by priority: lowest to highest).

    Evaluated at call time so tests can redirect the environment variables.
    Unset environment variables contribute no path.
    """
    paths = [
        Path("/etc/titor") / CONFIG_FILE,  # System defaults
        Path.home() / ".config" / "titor" / CONFIG_FILE,  # User config
    ]
    if xdg_home := os.getenv("XDG_CONFIG_HOME"):
        paths.append(Path(xdg_home) / "titor" / CONFIG_FILE)  # XDG override
    if titor_home := os.getenv("TITOR_CONFIG_HOME"):
        paths.append(Path(titor_home) / CONFIG_FILE)  # Explicit override (highest priority)
    return tuple(paths)


# ---- Retention ----

class RetentionPolicy(BaseModel):
    """Bounds on the number of stored backups and the space they may use."""
    model_config = ConfigDict(frozen=True)

    full_count: int = Field(default=2, gt=0)
    inc_count: int = Field(default=10, gt=0)
    margin_kb: int = Field(default=0, ge=0)
    quota_kb: Optional[int] = Field(default=None, gt=0)

    def override(self, **changes: Any) -> RetentionPolicy:
        """Return a new, validated policy with ``changes`` applied.

        ``None`` values are ignored so an optional per-source section can be
        passed straight through.
        """
        updates = {key: value for key, value in changes.items() if value is not None}
        if not updates:
            return self
        return RetentionPolicy.model_validate({**self.model_dump(), **updates})


class RetentionOverride(BaseModel):
    """Per-source retention settings; unset fields fall back to the global policy."""
    full_count: Optional[int] = Field(default=None, gt=0)
    inc_count: Optional[int] = Field(default=None, gt=0)
    margin_kb: Optional[int] = Field(default=None, ge=0)


# ---- Remote ----

class RemoteCommands(BaseModel):
    """Shell command templates run on the remote host.

    Placeholders are filled with shell-quoted values.
    """
    listing: str = "ls -1 {path}"
    space: str = "df -k --output=avail {path}"
    used: str = "du -ks {path}"
    rename: str = "mv {source} {dest}"
    delete: str = "rm -rf {paths}"
    mkdir: str = "mkdir -p {path}"
    files: str = 'find {path} -maxdepth 1 -type f -printf "%T@\\t%s\\t%p\\n" | sort'


class RemoteConfig(BaseModel):
    host: str
    user: str
    path: str  # Base directory on the remote host
    port: int = Field(default=22, gt=0, lt=65536)
    timeout: float = Field(default=30.0, gt=0)
    key_path: Optional[Path] = None  # Passed to paramiko and ssh as-is
    delete_orphans: bool = True
    commands: RemoteCommands = Field(default_factory=RemoteCommands)

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"


# ---- Sources ----

class SourceConfig(BaseModel):
    """A local directory tree backed up into ``<remote.path>/<name>``."""
    name: str = Field(pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
    path: Path
    exclude: list[str] = Field(default_factory=list)
    retention: Optional[RetentionOverride] = None


# ---- Databases ----

class DatabaseConfig(BaseModel):
    engine: Literal["mysql"] = "mysql"
    login_path: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    exclude: list[str] = Field(default_factory=list)
    dump_dir: Path = Path("/var/tmp/titor")
    remote_dir: str = "databases"
    quota_kb: int = Field(default=2097152, gt=0)
    margin_kb: Optional[int] = Field(default=None, ge=0)
    keep_dumps: bool = False  # Keep local dump files after they are shipped
    list_command: Optional[str] = None
    dump_command: Optional[str] = None

    @model_validator(mode="after")
    def validate_credentials(self) -> DatabaseConfig:
        if self.login_path:
            return self
        if self.username and self.password:
            return self
        raise ConfigError("databases: either login_path or both username and password are required")


# ---- Main Config ----

class Config(BaseModel):
    remote: RemoteConfig
    retention: RetentionPolicy = Field(default_factory=RetentionPolicy)
    sources: list[SourceConfig] = Field(default_factory=list)
    databases: Optional[DatabaseConfig] = None
    lock_file: Path = DEFAULT_LOCK_FILE
    local_log: Optional[Path] = None

    config_path: Optional[Path] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def validate_unique_sources(self) -> Config:
        names = [source.name for source in self.sources]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate source names: {', '.join(duplicates)}")
        if self.databases and self.databases.remote_dir in names:
            raise ConfigError(
                f"databases.remote_dir '{self.databases.remote_dir}' collides with a source name"
            )
        return self

    def source(self, name: str) -> SourceConfig:
        for source in self.sources:
            if source.name == name:
                return source
        raise ConfigError(f"No source named '{name}' in configuration")

    def policy_for(self, source: SourceConfig) -> RetentionPolicy:
        """Global retention policy with the source's overrides applied."""
        if source.retention is None:
            return self.retention
        return self.retention.override(**source.retention.model_dump())

    def base_path(self, source: SourceConfig) -> str:
        return f"{self.remote.path.rstrip('/')}/{source.name}"

    def database_path(self) -> str:
        if self.databases is None:
            raise ConfigError("No databases section in configuration")
        return f"{self.remote.path.rstrip('/')}/{self.databases.remote_dir.strip('/')}"

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load config from ``config_path``, or merge every file on the search path."""
        if config_path is not None:
            data = _read_config_file(Path(config_path))
            source = Path(config_path)
        else:
            data, source = _load_merged_config_data(_get_config_search_paths())

        try:
            config = cls.model_validate(data)
        except ConfigError:
            raise
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {source}: {e}") from e

        config.config_path = source
        return config


# ---- Config Finders ----

def check_config_permissions(config_path: Path) -> None:
    """Refuse config files readable or writable by group or other."""
    mode = stat.S_IMODE(config_path.stat().st_mode)
    if mode & UNSAFE_MODE_BITS:
        raise ConfigError(
            f"{config_path} must have at most mode 600 (found {mode:o}). "
            f"Fix the permissions on {config_path.name} and try again."
        )


def _read_config_file(config_path: Path) -> dict:
    if not config_path.is_file():
        raise ConfigError(f"Config file {config_path} does not exist")

    check_config_permissions(config_path)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    logger.debug(f"Loaded config from {config_path}")
    return data


def _load_merged_config_data(candidates: tuple[Path, ...]) -> tuple[dict, Path]:
    """Load and shallow-merge config data from candidate paths.

    Returns:
        The merged data and the highest-priority file that contributed.
    """
    merged_data: dict = {}
    found_configs = []

    for candidate in candidates:
        if candidate.exists():
            merged_data.update(_read_config_file(candidate))  # Later configs override earlier ones
            found_configs.append(candidate)

    if not found_configs:
        logger.error("No config found in /etc/titor/, ~/.config/titor/, XDG_CONFIG_HOME, or TITOR_CONFIG_HOME")
        raise ConfigError(f"No {CONFIG_FILE} found in any standard location")

    logger.debug(f"Merged config from: {', '.join(str(p) for p in found_configs)}")
    return merged_data, found_configs[-1]


def validate_config(config_path: Path | None = None) -> list[str]:
    """Return a list of validation errors. Empty list means config is valid."""
    errors = []

    try:
        config = Config.load(config_path)
    except ConfigError as e:
        errors.append(str(e))
        return errors

    if not config.sources and config.databases is None:
        errors.append("Nothing to back up: no sources and no databases configured")

    for source in config.sources:
        if not source.path.is_dir():
            errors.append(f"Source '{source.name}': {source.path} is not a directory")

    if config.local_log and not config.local_log.is_absolute():
        errors.append(f"local_log path must be absolute: {config.local_log}")

    if config.remote.key_path and not config.remote.key_path.exists():
        errors.append(f"remote.key_path does not exist: {config.remote.key_path}")

    return errors


# done.

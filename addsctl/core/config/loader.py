"""
Configuration loader — reads addsctl.yml into a ``Settings`` model.

The file is optional: without one, built-in defaults apply. When present
it may hold everything at the top level or under an ``addsctl:`` key.

Example::

    forest_mode: WinThreshold
    domain_mode: WinThreshold
    paths:
      database: D:\\NTDS
      log: E:\\NTDS-Logs
      sysvol: D:\\SYSVOL
    modules:
      - Microsoft.PowerShell.SecretManagement
      - Az.Accounts
    min_free_gb: 20
    log_file: C:\\ProgramData\\addsctl\\addsctl.log
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from addsctl.core.errors import ConfigError
from addsctl.core.models.request import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_LOG_PATH,
    DEFAULT_SYSVOL_PATH,
    FunctionalLevel,
)
from addsctl.core.services.features import AD_DS_FEATURE
from addsctl.core.services.packages import DEFAULT_MODULES, DEFAULT_REPOSITORY

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "addsctl.yml"

GIB = 1024 ** 3


class PathDefaults(BaseModel):
    database: str = DEFAULT_DATABASE_PATH
    log: str = DEFAULT_LOG_PATH
    sysvol: str = DEFAULT_SYSVOL_PATH


class Settings(BaseModel):
    """Defaults and policies for provisioning runs."""

    domain_mode: FunctionalLevel = FunctionalLevel.WIN_THRESHOLD
    forest_mode: FunctionalLevel = FunctionalLevel.WIN_THRESHOLD
    paths: PathDefaults = Field(default_factory=PathDefaults)
    install_dns: bool = True

    feature: str = AD_DS_FEATURE
    modules: list[str] = Field(default_factory=lambda: list(DEFAULT_MODULES))
    repository: str = DEFAULT_REPOSITORY
    keep_going: bool = False
    min_free_gb: float = Field(default=10.0, ge=0)

    audit_file: str | None = ".state/audit.ndjson"   # relative to the config directory
    log_file: str | None = None
    log_level: str | None = None

    # Directory the file was loaded from (not part of the file)
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    @property
    def min_free_bytes(self) -> int:
        return int(self.min_free_gb * GIB)

    @property
    def audit_path(self) -> Path | None:
        if not self.audit_file:
            return None
        path = Path(self.audit_file)
        return path if path.is_absolute() else self.base_dir / path


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for addsctl.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to addsctl.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to addsctl.yml. If None, searches upward and
            falls back to defaults when nothing is found.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return Settings()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", details=[str(e)]) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    data = data.get("addsctl", data)

    try:
        settings = Settings.model_validate({**data, "base_dir": path.parent.resolve()})
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}",
            details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        ) from e

    logger.info("Loaded settings from %s", path)
    return settings

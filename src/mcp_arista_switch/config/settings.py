"""Application settings loaded from YAML with environment overrides.

```yaml
database:
  url: sqlite+aiosqlite:///~/.eoscraft/eoscraft.db
eapi:
  default_port: 443
  default_https: true
  default_timeout: 10
  verify_ssl: false
logging:
  log_dir: ~/.eoscraft
workflow:
  max_config_size: 1048576
  reload_command: reload now
inventory: ./configs/switches.yaml
```
"""
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_HOME = "~/.eoscraft"


@dataclass
class EAPISettings:
    """Connection defaults applied when a credential row leaves a field empty."""
    default_port: int = 443
    default_https: bool = True
    default_timeout: float = 10
    verify_ssl: bool = False


@dataclass
class DatabaseSettings:
    url: str = f"sqlite+aiosqlite:///{DEFAULT_HOME}/eoscraft.db"
    echo: bool = False

    def resolved_url(self) -> str:
        """Expand '~' in SQLite file URLs."""
        prefix = "sqlite+aiosqlite:///"
        if self.url.startswith(prefix) and ":memory:" not in self.url:
            path = Path(self.url[len(prefix):]).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            return f"{prefix}{path}"
        return self.url


@dataclass
class LoggingSettings:
    log_dir: str = DEFAULT_HOME


@dataclass
class WorkflowSettings:
    max_config_size: int = 1024 * 1024
    reload_command: str = "reload now"


@dataclass
class Settings:
    """Complete application settings."""
    eapi: EAPISettings = field(default_factory=EAPISettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    inventory: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        return cls(
            eapi=_section(EAPISettings, data.get("eapi")),
            database=_section(DatabaseSettings, data.get("database")),
            logging=_section(LoggingSettings, data.get("logging")),
            workflow=_section(WorkflowSettings, data.get("workflow")),
            inventory=data.get("inventory"),
        )

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Settings":
        """Load settings from YAML (if found) and apply environment overrides."""
        path = path or os.environ.get("EOSCRAFT_CONFIG") or _find_settings_file()
        data: dict[str, Any] = {}
        if path:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded settings from {path}")

        settings = cls.from_dict(data)
        settings.source = path
        settings.apply_env()
        return settings

    def apply_env(self) -> None:
        """Environment variables win over file values."""
        env = os.environ
        if env.get("EOSCRAFT_DATABASE_URL"):
            self.database.url = env["EOSCRAFT_DATABASE_URL"]
        if env.get("EOSCRAFT_EAPI_VERIFY_SSL"):
            self.eapi.verify_ssl = _as_bool(env["EOSCRAFT_EAPI_VERIFY_SSL"])
        if env.get("EOSCRAFT_EAPI_TIMEOUT"):
            self.eapi.default_timeout = float(env["EOSCRAFT_EAPI_TIMEOUT"])
        if env.get("EOSCRAFT_INVENTORY"):
            self.inventory = env["EOSCRAFT_INVENTORY"]


def _section(cls, values: Optional[dict]):
    """Build a settings section, ignoring unknown keys with a warning."""
    values = values or {}
    known = {f.name for f in fields(cls)}
    for key in values:
        if key not in known:
            logger.warning(f"Ignoring unknown setting {cls.__name__}.{key}")
    return cls(**{k: v for k, v in values.items() if k in known})


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _find_settings_file() -> Optional[str]:
    """Find eoscraft.yaml in the usual places."""
    search_paths = [
        Path.cwd() / "configs" / "eoscraft.yaml",
        Path.cwd() / "eoscraft.yaml",
        Path.home() / ".config" / "eoscraft" / "eoscraft.yaml",
        Path("/etc/eoscraft/eoscraft.yaml"),
    ]
    for path in search_paths:
        if path.exists():
            return str(path)
    return None

"""
YAML application configuration.

``config/app_config.yml`` names the SQLite file and the table the
verification store keeps its rows in::

    database:
      path: ./data/verify.db
      table_name: verify

Reads take a shared ``fcntl`` lock and writes an exclusive one, so a config
being rewritten by another process is never read half-written.
"""

from __future__ import annotations

import fcntl
from pathlib import Path
from typing import Any, Dict

import yaml

from verifystate.util.logger import get_logger

logger = get_logger("app_configuration")

DEFAULT_DATABASE_PATH = "./data/verify.db"
DEFAULT_TABLE_NAME = "verify"


class DatabaseSettings:
    """View over the ``database`` section."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    @property
    def path(self) -> Path:
        """Database file, resolved against the working directory."""
        return Path(str(self.data.get("path") or DEFAULT_DATABASE_PATH)).resolve()

    @property
    def table_name(self) -> str:
        """
        Raises:
            ValueError: If the key is present but null or blank.
        """
        value = self.data.get("table_name", DEFAULT_TABLE_NAME)
        name = "" if value is None else str(value).strip()
        if not name:
            raise ValueError("table_name must be provided in the config")
        return name


class AppConfig:
    """
    In-memory copy of the YAML config file.

    The file is read once on construction and again on :meth:`reload`.
    A missing, unreadable or non-mapping file is logged and treated as empty.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    def _read(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    loaded = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] No config file at %s", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Could not read %s: %s", self.config_path, exc)
            return {}

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            logger.error(
                "[APP CONFIGURATION] %s holds a %s, expected a mapping",
                self.config_path, type(loaded).__name__,
            )
            return {}
        return loaded

    def _write(self) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        # "a+" creates the file without truncating it before the lock is held
        with self.config_path.open("a+", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.seek(0)
                f.truncate()
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)
                f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def reload(self) -> Dict[str, Any]:
        """Re-read the file and return the new mapping."""
        self._data = self._read()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    @property
    def database(self) -> DatabaseSettings:
        section = self._data.get("database")
        return DatabaseSettings(section if isinstance(section, dict) else None)

    def ensure_database_section(self) -> DatabaseSettings:
        """Return the database settings, first writing defaults to disk if the section is missing.

        Raises:
            ValueError: If the section names no table.
        """
        if not isinstance(self._data.get("database"), dict):
            self._data["database"] = {
                "path": DEFAULT_DATABASE_PATH,
                "table_name": DEFAULT_TABLE_NAME,
            }
            self._write()
            logger.info(
                "[APP CONFIGURATION] Added a database section to %s using table %s",
                self.config_path, DEFAULT_TABLE_NAME,
            )

        settings = self.database
        logger.debug(
            "[APP CONFIGURATION] Verification table %s in %s", settings.table_name, settings.path
        )
        return settings

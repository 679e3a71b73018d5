"""Application configuration — JSON-based, with atomic writes and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from ibexporter.core.app_filter import DEFAULT_APP_ID
from ibexporter.core.export import DEFAULT_NAME_PREFIX_LENGTH, DEFAULT_PROGRESS_INTERVAL

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "IosBackupExporter"


def get_config() -> Config:
    """Module-level factory — single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration; saves are serialised by a thread lock."""

    _DEFAULTS: dict[str, Any] = {
        "language": "en_US",
        "theme": "auto",
        "app_filter": DEFAULT_APP_ID,
        # Extra MobileSync backup folders, searched before the platform defaults
        "backup_roots": [],
        "export": {
            "name_prefix_length": DEFAULT_NAME_PREFIX_LENGTH,
            "progress_interval": DEFAULT_PROGRESS_INTERVAL,
            "last_dir": "",
        },
    }

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = data_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk through a temporary file."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def language(self) -> str:
        return self._data.get("language", "en_US")

    @property
    def theme(self) -> str:
        return self._data.get("theme", "auto")

    @property
    def app_filter(self) -> str:
        return self._data.get("app_filter") or DEFAULT_APP_ID

    @app_filter.setter
    def app_filter(self, value: str) -> None:
        self.set("app_filter", value)

    @property
    def backup_roots(self) -> list[Path]:
        return [Path(p) for p in self._data.get("backup_roots", []) if p]

    @backup_roots.setter
    def backup_roots(self, value: list[Path]) -> None:
        self.set("backup_roots", [str(p) for p in value])

    @property
    def name_prefix_length(self) -> int:
        return int(self.get("export.name_prefix_length", DEFAULT_NAME_PREFIX_LENGTH))

    @property
    def progress_interval(self) -> int:
        return int(self.get("export.progress_interval", DEFAULT_PROGRESS_INTERVAL))

    @property
    def last_export_dir(self) -> Path | None:
        raw = self.get("export.last_dir", "")
        return Path(raw) if raw else None

    @last_export_dir.setter
    def last_export_dir(self, value: Path | None) -> None:
        self.set("export.last_dir", str(value) if value else "")

"""Configuration loading utilities for the Dominions bot."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    connection_timeout: float
    snek_api_base: str
    snek_host_suffix: str
    snek_port_offset: int
    details_cache_ttl: float

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        connection_cfg = data.get("connection") or {}
        snek_cfg = data.get("snek") or {}
        cache_cfg = data.get("details_cache") or {}
        return Settings(
            connection_timeout=float(connection_cfg.get("timeout_seconds", 5.0)),
            snek_api_base=str(snek_cfg.get("api_base", "https://dom5.snek.earth/api")).rstrip("/"),
            snek_host_suffix=str(snek_cfg.get("host_suffix", "snek.earth")),
            snek_port_offset=int(snek_cfg.get("port_offset", 30000)),
            details_cache_ttl=float(cache_cfg.get("ttl_seconds", 60)),
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get("DOMINIONS_BOT_SETTINGS")
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = ["Settings", "SettingsLoader", "get_settings"]

"""
Configuration management for the project showcase site.
Handles loading, validating, and providing access to application settings.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool
    trust_proxy: bool = True


@dataclass
class PathsConfig:
    """Path configuration settings."""
    database_dir: str
    visits_file: str


@dataclass
class VisitStatsConfig:
    """Visit analytics configuration settings."""
    top_n: int = 10
    top_ips: int = 5
    track_paths: list[str] = field(default_factory=lambda: ["/"])
    timezone: str = ""


def _env_flag(value: str) -> bool:
    return value.strip().lower() == "true"


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "site_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with default config
        self._config = self._get_default_config()

        # Load base config from file
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        # Override with environment variables
        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 3000,
                "debug": False,
                "trust_proxy": True
            },
            "paths": {
                "database_dir": "database",
                "visits_file": "visits.json"
            },
            "visit_stats": {
                "top_n": 10,
                "top_ips": 5,
                "track_paths": ["/"],
                "timezone": ""
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        for section, values in file_config.items():
            if section in self._config and isinstance(values, dict):
                self._config[section].update(values)
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = _env_flag(os.getenv("APP_DEBUG"))

        if os.getenv("APP_TRUST_PROXY"):
            self._config["app"]["trust_proxy"] = _env_flag(os.getenv("APP_TRUST_PROXY"))

        # Path settings
        if os.getenv("DATABASE_DIR"):
            self._config["paths"]["database_dir"] = os.getenv("DATABASE_DIR")

        if os.getenv("VISITS_FILE"):
            self._config["paths"]["visits_file"] = os.getenv("VISITS_FILE")

        # Visit stats settings
        if os.getenv("STATS_TOP_N"):
            self._config["visit_stats"]["top_n"] = int(os.getenv("STATS_TOP_N"))

        if os.getenv("STATS_TOP_IPS"):
            self._config["visit_stats"]["top_ips"] = int(os.getenv("STATS_TOP_IPS"))

        if os.getenv("STATS_TRACK_PATHS"):
            self._config["visit_stats"]["track_paths"] = [
                p.strip() for p in os.getenv("STATS_TRACK_PATHS").split(",") if p.strip()
            ]

        if os.getenv("STATS_TIMEZONE") is not None:
            self._config["visit_stats"]["timezone"] = os.getenv("STATS_TIMEZONE").strip()

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"],
            trust_proxy=app_config.get("trust_proxy", True)
        )

    def get_paths_config(self) -> PathsConfig:
        """Get paths configuration."""
        paths_config = self._config["paths"]
        return PathsConfig(
            database_dir=paths_config["database_dir"],
            visits_file=paths_config["visits_file"]
        )

    def get_visit_stats_config(self) -> VisitStatsConfig:
        """Get visit analytics configuration."""
        stats_config = self._config["visit_stats"]
        return VisitStatsConfig(
            top_n=stats_config.get("top_n", 10),
            top_ips=stats_config.get("top_ips", 5),
            track_paths=list(stats_config.get("track_paths", ["/"])),
            timezone=stats_config.get("timezone", "")
        )

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)


# Global configuration instance
config_manager = ConfigManager()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_paths_config() -> PathsConfig:
    """Get paths configuration."""
    return config_manager.get_paths_config()


def get_visit_stats_config() -> VisitStatsConfig:
    """Get visit analytics configuration."""
    return config_manager.get_visit_stats_config()


def reload_config() -> None:
    """Reload configuration."""
    config_manager.reload()


def save_config() -> None:
    """Save configuration to file."""
    config_manager.save_config()

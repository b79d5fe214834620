"""
Configuration management for the Resume Slot Store.
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


@dataclass
class StoreConfig:
    """Record store configuration settings."""
    backend: str  # "json" or "memory"
    data_dir: str
    timeout_seconds: float
    max_write_retries: int


@dataclass
class QuotaConfig:
    """Slot quota configuration settings."""
    tier_capacities: Dict[int, int] = field(default_factory=dict)


def parse_tier_capacities(value: str) -> Dict[int, int]:
    """
    Parse a "tier:capacity" list such as "1:3,2:10,3:50".

    Raises:
        ValueError: If an entry is malformed or a capacity is not positive
    """
    capacities = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        tier, sep, capacity = entry.partition(":")
        if not sep:
            raise ValueError(f"Invalid tier capacity entry: {entry!r}")
        capacities[tier] = capacity
    return validate_tier_capacities(capacities)


def validate_tier_capacities(capacities: Dict[Any, Any]) -> Dict[int, int]:
    """
    Normalize a tier table to int keys and values.

    Raises:
        ValueError: If a tier or capacity is not an integer, or a capacity is not positive
    """
    normalized = {}
    for tier, capacity in capacities.items():
        tier, capacity = int(tier), int(capacity)
        if capacity < 1:
            raise ValueError(f"Capacity for tier {tier} must be positive")
        normalized[tier] = capacity
    return normalized


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "resume_store_config.json"):
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
                    # Merge file config with defaults
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        # Override with environment variables
        self._override_with_env()

        # Fail at startup rather than on the first request
        validate_tier_capacities(self._config["quota"]["tier_capacities"])

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 5000,
                "debug": False
            },
            "store": {
                "backend": "json",
                "data_dir": "data/records",
                "timeout_seconds": 5.0,
                "max_write_retries": 3
            },
            "quota": {
                # Tier 2/3 disagree across deployments (10/50 vs 5/10); 10/50 is canonical
                "tier_capacities": {"1": 3, "2": 10, "3": 50}
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config.

        Tier capacities merge per tier, so a file that only sets tier 2 keeps
        the default tiers 1 and 3.
        """
        for section, values in file_config.items():
            if section in self._config:
                if isinstance(values, dict):
                    values = dict(values)
                    if section == "quota" and isinstance(values.get("tier_capacities"), dict):
                        capacities = dict(self._config["quota"]["tier_capacities"])
                        capacities.update({str(k): v for k, v in values.pop("tier_capacities").items()})
                        self._config["quota"]["tier_capacities"] = capacities
                    self._config[section].update(values)
                else:
                    self._config[section] = values
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
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        # Store settings
        if os.getenv("STORE_BACKEND"):
            self._config["store"]["backend"] = os.getenv("STORE_BACKEND").strip().lower()

        if os.getenv("STORE_DATA_DIR"):
            self._config["store"]["data_dir"] = os.getenv("STORE_DATA_DIR")

        if os.getenv("STORE_TIMEOUT_SECONDS"):
            self._config["store"]["timeout_seconds"] = float(os.getenv("STORE_TIMEOUT_SECONDS"))

        if os.getenv("MAX_WRITE_RETRIES"):
            self._config["store"]["max_write_retries"] = int(os.getenv("MAX_WRITE_RETRIES"))

        # Quota settings
        if os.getenv("TIER_CAPACITIES"):
            self._config["quota"]["tier_capacities"] = parse_tier_capacities(os.getenv("TIER_CAPACITIES"))

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"]
        )

    def get_store_config(self) -> StoreConfig:
        """Get record store configuration."""
        store_config = self._config["store"]
        return StoreConfig(
            backend=store_config["backend"],
            data_dir=store_config["data_dir"],
            timeout_seconds=float(store_config["timeout_seconds"]),
            max_write_retries=int(store_config["max_write_retries"])
        )

    def get_quota_config(self) -> QuotaConfig:
        """Get quota configuration."""
        quota_config = self._config["quota"]
        # JSON object keys are strings, normalize to int tiers
        capacities = validate_tier_capacities(quota_config["tier_capacities"])
        return QuotaConfig(tier_capacities=capacities)

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


def get_store_config() -> StoreConfig:
    """Get record store configuration."""
    return config_manager.get_store_config()


def get_quota_config() -> QuotaConfig:
    """Get quota configuration."""
    return config_manager.get_quota_config()


def reload_config() -> None:
    """Reload configuration."""
    config_manager.reload()


def save_config() -> None:
    """Save configuration to file."""
    config_manager.save_config()

"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/config.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Manages bootstrap configuration using QSettings. Standardizes
                paths for configuration and data across different platforms
                (XDG standards on Linux). Runtime settings that live in the
                database are handled by settings_cache.py.
------------------------------------------------------------------------------
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from PyQt6.QtCore import QSettings, QStandardPaths


class AppConfig:
    """
    Manages application configuration using QSettings.
    One instance per application; tests pass an explicit ini file.
    """

    KEY_DATA_DIR: str = "data_dir"
    KEY_DB_PATH: str = "db_path"
    KEY_AI_PROVIDER: str = "ai_provider"  # "gemini" or "openrouter"
    KEY_EMBED_PROVIDER: str = "embed_provider"
    KEY_GEMINI_MODEL: str = "gemini_model"
    KEY_EMBED_MODEL: str = "embed_model"
    KEY_API_KEY: str = "api_key"
    KEY_OPENROUTER_KEY: str = "openrouter_key"
    KEY_OPENROUTER_MODEL: str = "openrouter_model"
    KEY_OPENROUTER_URL: str = "openrouter_url"
    KEY_AI_TIMEOUT: str = "ai_timeout"
    KEY_AI_RETRIES: str = "ai_retries"
    KEY_RENDER_TIMEOUT: str = "render_timeout"
    KEY_MAX_WORKERS: str = "max_workers"
    KEY_MAX_ATTEMPTS: str = "max_attempts"
    KEY_STALE_CLAIM: str = "stale_claim_minutes"
    KEY_CONSUME_INTERVAL: str = "consume_interval"
    KEY_LOG_LEVEL: str = "log_level"
    KEY_LOG_COMPONENTS: str = "log_components"

    DEFAULT_MODEL: str = "gemini-2.0-flash"
    DEFAULT_EMBED_MODEL: str = "gemini-embedding-001"
    DEFAULT_OPENROUTER_MODEL: str = "google/gemini-2.0-flash-001"
    DEFAULT_OPENROUTER_URL: str = "https://openrouter.ai/api/v1"
    DEFAULT_AI_TIMEOUT: int = 120
    DEFAULT_AI_RETRIES: int = 3
    DEFAULT_RENDER_TIMEOUT: int = 60
    DEFAULT_MAX_WORKERS: int = 2
    DEFAULT_MAX_ATTEMPTS: int = 3
    DEFAULT_STALE_CLAIM: int = 30
    DEFAULT_CONSUME_INTERVAL: int = 30

    APP_ID: str = "papermind"

    def __init__(self, profile: Optional[str] = None, settings_path: Optional[Union[str, Path]] = None) -> None:
        """
        Initializes the configuration manager.

        Args:
            profile: Optional profile name (e.g. 'dev', 'test'). Isolates all
                     paths and settings (e.g. papermind-dev).
            settings_path: Explicit ini file. Overrides the platform location.
        """
        self.profile = profile
        self.active_id = self.APP_ID
        if profile:
            self.active_id = f"{self.APP_ID}-{profile}"

        if settings_path:
            self.settings = QSettings(str(settings_path), QSettings.Format.IniFormat)
        else:
            self.settings = QSettings(self.active_id, self.active_id)

    def get_config_dir(self) -> Path:
        """
        Returns the path to the application configuration directory.
        Forces a flat structure: ~/.config/papermind[-profile]/
        """
        base_path = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.ConfigLocation)
        config_dir = Path(base_path) / self.active_id
        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    def _default_data_dir(self) -> Path:
        base_path = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.GenericDataLocation)
        return Path(base_path) / self.active_id

    def _get_setting(self, group: str, key: str, default: Any = None) -> Any:
        """
        Helper to retrieve a setting value from a specific group.

        Args:
            group: The configuration group name.
            key: The setting key.
            default: The default value if not found.

        Returns:
            The retrieved value or default.
        """
        if group:
            self.settings.beginGroup(group)
        val = self.settings.value(key, default)
        if group:
            self.settings.endGroup()
        return val

    def _set_setting(self, group: str, key: str, value: Any) -> None:
        """
        Helper to save a setting value into a specific group.

        Args:
            group: The configuration group name.
            key: The setting key.
            value: The value to save.
        """
        if isinstance(value, str):
            value = value.strip()

        if group:
            self.settings.beginGroup(group)
        self.settings.setValue(key, value)
        if group:
            self.settings.endGroup()

    def _get_int(self, group: str, key: str, default: int) -> int:
        # Ini backends hand back strings
        try:
            return int(self._get_setting(group, key, default))
        except (TypeError, ValueError):
            return default

    def _get_secret(self, key: str, *env_names: str) -> str:
        val = self._get_setting("AI", key)
        if val is None or str(val).strip() == "":
            for name in env_names:
                env_val = os.environ.get(name, "")
                if env_val:
                    return env_val
            return ""
        return str(val)

    # --- Storage ---

    def get_data_dir(self) -> Path:
        """
        Returns the data directory holding originals, archive, thumbnails,
        signatures and the consume folder. Created on access.
        """
        raw = self._get_setting("Storage", self.KEY_DATA_DIR, "")
        data_dir = Path(str(raw)) if raw else self._default_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def set_data_dir(self, path: str) -> None:
        self._set_setting("Storage", self.KEY_DATA_DIR, path)

    def get_db_path(self) -> str:
        """Database file, defaulting to <data_dir>/papermind.db."""
        raw = self._get_setting("Storage", self.KEY_DB_PATH, "")
        if raw:
            return str(raw)
        return str(self.get_data_dir() / "papermind.db")

    def set_db_path(self, path: str) -> None:
        self._set_setting("Storage", self.KEY_DB_PATH, path)

    # --- AI ---

    def get_ai_provider(self) -> str:
        return str(self._get_setting("AI", self.KEY_AI_PROVIDER, "gemini")).lower()

    def set_ai_provider(self, provider: str) -> None:
        self._set_setting("AI", self.KEY_AI_PROVIDER, provider)

    def get_embed_provider(self) -> str:
        return str(self._get_setting("AI", self.KEY_EMBED_PROVIDER, "gemini")).lower()

    def set_embed_provider(self, provider: str) -> None:
        self._set_setting("AI", self.KEY_EMBED_PROVIDER, provider)

    def get_gemini_model(self) -> str:
        return str(self._get_setting("AI", self.KEY_GEMINI_MODEL, self.DEFAULT_MODEL))

    def set_gemini_model(self, model: str) -> None:
        self._set_setting("AI", self.KEY_GEMINI_MODEL, model)

    def get_embed_model(self) -> str:
        return str(self._get_setting("AI", self.KEY_EMBED_MODEL, self.DEFAULT_EMBED_MODEL))

    def set_embed_model(self, model: str) -> None:
        self._set_setting("AI", self.KEY_EMBED_MODEL, model)

    def get_api_key(self) -> str:
        """
        Retrieves the Gemini API key, falling back to environment variables.

        Returns:
            The API key string.
        """
        return self._get_secret(self.KEY_API_KEY, "GEMINI_API_KEY", "GOOGLE_API_KEY")

    def set_api_key(self, key: str) -> None:
        self._set_setting("AI", self.KEY_API_KEY, key)

    def get_openrouter_key(self) -> str:
        return self._get_secret(self.KEY_OPENROUTER_KEY, "OPENROUTER_API_KEY")

    def set_openrouter_key(self, key: str) -> None:
        self._set_setting("AI", self.KEY_OPENROUTER_KEY, key)

    def get_openrouter_model(self) -> str:
        return str(self._get_setting("AI", self.KEY_OPENROUTER_MODEL, self.DEFAULT_OPENROUTER_MODEL))

    def set_openrouter_model(self, model: str) -> None:
        self._set_setting("AI", self.KEY_OPENROUTER_MODEL, model)

    def get_openrouter_url(self) -> str:
        return str(self._get_setting("AI", self.KEY_OPENROUTER_URL, self.DEFAULT_OPENROUTER_URL)).rstrip("/")

    def set_openrouter_url(self, url: str) -> None:
        self._set_setting("AI", self.KEY_OPENROUTER_URL, url)

    def get_ai_timeout(self) -> int:
        """Per-request timeout for model calls, in seconds."""
        return self._get_int("AI", self.KEY_AI_TIMEOUT, self.DEFAULT_AI_TIMEOUT)

    def set_ai_timeout(self, seconds: int) -> None:
        self._set_setting("AI", self.KEY_AI_TIMEOUT, int(seconds))

    def get_ai_retries(self) -> int:
        """Bounded retry count for transient model failures."""
        return self._get_int("AI", self.KEY_AI_RETRIES, self.DEFAULT_AI_RETRIES)

    def set_ai_retries(self, retries: int) -> None:
        self._set_setting("AI", self.KEY_AI_RETRIES, int(retries))

    # --- Processing ---

    def get_render_timeout(self) -> int:
        return self._get_int("Processing", self.KEY_RENDER_TIMEOUT, self.DEFAULT_RENDER_TIMEOUT)

    def set_render_timeout(self, seconds: int) -> None:
        self._set_setting("Processing", self.KEY_RENDER_TIMEOUT, int(seconds))

    def get_max_workers(self) -> int:
        return max(1, self._get_int("Processing", self.KEY_MAX_WORKERS, self.DEFAULT_MAX_WORKERS))

    def set_max_workers(self, workers: int) -> None:
        self._set_setting("Processing", self.KEY_MAX_WORKERS, int(workers))

    def get_max_attempts(self) -> int:
        """Automatic retries for documents that failed with a transient error."""
        return self._get_int("Processing", self.KEY_MAX_ATTEMPTS, self.DEFAULT_MAX_ATTEMPTS)

    def set_max_attempts(self, attempts: int) -> None:
        self._set_setting("Processing", self.KEY_MAX_ATTEMPTS, int(attempts))

    def get_stale_claim_minutes(self) -> int:
        return self._get_int("Processing", self.KEY_STALE_CLAIM, self.DEFAULT_STALE_CLAIM)

    def set_stale_claim_minutes(self, minutes: int) -> None:
        self._set_setting("Processing", self.KEY_STALE_CLAIM, int(minutes))

    # --- Watchers ---

    def get_consume_interval(self) -> int:
        """Poll interval of the consume folder, in seconds."""
        return self._get_int("Watchers", self.KEY_CONSUME_INTERVAL, self.DEFAULT_CONSUME_INTERVAL)

    def set_consume_interval(self, seconds: int) -> None:
        self._set_setting("Watchers", self.KEY_CONSUME_INTERVAL, int(seconds))

    # --- Logging ---

    def get_log_level(self) -> str:
        """Retrieves the global log level."""
        return str(self._get_setting("Logging", self.KEY_LOG_LEVEL, "WARNING"))

    def set_log_level(self, level: str) -> None:
        """Saves the global log level."""
        self._set_setting("Logging", self.KEY_LOG_LEVEL, level.upper())

    def get_log_components(self) -> Dict[str, str]:
        """Retrieves a dictionary of component-specific log levels."""
        raw = str(self._get_setting("Logging", self.KEY_LOG_COMPONENTS, "{}"))
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return value if isinstance(value, dict) else {}

    def set_log_components(self, components: Dict[str, str]) -> None:
        """Saves a dictionary of component-specific log levels."""
        self._set_setting("Logging", self.KEY_LOG_COMPONENTS, json.dumps(components))

    def get_log_file_path(self) -> Path:
        """Returns the absolute path to the log file."""
        return self.get_data_dir() / "papermind.log"

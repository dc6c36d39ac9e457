"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/settings_cache.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Scoped cache for runtime settings stored in the database.
                Writers publish an invalidation event; subscribers (e.g. the
                mail watcher) react on their next cycle.
------------------------------------------------------------------------------
"""

import json
import threading
from typing import Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from papermind.errors import ValidationError
from papermind.logger import get_logger
from papermind.models.settings import (
    SETTINGS_AI,
    SETTINGS_EMAIL,
    AISettings,
    EmailSettings,
    settings_model,
)
from papermind.repositories import SettingsRepository

logger = get_logger("settings")

M = TypeVar("M", bound=BaseModel)
Listener = Callable[[str], None]


class SettingsCache:
    """
    Caches typed settings per key. One instance per application.

    Values are loaded lazily from the settings table and kept until put()
    or invalidate() drops them.
    """

    def __init__(self, repo: SettingsRepository) -> None:
        self.repo = repo
        self._values: Dict[str, BaseModel] = {}
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def get(self, key: str, model: Optional[Type[M]] = None) -> M:
        model = model or settings_model(key)
        if model is None:
            raise KeyError(f"No settings model registered for {key}")

        with self._lock:
            cached = self._values.get(key)
            if cached is not None:
                return cached  # type: ignore[return-value]

        raw = self.repo.get(key)
        value = model()
        if raw:
            try:
                value = model.model_validate(json.loads(raw))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                logger.warning(f"Stored settings '{key}' are invalid, using defaults: {e}")

        with self._lock:
            self._values[key] = value
        return value

    def put(self, key: str, value: BaseModel) -> None:
        """Persists settings and publishes the invalidation event."""
        model = settings_model(key)
        if model is not None and not isinstance(value, model):
            raise ValidationError(f"Settings '{key}' expect {model.__name__}")
        self.repo.put(key, value.model_dump_json())
        logger.info(f"Settings '{key}' updated")
        self.invalidate(key)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drops one cached key (or all) and notifies subscribers."""
        with self._lock:
            if key is None:
                keys = list(self._values)
                self._values.clear()
            else:
                keys = [key]
                self._values.pop(key, None)
            listeners = list(self._listeners)

        for k in keys:
            for listener in listeners:
                try:
                    listener(k)
                except Exception as e:
                    logger.error(f"Settings listener failed for '{k}': {e}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a listener; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def ai(self) -> AISettings:
        return self.get(SETTINGS_AI, AISettings)

    def email(self) -> EmailSettings:
        return self.get(SETTINGS_EMAIL, EmailSettings)

"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/logger.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Logging setup for the PaperMind service. One 'papermind'
                logger tree with per-component levels; raw AI exchanges
                and SQL traces only when asked for by name.
------------------------------------------------------------------------------
"""

import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

APP_LOGGER_NAME = "papermind"

DEFAULT_FORMAT = "%(asctime)s [%(levelname).4s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Component names accepted in the log_components setting
COMPONENTS = (
    "core", "pipeline", "rules", "relations", "vocabulary", "signing", "compositor",
    "rasterizer", "importer", "planner", "tasks", "settings", "vault",
    "watchers", "watchers.consume", "watchers.mail",
    "ai", "ai.gateway", "ai.gemini", "ai.openrouter", "ai.raw",
    "db", "db.documents", "db.rules", "db.vocabulary", "db.sql",
)

# Trace loggers stay silent under a global DEBUG until named explicitly
COMPONENT_DEFAULTS: Dict[str, str] = {"ai.raw": "INFO", "db.sql": "INFO"}

# HTTP clients of the AI providers and the PDF stack
THIRD_PARTY_LOGGERS = ("urllib3", "httpx", "google_genai", "pikepdf", "PIL")


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    component_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configures the 'papermind' logger tree. Safe to call again, e.g. after
    the settings changed.

    Args:
        level: Global level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional file receiving the same records as stdout.
        component_levels: Overrides per component, e.g. {"watchers.mail": "DEBUG"}.
    """
    root = logging.getLogger(APP_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    formatter = logging.Formatter(DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))

    levels = dict(COMPONENT_DEFAULTS)
    levels.update(component_levels or {})
    for component, cmp_level in levels.items():
        if component not in COMPONENTS:
            root.warning(f"Unknown log component '{component}' in settings")
        set_component_level(component, cmp_level)


def get_logger(name: str) -> logging.Logger:
    """Logger for one component, namespaced under 'papermind.<name>'."""
    if name.startswith(APP_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")


def set_component_level(component: str, level: str) -> None:
    """Unknown level names are ignored. NOTSET hands control back to the parent."""
    numeric_level = getattr(logging, level.upper(), None)
    if isinstance(numeric_level, int):
        get_logger(component).setLevel(numeric_level)


def log_ai_interaction(prompt: str, response: str, payload: Optional[dict] = None) -> None:
    """Dumps one model exchange on 'papermind.ai.raw' at DEBUG."""
    logger = get_logger("ai.raw")
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(f"--- prompt ({len(prompt)} chars) ---\n{prompt}")
    logger.debug(f"--- response ({len(response)} chars) ---\n{response}")
    if payload:
        logger.debug("--- parsed payload ---\n" + json.dumps(payload, indent=2, default=str))


def log_sql_query(query: str, params: Optional[tuple] = None, result_count: int = 0) -> None:
    """One line per statement on 'papermind.db.sql' at DEBUG."""
    logger = get_logger("db.sql")
    if logger.isEnabledFor(logging.DEBUG):
        msg = f"SQL: {' '.join(query.split())}"
        if params:
            msg += f" | PARAMS: {params}"
        msg += f" | RESULTS: {result_count}"
        logger.debug(msg)

"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           tests/unit/test_logger.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Unit tests for the centralized logging system.
------------------------------------------------------------------------------
"""

import logging

from papermind.logger import get_logger, log_ai_interaction, log_sql_query, set_component_level, setup_logging


def _flush():
    for handler in logging.getLogger("papermind").handlers:
        handler.flush()


def test_logger_namespace():
    """Verify that get_logger returns a child of the papermind root."""
    logger = get_logger("pipeline")
    assert logger.name == "papermind.pipeline"
    assert get_logger("papermind.pipeline") is logger


def test_logging_to_file(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    setup_logging(level="DEBUG", log_file=str(log_file))

    get_logger("test").debug("Logging to file test message")
    _flush()

    assert "Logging to file test message" in log_file.read_text()


def test_component_level_overrides(tmp_path):
    """A component can be more verbose than the global level."""
    log_file = tmp_path / "component.log"
    setup_logging(level="INFO", log_file=str(log_file), component_levels={"ai": "DEBUG"})

    get_logger("ai").debug("AI DEBUG MESSAGE")
    get_logger("db").debug("DB DEBUG MESSAGE")
    _flush()

    content = log_file.read_text()
    assert "AI DEBUG MESSAGE" in content
    assert "DB DEBUG MESSAGE" not in content
    set_component_level("ai", "NOTSET")


def test_quiet_default_mode(tmp_path):
    log_file = tmp_path / "quiet.log"
    setup_logging(level="WARNING", log_file=str(log_file))

    get_logger("core").info("THIS SHOULD NOT APPEAR")
    log_sql_query("SELECT 1", (), 1)
    _flush()

    content = log_file.read_text()
    assert "THIS SHOULD NOT APPEAR" not in content
    assert "SQL:" not in content


def test_sql_debug_output(tmp_path):
    log_file = tmp_path / "sql.log"
    setup_logging(level="WARNING", log_file=str(log_file), component_levels={"db.sql": "DEBUG"})

    log_sql_query("SELECT *\n    FROM documents WHERE id = ?", ("abc",), 1)
    _flush()

    assert "SQL: SELECT * FROM documents WHERE id = ? | PARAMS: ('abc',) | RESULTS: 1" in log_file.read_text()
    set_component_level("db.sql", "NOTSET")


def test_global_debug_keeps_traces_quiet(tmp_path):
    log_file = tmp_path / "debug.log"
    setup_logging(level="DEBUG", log_file=str(log_file))

    get_logger("pipeline").debug("PIPELINE DEBUG MESSAGE")
    log_sql_query("SELECT 1", (), 1)
    log_ai_interaction("PROMPT TEXT", "RESPONSE TEXT")
    _flush()

    content = log_file.read_text()
    assert "PIPELINE DEBUG MESSAGE" in content
    assert "SQL:" not in content
    assert "PROMPT TEXT" not in content
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_ai_trace_on_request(tmp_path):
    log_file = tmp_path / "ai.log"
    setup_logging(level="WARNING", log_file=str(log_file), component_levels={"ai.raw": "DEBUG"})

    log_ai_interaction("PROMPT TEXT", "RESPONSE TEXT", {"title": "Invoice"})
    _flush()

    content = log_file.read_text()
    assert "PROMPT TEXT" in content
    assert '"title": "Invoice"' in content
    set_component_level("ai.raw", "NOTSET")


def test_unknown_component_is_reported(tmp_path):
    log_file = tmp_path / "unknown.log"
    setup_logging(level="WARNING", log_file=str(log_file), component_levels={"database": "DEBUG"})
    _flush()

    assert "Unknown log component 'database'" in log_file.read_text()
    set_component_level("database", "NOTSET")

"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/database.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Central database manager for SQLite persistence. Handles
                schema initialization and provides the serialized
                connection access shared by all repositories.
------------------------------------------------------------------------------
"""

import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence

from papermind.logger import get_logger, log_sql_query

logger = get_logger("db")


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS correspondents (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE COLLATE NOCASE,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS document_types (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE COLLATE NOCASE,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tags (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE COLLATE NOCASE,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        content TEXT,
        extracted_data TEXT, -- JSON object
        summary TEXT,
        embedding TEXT, -- JSON list of floats
        state TEXT NOT NULL DEFAULT 'unprocessed',
        original_file TEXT NOT NULL,
        archive_file TEXT,
        thumbnail_file TEXT,
        checksum TEXT UNIQUE,
        mime_type TEXT NOT NULL DEFAULT 'application/pdf',
        file_size INTEGER DEFAULT 0,
        page_count INTEGER,
        source TEXT NOT NULL DEFAULT 'upload',
        correspondent_id TEXT REFERENCES correspondents(id) ON DELETE SET NULL,
        document_type_id TEXT REFERENCES document_types(id) ON DELETE SET NULL,
        document_date TEXT,
        language TEXT,
        processing_error TEXT,
        error_kind TEXT,
        attempts INTEGER NOT NULL DEFAULT 0,
        processing_started_at TEXT,
        deleted_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS document_tags (
        document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        tag_id TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
        PRIMARY KEY (document_id, tag_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS matching_rules (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        active INTEGER NOT NULL DEFAULT 1,
        match_field TEXT NOT NULL,
        match_operator TEXT NOT NULL,
        match_value TEXT NOT NULL,
        set_correspondent_id TEXT REFERENCES correspondents(id) ON DELETE SET NULL,
        set_document_type_id TEXT REFERENCES document_types(id) ON DELETE SET NULL,
        add_tag_ids TEXT, -- JSON list of tag ids
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS document_relations (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        target_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        relation_type TEXT NOT NULL DEFAULT 'related',
        created_at TEXT NOT NULL,
        UNIQUE (source_id, target_id),
        CHECK (source_id < target_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS signatures (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        image_file TEXT NOT NULL,
        width INTEGER NOT NULL,
        height INTEGER NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS signing_tokens (
        token TEXT PRIMARY KEY,
        signer_name TEXT,
        expires_at TEXT NOT NULL,
        used_at TEXT,
        signature_id TEXT REFERENCES signatures(id) ON DELETE SET NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS reminders (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        note TEXT,
        remind_at TEXT NOT NULL,
        dismissed INTEGER NOT NULL DEFAULT 0,
        document_id TEXT REFERENCES documents(id) ON DELETE CASCADE,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS todos (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        document_id TEXT REFERENCES documents(id) ON DELETE CASCADE,
        priority INTEGER NOT NULL DEFAULT 4 CHECK (priority BETWEEN 1 AND 4),
        due_date TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        completed_at TEXT,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ingest_keys (
        key TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        document_id TEXT,
        seen_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        kind TEXT NOT NULL,
        state TEXT NOT NULL,
        total INTEGER NOT NULL DEFAULT 0,
        processed INTEGER NOT NULL DEFAULT 0,
        affected INTEGER NOT NULL DEFAULT 0,
        failed INTEGER NOT NULL DEFAULT 0,
        error TEXT,
        started_at TEXT NOT NULL,
        finished_at TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_documents_state ON documents(state, deleted_at);",
    "CREATE INDEX IF NOT EXISTS idx_rules_order ON matching_rules(active, sort_order);",
    "CREATE INDEX IF NOT EXISTS idx_reminders_due ON reminders(dismissed, remind_at);",
]


class DatabaseManager:
    """
    Manages the SQLite connection and schema.

    The connection is shared across worker threads; a re-entrant lock
    serializes statements, and transaction() nests by joining the outermost
    transaction.
    """

    def __init__(self, db_path: str = "papermind.db") -> None:
        """
        Initializes the DatabaseManager.

        Args:
            db_path: Path to the SQLite database file (or ':memory:').
        """
        self.db_path: str = db_path
        self.connection: Optional[sqlite3.Connection] = None
        self.lock = threading.RLock()
        self._depth = 0
        self._connect()
        self.init_db()

    def _connect(self) -> None:
        """
        Establishes a connection and configures PRAGMAs.
        Enables WAL mode and foreign key constraints.
        """
        try:
            self.connection = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)
            self.connection.row_factory = sqlite3.Row
            self.connection.execute("PRAGMA foreign_keys = ON")
            self.connection.execute("PRAGMA journal_mode = WAL")
            logger.info(f"Connected to database at {self.db_path} (WAL mode enabled)")
        except sqlite3.Error as e:
            logger.critical(f"Failed to connect to database: {e}")
            raise

    def init_db(self) -> None:
        """Creates all tables and indexes if they do not exist yet."""
        with self.transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logger.debug("Schema initialized")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Runs the enclosed statements atomically. Inner calls join the
        outer transaction; only the outermost commits or rolls back.
        """
        with self.lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self.connection
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            try:
                yield self.connection
                self.connection.commit()
            except BaseException:
                self.connection.rollback()
                raise
            finally:
                self._depth = 0

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Executes one write statement in its own (or the enclosing) transaction."""
        with self.transaction() as conn:
            cursor = conn.execute(sql, tuple(params))
            log_sql_query(sql, tuple(params), cursor.rowcount)
            return cursor

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self.lock:
            rows = self.connection.execute(sql, tuple(params)).fetchall()
        log_sql_query(sql, tuple(params), len(rows))
        return rows

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self.lock:
            row = self.connection.execute(sql, tuple(params)).fetchone()
        log_sql_query(sql, tuple(params), 1 if row else 0)
        return row

    def close(self) -> None:
        if self.connection:
            with self.lock:
                self.connection.close()
                self.connection = None
            logger.info("Database connection closed")

"""SQLite storage layer for encrypted secrets and access tokens.

Only envelopes are stored here; the daemon never sees plaintext.
"""

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .errors import StorageError

BUSY_TIMEOUT = 30.0  # seconds to wait on a locked database


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TokenRecord:
    id: int
    token_hash: str
    name: str
    created_at: str


@dataclass
class SecretRecord:
    id: int
    project: str
    environment: str
    key: str
    value: str
    created_at: str
    updated_at: str


class SecretsDatabase:
    """SQLite-backed storage for secret envelopes and bearer tokens.

    A new connection is opened for every operation, so one instance can be
    shared across request threads. SQLite's locking serializes writers.
    """

    def __init__(self, db_path: str | Path, clock: Callable[[], str] = utc_now):
        self.db_path = str(db_path)
        self._clock = clock
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS secrets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project TEXT NOT NULL,
                    environment TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(project, environment, key)
                );

                CREATE INDEX IF NOT EXISTS idx_secrets_project_env
                    ON secrets(project, environment);

                CREATE TABLE IF NOT EXISTS tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token_hash TEXT UNIQUE NOT NULL,
                    name TEXT UNIQUE NOT NULL,
                    created_at TEXT NOT NULL
                );
            """)

    # ── Token operations ───────────────────────────────────────────

    def insert_token(self, token_hash: str, name: str) -> TokenRecord:
        now = self._clock()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO tokens (token_hash, name, created_at) VALUES (?, ?, ?)",
                (token_hash, name, now),
            )
            return TokenRecord(cursor.lastrowid, token_hash, name, now)

    def get_token_by_hash(self, token_hash: str) -> TokenRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, token_hash, name, created_at FROM tokens WHERE token_hash = ?",
                (token_hash,),
            ).fetchone()
        if row is None:
            return None
        return TokenRecord(*row)

    def get_token_by_name(self, name: str) -> TokenRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, token_hash, name, created_at FROM tokens WHERE name = ?",
                (name,),
            ).fetchone()
        if row is None:
            return None
        return TokenRecord(*row)

    def list_tokens(self) -> list[TokenRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, token_hash, name, created_at FROM tokens ORDER BY id"
            ).fetchall()
        return [TokenRecord(*row) for row in rows]

    # ── Secret operations ──────────────────────────────────────────

    def upsert(self, project: str, environment: str, key: str, value: str) -> None:
        """Insert a secret or replace the value of an existing one.

        One statement, so the write is atomic. ``created_at`` is kept on
        conflict and ``updated_at`` only ever moves forward.
        """
        now = self._clock()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO secrets "
                "(project, environment, key, value, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(project, environment, key) DO UPDATE SET "
                "value = excluded.value, "
                "updated_at = MAX(secrets.updated_at, excluded.updated_at)",
                (project, environment, key, value, now, now),
            )

    def fetch(self, project: str, environment: str) -> list[SecretRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, project, environment, key, value, created_at, updated_at "
                "FROM secrets WHERE project = ? AND environment = ? ORDER BY key",
                (project, environment),
            ).fetchall()
        return [SecretRecord(*row) for row in rows]

    def get(self, project: str, environment: str, key: str) -> SecretRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, project, environment, key, value, created_at, updated_at "
                "FROM secrets WHERE project = ? AND environment = ? AND key = ?",
                (project, environment, key),
            ).fetchone()
        if row is None:
            return None
        return SecretRecord(*row)

    def list_projects(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT project FROM secrets ORDER BY project"
            ).fetchall()
        return [row[0] for row in rows]

    def delete(self, project: str, environment: str, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM secrets WHERE project = ? AND environment = ? AND key = ?",
                (project, environment, key),
            )
            return cursor.rowcount > 0

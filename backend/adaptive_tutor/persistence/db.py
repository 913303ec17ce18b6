"""SQLite connection handling + schema initialisation.

`Database` is injected into every repository. Repositories call `session()` for each operation;
inside `transaction()` those calls share the transaction's connection on the same thread, so a
multi-repository write commits or rolls back as one unit.
"""
from __future__ import annotations
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

_MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "migrations")


class Database:
    def __init__(self, path: str):
        self.path = path
        self._local = threading.local()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Join the thread's open transaction, or run on a short-lived connection that commits on exit."""
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return
        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction. BEGIN IMMEDIATE takes the write lock up front, serialising writers."""
        active = getattr(self._local, "conn", None)
        if active is not None:
            # nested: the outer transaction owns commit/rollback
            yield active
            return
        conn = self.connect()
        conn.isolation_level = None
        conn.execute("BEGIN IMMEDIATE")
        self._local.conn = conn
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        finally:
            self._local.conn = None
            conn.close()


def init_db(db: Database) -> None:
    """Run all migration SQL files against the database."""
    directory = os.path.dirname(db.path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = db.connect()
    try:
        for name in sorted(os.listdir(_MIGRATIONS_DIR)):
            if not name.endswith(".sql"):
                continue
            with open(os.path.join(_MIGRATIONS_DIR, name), "r", encoding="utf-8") as f:
                conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()

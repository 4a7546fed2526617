# memory/sqlite_store.py

import os
import sqlite3
from contextlib import contextmanager
import config
from core.errors import StoreError
from utils.logger import log


class SqliteStore:
    """
    Shared connection handling for the SQLite-backed stores. Every public
    operation opens its own connection, so stores are safe to share across
    threads. Writes that must be atomic go through _transaction().
    """

    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.DATABASE_PATH
        directory = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(directory, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            self._init_database(conn)

    def _init_database(self, conn: sqlite3.Connection) -> None:
        raise NotImplementedError

    @contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(self.db_path, timeout=10, isolation_level=None)
        except sqlite3.Error as e:
            log(f"[{type(self).__name__}] Could not open database {self.db_path}: {e}", level="ERROR")
            raise StoreError(str(e)) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.IntegrityError:
            # Constraint violations are expected outcomes for some callers (code collisions)
            raise
        except sqlite3.Error as e:
            log(f"[{type(self).__name__}] Database error: {e}", level="ERROR", exc_info=True)
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self):
        """BEGIN IMMEDIATE so concurrent writers serialize instead of interleaving."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

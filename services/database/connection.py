import os
import sqlite3
from typing import Tuple

from utils.logger import get_module_logger


class DatabaseConnection:
    """Opens a fresh SQLite connection per operation; nothing is pooled."""

    def __init__(self, db_file: str, *, logger=None):
        self.db_file = db_file
        self.logger = logger or get_module_logger("Service.Database.Connection")

        directory = os.path.dirname(self.db_file)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def connect_db(self) -> Tuple[sqlite3.Connection, sqlite3.Cursor]:
        """Connect to the SQLite database with settings suited to short independent writes."""
        try:
            conn = sqlite3.connect(self.db_file, timeout=30.0)
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            self._apply_optimizations(cursor)

            self.logger.debug(f"Database connection established: {self.db_file}")
            return conn, cursor

        except sqlite3.Error as e:
            self.logger.error(f"Failed to connect to database {self.db_file}: {e}")
            raise

    def _apply_optimizations(self, cursor: sqlite3.Cursor):
        pragmas = [
            "PRAGMA journal_mode=WAL",
            "PRAGMA synchronous=NORMAL",
            "PRAGMA busy_timeout=30000",
        ]

        for pragma in pragmas:
            try:
                cursor.execute(pragma)
            except sqlite3.Error as e:
                self.logger.warning(f"Failed to apply {pragma}: {e}")

    def test_connection(self) -> bool:
        """Test database connection and return success status"""
        try:
            conn, cursor = self.connect_db()
            try:
                cursor.execute("SELECT 1")
                return cursor.fetchone() is not None
            finally:
                conn.close()
        except sqlite3.Error as e:
            self.logger.error(f"Database connection test failed: {e}")
            return False

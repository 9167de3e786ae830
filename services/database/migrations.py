"""
Module Name: migrations.py
Description:
    Creates the SQLite schema used by the downloader: the chapter exclusion
    list and one bookkeeping table per scanlation source.

Location:
    /services/database/migrations.py

"""

from typing import TYPE_CHECKING

from utils.logger import get_module_logger

if TYPE_CHECKING:
    from .connection import DatabaseConnection

# Bookkeeping tables, one per source site
SOURCE_TABLES = ("AsuraScans", "FlameScans", "WeebCentral")


class DatabaseMigrations:
    """Handles database initialization."""

    def __init__(self, connection_manager: "DatabaseConnection", *, logger=None):
        self.connection_manager = connection_manager
        self.logger = logger or get_module_logger("Service.Database.Migrations")

    def initialize_database(self):
        """Create all tables if they do not exist yet."""
        conn, cursor = self.connection_manager.connect_db()
        try:
            self._create_exclude_table(cursor)
            for table in SOURCE_TABLES:
                self._create_source_table(cursor, table)
            conn.commit()
            self.logger.info(f"Database schema ready: {self.connection_manager.db_file}")
        except Exception:
            conn.rollback()
            self.logger.exception("Error initializing database schema")
            raise
        finally:
            conn.close()

    def _create_exclude_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ExcludeManga (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                MangaTitle TEXT NOT NULL,
                Chapter TEXT NOT NULL,
                UNIQUE(MangaTitle, Chapter)
            )
        """)
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_exclude_manga_title ON ExcludeManga(MangaTitle)')

    def _create_source_table(self, cursor, table: str):
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                Title TEXT NOT NULL UNIQUE,
                ExtraInformation TEXT NOT NULL DEFAULT '',
                LastUpdated TIMESTAMP
            )
        """)

"""
Module Name: manga_download_repo.py
Description:
    Metadata store for the download pipeline: the per-title chapter
    exclusion list and free-form bookkeeping appended to a title's record in
    its source table. Every call opens and closes its own connection.

Location:
    /services/database/manga_download_repo.py

"""

from datetime import datetime
from typing import Set

from utils.logger import get_module_logger

from .connection import DatabaseConnection
from .error_handling import error_handler
from .migrations import SOURCE_TABLES

_LOGGER = get_module_logger("Service.Database.MangaDownloadRepo")


class MangaDownloadRepo:
    """Exclusion and bookkeeping operations keyed by manga title."""

    def __init__(self, connection_manager: DatabaseConnection, *, logger=None):
        self.connection_manager = connection_manager
        self.logger = logger or _LOGGER

    @error_handler.with_retry()
    def add_excluded_chapter(self, title: str, chapter: str) -> bool:
        """
        Exclude a chapter of a title from future downloads.

        Args:
            title: Manga title
            chapter: Chapter identifier

        Returns:
            True if a new exclusion was recorded, False if it already existed
        """
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute(
                "SELECT COUNT(1) FROM ExcludeManga WHERE MangaTitle = ? AND Chapter = ?",
                (title, chapter),
            )
            if cursor.fetchone()[0] > 0:
                self.logger.info(f"Exclusion already exists for title='{title}', chapter='{chapter}'")
                return False

            cursor.execute(
                "INSERT INTO ExcludeManga (MangaTitle, Chapter) VALUES (?, ?)",
                (title, chapter),
            )
            conn.commit()
            self.logger.info(f"Inserted exclusion record for title='{title}', chapter='{chapter}'")
            return True
        finally:
            conn.close()

    @error_handler.with_retry()
    def get_excluded_chapters(self, title: str) -> Set[str]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute("SELECT Chapter FROM ExcludeManga WHERE MangaTitle = ?", (title,))
            chapters = {row["Chapter"] for row in cursor.fetchall()}
            self.logger.debug(f"Retrieved {len(chapters)} excluded chapters for title='{title}'")
            return chapters
        finally:
            conn.close()

    @error_handler.with_retry()
    def append_metadata(self, title: str, info: str, source_table: str) -> bool:
        """
        Append comma-terminated information to a title's ExtraInformation.

        Empty entries left by earlier appends (',,') are collapsed first.

        Args:
            title: Manga title whose record is updated
            info: Text to append (typically a chapter number)
            source_table: One of SOURCE_TABLES

        Returns:
            True if the title's record was updated, False if no record exists

        Raises:
            ValueError: If source_table is not a known source table
        """
        if source_table not in SOURCE_TABLES:
            raise ValueError(f"Unknown source table: {source_table}")

        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute(
                f"UPDATE {source_table} SET ExtraInformation = REPLACE(ExtraInformation, ',,', ',') WHERE Title = ?",
                (title,),
            )
            cursor.execute(
                f"""
                UPDATE {source_table}
                   SET LastUpdated = ?,
                       ExtraInformation = COALESCE(ExtraInformation, '') || ?
                 WHERE Title = ?
                """,
                (datetime.now().isoformat(), f"{info},", title),
            )
            updated = cursor.rowcount > 0
            conn.commit()
        finally:
            conn.close()

        if updated:
            self.logger.info(f"Appended '{info}' to title='{title}' in table='{source_table}'")
        else:
            self.logger.warning(f"No record for title='{title}' in table='{source_table}'; nothing appended")
        return updated

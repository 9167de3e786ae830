"""
Database Service Package

Exposes the SQLite connection manager, schema setup and the metadata store
used by the download pipeline.
"""

from .connection import DatabaseConnection
from .manga_download_repo import MangaDownloadRepo
from .migrations import SOURCE_TABLES, DatabaseMigrations


__all__ = ['DatabaseConnection', 'DatabaseMigrations', 'MangaDownloadRepo', 'SOURCE_TABLES']

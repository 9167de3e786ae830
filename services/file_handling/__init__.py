"""
Module Name: __init__.py
Description:
    Filesystem gateway and file name sanitizer for downloaded chapters.

Location:
    /services/file_handling/__init__.py

"""

from .file_handler import FileHandler
from .sanitizer import FileNameSanitizer

__all__ = ["FileHandler", "FileNameSanitizer"]

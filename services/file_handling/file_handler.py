"""
Module Name: file_handler.py
Description:
    Filesystem operations used by the download pipeline: folder checks and
    creation, size validation of a chapter folder, and writing page bytes
    (raw or from an embedded base64 payload).

Location:
    /services/file_handling/file_handler.py

"""

import base64
import binascii
import os
from pathlib import Path
from typing import Union

from services.download.errors import PayloadFormatError
from utils.logger import get_module_logger

from .sanitizer import FileNameSanitizer

_LOGGER = get_module_logger("Service.FileHandling.FileHandler")

PathLike = Union[str, os.PathLike]


def _require_path(value, name: str) -> None:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} must be provided")


class FileHandler:
    """Filesystem gateway for chapter folders and page files."""

    def __init__(self, sanitizer: FileNameSanitizer = None, *, logger=None):
        self.logger = logger or _LOGGER
        self.sanitizer = sanitizer or FileNameSanitizer(logger=self.logger)

    def folder_exists(self, folder_path: PathLike) -> bool:
        _require_path(folder_path, "Folder path")
        exists = os.path.isdir(folder_path)
        self.logger.debug(f"Folder '{folder_path}' exists: {exists}")
        return exists

    def create_folder(self, folder_path: PathLike) -> None:
        """Create a folder and any missing parents; existing folders are left alone."""
        _require_path(folder_path, "Folder path")
        try:
            os.makedirs(folder_path, exist_ok=True)
            self.logger.debug(f"Folder created or already exists: {folder_path}")
        except OSError as e:
            self.logger.error(f"Failed to create folder {folder_path}: {e}")
            raise

    def get_parent_folder(self, file_path: PathLike) -> str:
        _require_path(file_path, "File path")
        directory = os.path.dirname(os.fspath(file_path))
        if not directory:
            self.logger.warning(f"Unable to determine parent directory for: {file_path}")
        return directory

    def has_file_above_size(self, folder_path: PathLike, threshold_bytes: int) -> bool:
        """
        Check whether any file directly inside a folder is larger than a threshold.

        Args:
            folder_path: Folder to inspect (not recursive)
            threshold_bytes: Size a file must strictly exceed

        Returns:
            True if at least one file is above the threshold
        """
        _require_path(folder_path, "Folder path")
        if not self.folder_exists(folder_path):
            self.logger.warning(f"Folder does not exist: {folder_path}")
            return False

        files = [entry for entry in Path(folder_path).iterdir() if entry.is_file()]
        if not files:
            self.logger.warning(f"No files found in folder: {folder_path}")
            return False

        for entry in files:
            size = entry.stat().st_size
            if size > threshold_bytes:
                self.logger.debug(f"File '{entry}' size {size} is above threshold {threshold_bytes}")
                return True

        self.logger.info(f"All files in '{folder_path}' are <= {threshold_bytes} bytes")
        return False

    def sanitize_file_name(self, file_name: str) -> str:
        return self.sanitizer.sanitize_filename(file_name)

    def write_bytes(self, file_path: PathLike, content: bytes) -> None:
        """Write bytes to a file, creating its folder and overwriting any existing file."""
        _require_path(file_path, "File path")
        directory = os.path.dirname(os.fspath(file_path))
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(file_path, "wb") as handle:
            handle.write(content)
        self.logger.debug(f"Wrote {len(content)} bytes to {file_path}")

    def save_base64(self, file_path: PathLike, base64_content: str) -> None:
        """
        Decode a base64 payload and write it to a file.

        Raises:
            PayloadFormatError: If the payload is empty or not valid base64
        """
        _require_path(file_path, "File path")
        if not base64_content or not base64_content.strip():
            raise PayloadFormatError(f"Embedded payload for {file_path} is empty")

        try:
            # Whitespace and line breaks inside the payload are allowed
            content = base64.b64decode("".join(base64_content.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            self.logger.error(f"Invalid base64 content for file {file_path}: {e}")
            raise PayloadFormatError(f"Invalid base64 content for {file_path}: {e}") from e

        self.write_bytes(file_path, content)
        self.logger.info(f"File saved successfully to {file_path}")

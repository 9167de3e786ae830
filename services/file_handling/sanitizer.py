"""
Module Name: sanitizer.py
Description:
    Sanitizes page image file names so the names written to disk and reported
    downstream match the legacy naming scheme: invalid characters removed,
    diacritics stripped, literal percent signs dropped, HTML entities decoded.

Location:
    /services/file_handling/sanitizer.py

"""

import html
import unicodedata

from utils.logger import get_module_logger

_LOGGER = get_module_logger("Service.FileHandling.Sanitizer")


class FileNameSanitizer:
    """
    Sanitizes single file names (no directory components).

    Steps, in order:
    - Remove characters that are invalid in file names on any target platform
    - Decompose unicode (NFD) and drop non-spacing marks (diacritics)
    - Drop literal '%' characters
    - Recompose (NFC) and decode HTML entities

    The order is significant: existing libraries were named with it, so
    changing it would rename files already on disk.
    """

    # Control characters plus the characters Windows refuses in file names,
    # which is the strictest set any library share is mounted with.
    INVALID_CHARS = frozenset(
        [chr(code) for code in range(32)] + ['"', '<', '>', '|', ':', '*', '?', '\\', '/']
    )

    def __init__(self, *, logger=None):
        self.logger = logger or _LOGGER

    def strip_invalid_chars(self, file_name: str) -> str:
        return ''.join(ch for ch in file_name if ch not in self.INVALID_CHARS)

    def strip_diacritics(self, file_name: str) -> str:
        decomposed = unicodedata.normalize('NFD', file_name)
        return ''.join(ch for ch in decomposed if unicodedata.category(ch) != 'Mn')

    def sanitize_filename(self, file_name: str) -> str:
        """
        Sanitize a file name.

        Args:
            file_name: Raw file name, possibly containing accents or entities

        Returns:
            Sanitized file name
        """
        if not file_name:
            return ''

        sanitized = self.strip_invalid_chars(file_name)
        sanitized = self.strip_diacritics(sanitized)
        sanitized = sanitized.replace('%', '')
        sanitized = html.unescape(unicodedata.normalize('NFC', sanitized))

        if sanitized != file_name:
            self.logger.debug(f"Sanitized file name '{file_name}' -> '{sanitized}'")
        return sanitized

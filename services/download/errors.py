"""Exceptions raised while turning a queue message into stored chapter files."""


class DownloadError(RuntimeError):
    """Base error for the download subsystem."""


class JobDeserializationError(DownloadError):
    """Raised when a message body cannot be parsed into a job (poison message)."""


class TransferError(DownloadError):
    """Raised when page images could not be transferred to disk."""


class ImageFetchError(TransferError):
    """Raised when fetching an image by URL fails (network fault or non-2xx status)."""

    def __init__(self, url: str, message: str, status_code: int = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class PayloadFormatError(TransferError):
    """Raised when an embedded image payload is empty or not valid base64."""


class FileLockedError(TransferError):
    """Raised when a destination file is held by another writer."""


class NotificationError(DownloadError):
    """Raised when the downstream update notification cannot be sent."""

"""
Download Module
===============

Turns chapter jobs received from the download queue into stored page files,
bookkeeping updates and downstream notifications.
"""

from .errors import (
    DownloadError,
    FileLockedError,
    ImageFetchError,
    JobDeserializationError,
    NotificationError,
    PayloadFormatError,
    TransferError,
)
from .models import DownloadOutcome, ImageItem, Job, NotificationPayload, parse_job

__all__ = [
    'DownloadError',
    'DownloadOutcome',
    'FileLockedError',
    'ImageFetchError',
    'ImageItem',
    'Job',
    'JobDeserializationError',
    'NotificationError',
    'NotificationPayload',
    'PayloadFormatError',
    'TransferError',
    'parse_job',
]

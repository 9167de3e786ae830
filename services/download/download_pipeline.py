"""
Module Name: download_pipeline.py
Description:
    Turns one chapter job into stored page files, a bookkeeping entry in the
    metadata store and a downstream update notification.

    Steps, in order:
    1. Empty jobs are skipped
    2. The destination folder is created (existing folders are re-downloaded into)
    3. Excluded chapters are skipped
    4. Images are transferred (embedded payloads or remote fetch)
    5. The folder must hold at least one file above the size threshold
    6. The chapter is appended to the title's record and the update is posted

    Transfer and store errors propagate to the caller so the job can be
    retried. A failed size validation is logged and returned as an outcome;
    it is not retried.

Location:
    /services/download/download_pipeline.py

"""

from typing import Dict, Optional
from urllib.parse import urlparse

import requests

from services.file_handling import FileHandler
from utils.logger import get_module_logger

from .errors import NotificationError
from .models import DownloadOutcome, Job, NotificationPayload
from .transfer_strategy import EmbeddedTransfer, RemoteTransfer, TransferStrategy, select_transfer

_LOGGER = get_module_logger("Service.Download.Pipeline")

DEFAULT_SOURCE_TABLE = "WeebCentral"

# Checked in order against the URL's host
SOURCE_TABLE_RULES = (
    ("asura", "AsuraScans"),
    ("flamecomics", "FlameScans"),
)


def resolve_source_table(uri: Optional[str]) -> str:
    """Map the domain of an image URL to the bookkeeping table of its source site."""
    if not uri:
        return DEFAULT_SOURCE_TABLE

    domain = urlparse(uri).netloc or uri
    domain = domain.lower()
    for marker, table in SOURCE_TABLE_RULES:
        if marker in domain:
            return table
    return DEFAULT_SOURCE_TABLE


class DownloadPipeline:
    """Processes a single job end to end; used by the queue consumer."""

    def __init__(self, store, file_handler: FileHandler, notification_client,
                 embedded_transfer: Optional[TransferStrategy] = None,
                 remote_transfer: Optional[TransferStrategy] = None,
                 min_file_sizes: Optional[Dict[str, int]] = None, *, logger=None):
        """
        Args:
            store: Metadata store (exclusions + bookkeeping)
            file_handler: Filesystem gateway
            notification_client: Client posting the completion payload
            embedded_transfer: Strategy for jobs carrying embedded payloads
            remote_transfer: Strategy for jobs fetched by URL
            min_file_sizes: Validation threshold in bytes per transfer mode
        """
        self.store = store
        self.file_handler = file_handler
        self.notification_client = notification_client
        self.logger = logger or _LOGGER
        self.embedded_transfer = embedded_transfer or EmbeddedTransfer(file_handler)
        self.remote_transfer = remote_transfer or RemoteTransfer(file_handler)
        self.min_file_sizes = {
            EmbeddedTransfer.mode: 10 * 1024,
            RemoteTransfer.mode: 15 * 1024,
        }
        if min_file_sizes:
            self.min_file_sizes.update(min_file_sizes)

    def process(self, job: Job) -> DownloadOutcome:
        """
        Run the pipeline for one job.

        Returns:
            The outcome of a handled job

        Raises:
            TransferError: If any image could not be written
            Exception: Store and filesystem errors propagate unchanged
        """
        if not job.images:
            self.logger.error(f"Nothing to download for {job.label}")
            return DownloadOutcome.SKIPPED_EMPTY

        destination_folder = self.file_handler.get_parent_folder(job.images[0].destination_path)
        if self.file_handler.folder_exists(destination_folder):
            self.logger.info(f"Folder {destination_folder} already exists. Redownloading files for {job.label}")
        else:
            self.file_handler.create_folder(destination_folder)

        excluded = self.store.get_excluded_chapters(job.title)
        if job.chapter_num in excluded:
            self.logger.info(f"Skipping excluded chapter {job.label}")
            return DownloadOutcome.SKIPPED_EXCLUDED

        strategy = select_transfer(job.images, self.embedded_transfer, self.remote_transfer)
        self.logger.info(f"Starting {strategy.mode} transfer of {len(job.images)} images for {job.label}")
        strategy.transfer(job.images)

        threshold = self.min_file_sizes[strategy.mode]
        if not self.file_handler.has_file_above_size(destination_folder, threshold):
            self.logger.warning(f"Files downloaded are invalid for {job.label}")
            return DownloadOutcome.VALIDATION_FAILED

        self.logger.info(f"Successfully downloaded {job.label}")
        source_table = resolve_source_table(job.images[0].source_uri)
        self.store.append_metadata(job.title, job.chapter_num, source_table)

        self._notify(job, self.build_payload(job))
        return DownloadOutcome.COMPLETED

    def build_payload(self, job: Job) -> NotificationPayload:
        file_names = [self.file_handler.sanitize_file_name(image.file_name) for image in job.images]
        return NotificationPayload(
            chapter_label=job.chapter_num,
            title=job.title,
            path=",".join(file_names),
        )

    def _notify(self, job: Job, payload: NotificationPayload) -> None:
        # Failures are logged, never raised
        try:
            self.notification_client.send(payload)
        except (NotificationError, requests.RequestException) as e:
            self.logger.error(f"Update notification failed for {job.label}: {e}")
        except Exception:
            self.logger.exception(f"Unexpected error sending update notification for {job.label}")

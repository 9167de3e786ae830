"""
Module Name: transfer_strategy.py
Description:
    Moves a job's page images onto disk, either by decoding the base64
    payloads embedded in the message or by fetching each image by URL.
    Fetches run one image at a time; any failure propagates so the whole job
    is retried.

Location:
    /services/download/transfer_strategy.py

"""

import os
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import requests

from services.file_handling import FileHandler
from utils.logger import get_module_logger

from .errors import FileLockedError, ImageFetchError
from .models import ImageItem

try:  # pragma: no cover - windows fallback
    import fcntl
except ImportError:  # pragma: no cover
    fcntl = None  # type: ignore[assignment]

_LOGGER = get_module_logger("Service.Download.Transfer")

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = 100


class TransferStrategy(ABC):
    """Persists every image of a job to its destination."""

    mode = ""

    def __init__(self, file_handler: FileHandler, *, logger=None):
        self.file_handler = file_handler
        self.logger = logger or _LOGGER

    @abstractmethod
    def transfer(self, images: Sequence[ImageItem]) -> None:
        """Write all images to disk, raising on the first failure."""


class EmbeddedTransfer(TransferStrategy):
    """Decodes embedded base64 payloads straight to each destination path."""

    mode = "embedded"

    def transfer(self, images: Sequence[ImageItem]) -> None:
        for image in images:
            self.file_handler.save_base64(image.destination_path, image.embedded_payload or "")
            self.logger.info(f"Image saved {image.destination_path}")


class RemoteTransfer(TransferStrategy):
    """Fetches images by URL, streaming each response body into a locked file."""

    mode = "remote"

    def __init__(self, file_handler: FileHandler, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT, *, logger=None):
        super().__init__(file_handler, logger=logger)
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                'User-Agent': 'MangaDownloader/1.0 (Download Worker)'
            })
        return self._session

    def transfer(self, images: Sequence[ImageItem]) -> None:
        for image in images:
            self.fetch(image)

    def resolve_target_path(self, image: ImageItem) -> str:
        """Destination folder joined with the sanitized destination file name."""
        folder = self.file_handler.get_parent_folder(image.destination_path)
        safe_name = self.file_handler.sanitize_file_name(os.path.basename(image.destination_path))
        if not safe_name:
            raise ImageFetchError(image.source_uri, f"No usable file name in {image.destination_path}")
        return os.path.join(folder, safe_name)

    def fetch(self, image: ImageItem) -> str:
        """
        Download a single image.

        Args:
            image: Image with a source URI and destination path

        Returns:
            Path the image was written to

        Raises:
            ImageFetchError: On network errors or a non-success status
            FileLockedError: If another writer holds the destination file
        """
        url = image.source_uri
        if not url or not url.strip():
            raise ImageFetchError(url, f"No URL provided for {image.destination_path}")

        target = self.resolve_target_path(image)
        folder = os.path.dirname(target)
        if folder and not self.file_handler.folder_exists(folder):
            self.file_handler.create_folder(folder)

        self.logger.debug(f"Starting download from {url}")
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"Error downloading file from {url}: {e}")
            raise ImageFetchError(url, f"Request to {url} failed: {e}") from e

        try:
            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                self.logger.error(f"Download from {url} returned HTTP {response.status_code}")
                raise ImageFetchError(url, f"HTTP {response.status_code} for {url}",
                                      status_code=response.status_code) from e

            self._stream_to_file(response, url, target)
        finally:
            response.close()

        self.logger.info(f"Download completed and saved to {target}")
        return target

    def _stream_to_file(self, response: requests.Response, url: str, target: str) -> None:
        # Opened for append so an existing file is not truncated before the lock is held
        with open(target, "ab") as handle:
            self._lock_exclusive(handle, target)
            handle.truncate(0)
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
            except requests.RequestException as e:
                handle.truncate(0)
                self.logger.error(f"Stream from {url} interrupted: {e}")
                raise ImageFetchError(url, f"Stream from {url} interrupted: {e}") from e

    def _lock_exclusive(self, handle, target: str) -> None:
        if fcntl is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise FileLockedError(f"Destination file is held by another writer: {target}") from e


def select_transfer(images: Sequence[ImageItem], embedded: TransferStrategy,
                    remote: TransferStrategy) -> TransferStrategy:
    """Pick the embedded strategy if any image carries a payload, otherwise remote."""
    if any(image.has_embedded_payload for image in images):
        return embedded
    return remote

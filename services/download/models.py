"""
Download Models
===============

Data structures exchanged between the queue consumer and the download
pipeline:
- Job / ImageItem parsed from the queue message body
- NotificationPayload posted downstream after a successful download
- DownloadOutcome returned by the pipeline for handled jobs
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import JobDeserializationError


@dataclass
class ImageItem:
    """A single page image of a chapter."""
    source_uri: str
    destination_path: str
    file_name: str
    embedded_payload: Optional[str] = None

    @property
    def has_embedded_payload(self) -> bool:
        return bool(self.embedded_payload)


@dataclass
class Job:
    """One chapter's worth of images to persist and report."""
    title: str
    chapter_num: str
    images: List[ImageItem] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.title} : {self.chapter_num}"


@dataclass(frozen=True)
class NotificationPayload:
    """Completion payload posted to the downstream update endpoint."""
    chapter_label: str
    title: str
    path: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'MangaChapter': self.chapter_label,
            'Name': self.title,
            'Path': self.path,
        }


class DownloadOutcome(Enum):
    """Terminal result of a pipeline run that did not raise."""
    COMPLETED = "completed"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_EXCLUDED = "skipped_excluded"
    VALIDATION_FAILED = "validation_failed"


def _as_text(value: Any, field_name: str) -> str:
    if value is None:
        return ''
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise JobDeserializationError(f"Field '{field_name}' must be a string, got {type(value).__name__}")
    return str(value)


def _parse_image(raw: Any, index: int) -> ImageItem:
    if not isinstance(raw, dict):
        raise JobDeserializationError(f"MangaImages[{index}] must be an object")

    destination_path = _as_text(raw.get('FullPath'), f'MangaImages[{index}].FullPath')
    if not destination_path.strip():
        raise JobDeserializationError(f"MangaImages[{index}].FullPath is required")

    return ImageItem(
        source_uri=_as_text(raw.get('Uri'), f'MangaImages[{index}].Uri'),
        destination_path=destination_path,
        file_name=_as_text(raw.get('ImageFileName'), f'MangaImages[{index}].ImageFileName'),
        embedded_payload=_as_text(raw.get('Base64String'), f'MangaImages[{index}].Base64String') or None,
    )


def parse_job(body: Union[bytes, str]) -> Job:
    """
    Parse a queue message body into a Job.

    Args:
        body: UTF-8 encoded JSON message body

    Returns:
        Parsed Job

    Raises:
        JobDeserializationError: If the body is not valid UTF-8 JSON matching
            the message schema
    """
    try:
        text = body.decode('utf-8') if isinstance(body, (bytes, bytearray)) else body
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        # ValueError covers decode errors, malformed JSON and oversized integer literals
        raise JobDeserializationError(f"Message body is not valid UTF-8 JSON: {e}") from e

    if not isinstance(data, dict):
        raise JobDeserializationError("Message body must be a JSON object")

    raw_images = data.get('MangaImages')
    if raw_images is None:
        raw_images = []
    if not isinstance(raw_images, list):
        raise JobDeserializationError("MangaImages must be a list")

    return Job(
        title=_as_text(data.get('Title'), 'Title'),
        chapter_num=_as_text(data.get('ChapterNum'), 'ChapterNum'),
        images=[_parse_image(raw, index) for index, raw in enumerate(raw_images)],
    )

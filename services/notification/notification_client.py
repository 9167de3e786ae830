"""
Module Name: notification_client.py
Description:
    Posts the chapter completion payload to the downstream update endpoint.
    A new HTTP session is created for each call and closed afterwards.

Location:
    /services/notification/notification_client.py

"""

from typing import Callable, Optional

import requests

from services.download.errors import NotificationError
from services.download.models import NotificationPayload
from utils.logger import get_module_logger

_LOGGER = get_module_logger("Service.Notification.Client")


class NotificationClient:
    """Single-use HTTP client per notification."""

    DEFAULT_TIMEOUT = 100

    def __init__(self, base_address: str, timeout: float = DEFAULT_TIMEOUT,
                 session_factory: Optional[Callable[[], requests.Session]] = None, *, logger=None):
        self.base_address = base_address
        self.timeout = timeout
        self.session_factory = session_factory or requests.Session
        self.logger = logger or _LOGGER

    def send(self, payload: NotificationPayload) -> requests.Response:
        """
        POST a payload as JSON to the configured endpoint.

        Args:
            payload: Completion payload for one chapter

        Returns:
            The HTTP response, whatever its status

        Raises:
            NotificationError: If no endpoint is configured
            requests.RequestException: On network errors or timeouts
        """
        if not self.base_address:
            raise NotificationError("No update endpoint configured")

        self.logger.info(f"Sending request to {self.base_address}")
        session = self.session_factory()
        try:
            response = session.post(self.base_address, json=payload.to_dict(), timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"Error sending request to {self.base_address}: {e}")
            raise
        finally:
            session.close()

        if response.ok:
            self.logger.info(f"Request succeeded with status {response.status_code}")
        else:
            self.logger.warning(f"Request failed with status {response.status_code}")
        return response

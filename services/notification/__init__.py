from .notification_client import NotificationClient

__all__ = ["NotificationClient"]

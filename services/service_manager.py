"""
Module Name: service_manager.py
Description:
    Centralized construction of the worker's services from configuration.
    Each service is built once on first access and shared afterwards.

Location:
    /services/service_manager.py

"""

import threading
from typing import Any, Dict, Optional

from config.config import Config
from utils.logger import get_module_logger


_LOGGER = get_module_logger("Service.Manager")


class ServiceManager:
    """
    Singleton service manager holding every service instance.
    Ensures each service is initialized only once and provides thread-safe access
    """
    _instance: Optional['ServiceManager'] = None
    _lock = threading.RLock()
    _initialized = False

    def __new__(cls, config=None, *, logger=None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config=None, *, logger=None):
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._services: Dict[str, Any] = {}
                    self.config = config or Config
                    self.logger = logger or _LOGGER
                    ServiceManager._initialized = True

    @classmethod
    def reset(cls):
        """Drop the singleton and its services (used between CLI runs and in tests)."""
        with cls._lock:
            cls._instance = None
            cls._initialized = False

    def _get_or_create(self, name: str, factory):
        if name not in self._services:
            with self._lock:
                if name not in self._services:
                    self._services[name] = factory()
                    self.logger.debug(f"Service initialized: {name}")
        return self._services[name]

    def get_database_connection(self):
        """Get or create the DatabaseConnection, creating the schema on first use"""
        def build():
            from services.database import DatabaseConnection, DatabaseMigrations
            connection = DatabaseConnection(self.config.DATABASE_PATH)
            DatabaseMigrations(connection).initialize_database()
            return connection
        return self._get_or_create('database', build)

    def get_metadata_store(self):
        """Get or create MangaDownloadRepo instance"""
        def build():
            from services.database import MangaDownloadRepo
            return MangaDownloadRepo(self.get_database_connection())
        return self._get_or_create('metadata_store', build)

    def get_file_handler(self):
        """Get or create FileHandler instance"""
        def build():
            from services.file_handling import FileHandler
            return FileHandler()
        return self._get_or_create('file_handler', build)

    def get_notification_client(self):
        """Get or create NotificationClient instance"""
        def build():
            from services.notification import NotificationClient
            if not self.config.UPDATE_ENDPOINT:
                self.logger.warning("UPDATE_ENDPOINT is not set; update notifications will fail")
            return NotificationClient(self.config.UPDATE_ENDPOINT, timeout=self.config.HTTP_TIMEOUT)
        return self._get_or_create('notification', build)

    def get_download_pipeline(self):
        """Get or create DownloadPipeline instance"""
        def build():
            from services.download.download_pipeline import DownloadPipeline
            from services.download.transfer_strategy import EmbeddedTransfer, RemoteTransfer
            file_handler = self.get_file_handler()
            return DownloadPipeline(
                store=self.get_metadata_store(),
                file_handler=file_handler,
                notification_client=self.get_notification_client(),
                embedded_transfer=EmbeddedTransfer(file_handler),
                remote_transfer=RemoteTransfer(file_handler, timeout=self.config.HTTP_TIMEOUT),
                min_file_sizes={
                    EmbeddedTransfer.mode: self.config.EMBEDDED_MIN_FILE_SIZE,
                    RemoteTransfer.mode: self.config.DOWNLOAD_MIN_FILE_SIZE,
                },
            )
        return self._get_or_create('download_pipeline', build)

    def get_queue_consumer(self):
        """Get or create QueueConsumer instance bound to RabbitMQ"""
        def build():
            from services.messaging import QueueConsumer
            from services.messaging.pika_broker import PikaBrokerClient
            broker = PikaBrokerClient(
                host=self.config.RABBITMQ_HOST,
                port=self.config.RABBITMQ_PORT,
                virtual_host=self.config.RABBITMQ_VHOST,
                username=self.config.RABBITMQ_USER,
                password=self.config.RABBITMQ_PASSWORD,
                heartbeat=self.config.RABBITMQ_HEARTBEAT,
            )
            return QueueConsumer(
                broker,
                self.get_download_pipeline(),
                queue_name=self.config.DOWNLOAD_QUEUE_NAME,
                prefetch_count=self.config.PREFETCH_COUNT,
                reconnect_delay=self.config.RABBITMQ_RECONNECT_DELAY,
                reconnect_attempts=self.config.RABBITMQ_RECONNECT_ATTEMPTS,
            )
        return self._get_or_create('queue_consumer', build)


def get_service_manager(config=None) -> ServiceManager:
    return ServiceManager(config)

import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_LOGGER = logging.getLogger("Config.Environment")


def get_env_value(key: str, default: str = "") -> str:
    """Read an environment variable, warning when it has not been set."""
    value = os.environ.get(key)
    if value is None or value == "":
        _LOGGER.warning(f"env variable for {key} is empty, using default")
        return default
    return value


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning(f"env variable {key}={raw!r} is not an integer, using {default}")
        return default


class Config:
    # RabbitMQ connection
    RABBITMQ_HOST = os.environ.get('RABBITMQ_HOST') or 'localhost'
    RABBITMQ_PORT = _env_int('RABBITMQ_PORT', 5672)
    RABBITMQ_VHOST = os.environ.get('RABBITMQ_VHOST') or '/'
    RABBITMQ_USER = os.environ.get('RABBITMQ_USER') or 'guest'
    RABBITMQ_PASSWORD = os.environ.get('RABBITMQ_PASSWORD') or 'guest'
    # Seconds; jobs run on a worker thread so heartbeats keep flowing during long downloads
    RABBITMQ_HEARTBEAT = _env_int('RABBITMQ_HEARTBEAT', 600)

    # Reconnect after an established connection drops (startup failures are fatal)
    RABBITMQ_RECONNECT_DELAY = _env_int('RABBITMQ_RECONNECT_DELAY', 5)
    RABBITMQ_RECONNECT_ATTEMPTS = _env_int('RABBITMQ_RECONNECT_ATTEMPTS', 5)

    # Queue settings
    DOWNLOAD_QUEUE_NAME = os.environ.get('DOWNLOAD_QUEUE_NAME') or 'download_queue'
    PREFETCH_COUNT = _env_int('PREFETCH_COUNT', 1)

    # Downstream update notification
    UPDATE_ENDPOINT = get_env_value('UPDATE_ENDPOINT')
    HTTP_TIMEOUT = _env_int('HTTP_TIMEOUT', 100)  # seconds

    # Post-transfer validation thresholds in bytes, one per transfer mode
    EMBEDDED_MIN_FILE_SIZE = _env_int('EMBEDDED_MIN_FILE_SIZE', 10 * 1024)
    DOWNLOAD_MIN_FILE_SIZE = _env_int('DOWNLOAD_MIN_FILE_SIZE', 15 * 1024)

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or os.path.join('database', 'manga_downloads.db')

    # Logging configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or 'manga_downloader.log'
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'

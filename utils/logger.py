import logging
from typing import Union

from .loguru_config import setup_loguru


_LOGGER_INITIALIZED = False

ROOT_LOGGER_NAME = "MangaDownloader"


def setup_logger(level: Union[str, int] = "INFO", log_file: str = "manga_downloader.log", log_dir: str = "logs"):
    """Set up application logging once; later calls only adjust the level."""
    global _LOGGER_INITIALIZED

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)

    if _LOGGER_INITIALIZED:
        root_logger.setLevel(level if isinstance(level, int) else str(level).upper())
        return root_logger

    setup_loguru(log_level=level, log_file=log_file, log_dir=log_dir, logger_name=ROOT_LOGGER_NAME)
    _LOGGER_INITIALIZED = True

    root_logger.debug(f"Logging initialized - log directory: {log_dir}, file: {log_file}")
    return root_logger


def get_module_logger(module_name: str) -> logging.Logger:
    """Get a logger for a specific module; records flow to whatever sinks setup_logger installed."""
    return logging.getLogger(module_name)

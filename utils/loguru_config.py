"""
Module Name: loguru_config.py
Description:
    Loguru sinks for the downloader worker. Module loggers are plain
    standard-library loggers; their records are forwarded into Loguru so
    console and file output share one format. The thread name is part of the
    format because deliveries are processed on worker threads.

Location:
    /utils/loguru_config.py

"""

import logging
import sys
from pathlib import Path
from typing import Union

from loguru import logger

NOISY_LOGGERS = ("pika", "urllib3")

_RECORD_LAYOUT = "{level: <8} | {extra[logger_name]} [{thread.name}] - {message}"
CONSOLE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>" + _RECORD_LAYOUT + "</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | " + _RECORD_LAYOUT


class InterceptHandler(logging.Handler):
    """Forward standard logging records to Loguru, keeping the logger name and caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(logger_name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_loguru(
    log_level: Union[str, int] = "INFO",
    log_file: str = "manga_downloader.log",
    log_dir: Union[str, Path] = "logs",
    logger_name: str = "MangaDownloader",
):
    """Install the console and rotating file sinks and route standard logging through them."""
    level = log_level.upper() if isinstance(log_level, str) else log_level
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"logger_name": logger_name})

    shared = {"level": level, "enqueue": True, "backtrace": False, "diagnose": False}
    logger.add(sys.stdout, format=CONSOLE_FORMAT, colorize=True, **shared)
    logger.add(
        log_path / log_file,
        format=FILE_FORMAT,
        rotation="10 MB",
        retention=5,
        encoding="utf-8",
        **shared,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=logging.NOTSET, force=True)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger

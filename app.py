"""
Application Bootstrap - Manga Downloader

Sets up logging, builds the services from configuration and runs the
download queue consumer. Also exposes small maintenance commands for the
metadata store.

Usage:
    python app.py run
    python app.py init-db
    python app.py exclude "Solo Leveling" 12
"""

import argparse
import logging
import sys

from config.config import Config
from services.messaging import BrokerConnectionError
from services.service_manager import get_service_manager
from utils.logger import setup_logger

logger = logging.getLogger("MangaDownloader")


def cmd_run(args, config_class=Config) -> int:
    """Consume the download queue until interrupted."""
    manager = get_service_manager(config_class)
    consumer = manager.get_queue_consumer()

    with consumer:
        try:
            consumer.start()
        except BrokerConnectionError as e:
            logger.error(f"Service failed to start: {e}")
            return 1

        try:
            consumer.run()
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down consumer")
        except BrokerConnectionError as e:
            logger.error(f"Consumer stopped: {e}")
            return 1

    return 0


def cmd_init_db(args, config_class=Config) -> int:
    """Create the database schema."""
    manager = get_service_manager(config_class)
    manager.get_database_connection()
    logger.info(f"Database ready at {config_class.DATABASE_PATH}")
    return 0


def cmd_exclude(args, config_class=Config) -> int:
    """Exclude a chapter of a title from future downloads."""
    store = get_service_manager(config_class).get_metadata_store()
    if store.add_excluded_chapter(args.title, args.chapter):
        logger.info(f"Excluded chapter {args.chapter} of '{args.title}'")
    else:
        logger.info(f"Chapter {args.chapter} of '{args.title}' was already excluded")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manga-downloader", description="Queue-driven manga chapter download worker"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Consume the download queue")
    run_parser.set_defaults(func=cmd_run)

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.set_defaults(func=cmd_init_db)

    exclude_parser = subparsers.add_parser("exclude", help="Exclude a chapter from downloads")
    exclude_parser.add_argument("title", help="Manga title")
    exclude_parser.add_argument("chapter", help="Chapter identifier")
    exclude_parser.set_defaults(func=cmd_exclude)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    setup_logger(Config.LOG_LEVEL, Config.LOG_FILE, Config.LOG_DIR)
    logger.info(f"Starting manga downloader: {args.command}")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

import sqlite3
import time
from functools import wraps
from typing import Any, Callable

from utils.logger import get_module_logger


class DatabaseErrorHandler:
    """Shared retry logic for store operations that hit a locked database"""

    def __init__(self, *, logger=None):
        self.logger = logger or get_module_logger("Service.Database.ErrorHandling")

    def with_retry(self, max_retries: int = 3, retry_delay: float = 0.5):
        """Decorator retrying an operation while SQLite reports the database as locked.

        Any other error propagates unchanged.
        """
        def decorator(func: Callable) -> Callable:
            @wraps(func)
            def wrapper(*args, **kwargs) -> Any:
                for attempt in range(max_retries):
                    try:
                        return func(*args, **kwargs)
                    except sqlite3.OperationalError as e:
                        if "database is locked" not in str(e):
                            self.logger.error(f"Database operational error in {func.__name__}: {e}")
                            raise
                        if attempt >= max_retries - 1:
                            self.logger.error(f"Database remained locked after {max_retries} attempts")
                            raise
                        delay = retry_delay * (attempt + 1)
                        self.logger.warning(f"Database locked, retrying in {delay}s... (attempt {attempt + 1})")
                        time.sleep(delay)
            return wrapper
        return decorator


# Global instance for easy access
error_handler = DatabaseErrorHandler()

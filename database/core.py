import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional
from functools import wraps
import logging
import time
import random

DEFAULT_LONG_EXECUTION_THRESHOLD_SECONDS = 1.0

def retry_on_db_lock(max_attempts=5, initial_wait=0.1, backoff_factor=2,
                     long_execution_threshold_seconds=DEFAULT_LONG_EXECUTION_THRESHOLD_SECONDS):
    """Retry the wrapped call while sqlite reports 'database is locked'. Other errors propagate."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            overall_start_time = time.monotonic()
            attempt = 0
            while True:
                try:
                    result = func(*args, **kwargs)
                    duration = time.monotonic() - overall_start_time
                    if duration > long_execution_threshold_seconds:
                        logging.warning(
                            f"Function {func.__name__} executed successfully but took {duration:.3f}s "
                            f"(threshold: {long_execution_threshold_seconds:.1f}s)."
                        )
                    return result
                except sqlite3.OperationalError as e:
                    if "database is locked" not in str(e):
                        logging.error(f"Database error in {func.__name__} (not a lock): {e}")
                        raise

                    attempt += 1
                    if attempt >= max_attempts:
                        duration = time.monotonic() - overall_start_time
                        logging.error(
                            f"Failed to execute {func.__name__} after {max_attempts} attempts ({duration:.3f}s total) "
                            f"due to persistent database locks. Last error: {e}"
                        )
                        raise

                    base_wait = initial_wait * (backoff_factor ** attempt)
                    actual_wait_time = base_wait + random.uniform(0, 0.1 * base_wait)
                    logging.warning(
                        f"Database locked executing {func.__name__} (attempt {attempt} of {max_attempts - 1} retries). "
                        f"Retrying in {actual_wait_time:.3f}s..."
                    )
                    time.sleep(actual_wait_time)
        return wrapper
    return decorator

def get_db_path() -> str:
    db_content_dir = os.environ.get('USER_DB_CONTENT', '/user/db_content')
    return os.path.join(db_content_dir, 'tracker.db')

def get_db_connection(db_path=None):
    if db_path is None:
        db_path = get_db_path()
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=10, check_same_thread=False)
    conn.execute('PRAGMA journal_mode=WAL')
    conn.execute('PRAGMA foreign_keys=ON')
    conn.row_factory = sqlite3.Row
    return conn

@contextmanager
def db_connection(conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
    """
    Yield `conn` when one is supplied, otherwise a fresh connection that is
    closed on exit. Callers own commits.
    """
    if conn is not None:
        yield conn
        return

    owned = get_db_connection()
    try:
        yield owned
    finally:
        owned.close()

import logging
import sqlite3
from typing import Optional

from .core import db_connection, retry_on_db_lock
from .models import PollingConfig

def get_polling_config(conn: Optional[sqlite3.Connection] = None) -> Optional[PollingConfig]:
    """The singleton polling row, or None when it is missing."""
    with db_connection(conn) as conn:
        row = conn.execute('''
            SELECT id, poll_times_per_day, last_poll_time, enabled
            FROM rss_config
            WHERE id = 1
        ''').fetchone()
    if row is None:
        return None
    return PollingConfig(
        id=row['id'],
        poll_times_per_day=row['poll_times_per_day'],
        last_poll_time=row['last_poll_time'],
        enabled=bool(row['enabled']),
    )

@retry_on_db_lock()
def update_poll_interval(times_per_day: int, conn: Optional[sqlite3.Connection] = None):
    if times_per_day < 0:
        raise ValueError(f"Polls per day cannot be negative: {times_per_day}")
    with db_connection(conn) as conn:
        conn.execute('UPDATE rss_config SET poll_times_per_day = ? WHERE id = 1', (times_per_day,))
        conn.commit()
    logging.info(f"Poll interval set to {times_per_day} times per day")

@retry_on_db_lock()
def update_last_poll_time(conn: Optional[sqlite3.Connection] = None):
    with db_connection(conn) as conn:
        conn.execute("UPDATE rss_config SET last_poll_time = datetime('now') WHERE id = 1")
        conn.commit()

@retry_on_db_lock()
def set_polling_enabled(enabled: bool, conn: Optional[sqlite3.Connection] = None):
    with db_connection(conn) as conn:
        conn.execute('UPDATE rss_config SET enabled = ? WHERE id = 1', (1 if enabled else 0,))
        conn.commit()
    logging.info(f"RSS polling {'enabled' if enabled else 'disabled'}")

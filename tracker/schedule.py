"""
Next-run computation for the tracker.

With polling enabled the next pass is 24h / polls-per-day from now, split into
whole hours and minutes and never shorter than a minute. Otherwise, or when the polling config cannot be read,
passes fall on fixed local hours (05:00 and 17:00 by default).
"""
import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Optional, Sequence, Tuple

from database.models import PollingConfig
from database.polling_config import get_polling_config

DEFAULT_FALLBACK_HOURS = (5, 17)
MIN_WAIT_SECONDS = 1
MIN_POLL_INTERVAL = timedelta(minutes=1)

def parse_fallback_hours(value) -> Tuple[int, ...]:
    """Parse '5,17' style hour lists. Invalid input gives the default hours."""
    if isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        parts = [p for p in str(value or '').split(',') if p.strip()]
    try:
        hours = tuple(sorted({int(str(p).strip()) for p in parts}))
    except ValueError:
        logging.warning(f"Invalid fallback hours '{value}', using {DEFAULT_FALLBACK_HOURS}")
        return DEFAULT_FALLBACK_HOURS
    if not hours or any(h < 0 or h > 23 for h in hours):
        logging.warning(f"Invalid fallback hours '{value}', using {DEFAULT_FALLBACK_HOURS}")
        return DEFAULT_FALLBACK_HOURS
    return hours

def interval_from_polls(poll_times_per_day: int) -> timedelta:
    hours_between_polls = 24.0 / poll_times_per_day
    whole_hours = int(hours_between_polls)
    minutes = int((hours_between_polls - whole_hours) * 60)
    return max(timedelta(hours=whole_hours, minutes=minutes), MIN_POLL_INTERVAL)

def next_fallback_run(now: datetime, fallback_hours: Sequence[int] = DEFAULT_FALLBACK_HOURS) -> datetime:
    """The next of today's fallback hours still ahead of `now`, else the first one tomorrow."""
    hours = sorted(fallback_hours) or list(DEFAULT_FALLBACK_HOURS)
    for hour in hours:
        candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if now < candidate:
            return candidate
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=hours[0], minute=0, second=0, microsecond=0)

def is_polling_usable(config: Optional[PollingConfig]) -> bool:
    if config is None or not config.enabled:
        return False
    return isinstance(config.poll_times_per_day, int) and config.poll_times_per_day > 0

def compute_next_run(config: Optional[PollingConfig], now: datetime,
                     fallback_hours: Sequence[int] = DEFAULT_FALLBACK_HOURS) -> Tuple[datetime, bool]:
    """Return (next run time, True if it came from the polling interval)."""
    if is_polling_usable(config):
        return now + interval_from_polls(config.poll_times_per_day), True
    return next_fallback_run(now, fallback_hours), False

def load_next_run(conn: Optional[sqlite3.Connection], now: datetime,
                  fallback_hours: Sequence[int] = DEFAULT_FALLBACK_HOURS) -> Tuple[datetime, bool]:
    """compute_next_run on the stored polling config. Any failure reading it means the fallback schedule."""
    try:
        config = get_polling_config(conn)
    except sqlite3.Error as e:
        logging.error(f"Failed to read polling config, using fallback schedule: {e}")
        config = None
    if config is None:
        logging.warning("No polling config found, using fallback schedule")
    return compute_next_run(config, now, fallback_hours)

def wait_seconds(next_run: datetime, now: datetime) -> float:
    """Seconds until `next_run`, never less than one."""
    return max((next_run - now).total_seconds(), MIN_WAIT_SECONDS)

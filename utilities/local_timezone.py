import os
import re
import logging
from datetime import timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tzlocal import get_localzone

from utilities.settings import get_setting

# Suppress tzlocal debug messages
logging.getLogger('tzlocal').setLevel(logging.WARNING)

TIMEZONE_CORRECTIONS = {
    r'^Americas/': 'America/',
    r'^Europes/': 'Europe/',
    r'^Asias/': 'Asia/',
    r'^Africas/': 'Africa/',
    r'^Australias/': 'Australia/',
    r'^EST$': 'America/New_York',
    r'^CST$': 'America/Chicago',
    r'^MST$': 'America/Denver',
    r'^PST$': 'America/Los_Angeles',
    r'^GMT$': 'Etc/GMT',
    r'\s+': '',
}

def fix_common_timezone_errors(tz_str):
    if not tz_str:
        return tz_str

    corrected_tz = tz_str
    for pattern, replacement in TIMEZONE_CORRECTIONS.items():
        corrected_tz = re.sub(pattern, replacement, corrected_tz)

    if corrected_tz != tz_str:
        logging.warning(f"Corrected timezone format from '{tz_str}' to '{corrected_tz}'")
    return corrected_tz

def _zone_or_none(tz_str):
    if not tz_str:
        return None
    try:
        return ZoneInfo(fix_common_timezone_errors(tz_str))
    except (ZoneInfoNotFoundError, ValueError):
        logging.warning(f"Ignoring invalid timezone '{tz_str}'")
        return None

def get_local_timezone():
    """
    Timezone the fallback schedule is computed in.

    Order: Debug.timezone_override setting, the TZ environment variable, tzlocal,
    and finally UTC.
    """
    zone = _zone_or_none(get_setting('Debug', 'timezone_override', ''))
    if zone:
        return zone

    zone = _zone_or_none(os.environ.get('TZ'))
    if zone:
        return zone

    try:
        return get_localzone()
    except Exception as e:
        logging.error(f"Error getting local timezone from tzlocal: {str(e)}")

    logging.warning("Falling back to UTC")
    return timezone.utc

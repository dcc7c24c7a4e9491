import logging
import logging.handlers
from utilities.settings import get_setting
import os
import sys
import json
import re
from datetime import datetime, timezone

from api_tracker import setup_api_logging

class DynamicConsoleHandler(logging.StreamHandler):
    def __init__(self):
        super().__init__()
        if sys.platform == 'win32':
            # Set UTF-8 encoding for Windows console
            sys.stdout.reconfigure(encoding='utf-8', errors='replace')
            sys.stderr.reconfigure(encoding='utf-8', errors='replace')
        self.setLevel(self.get_level())

    def get_level(self):
        console_level = get_setting("Debug", "logging_level", "INFO")
        return getattr(logging, str(console_level).upper(), logging.INFO)

class APSchedulerJobFilter(logging.Filter):
    """
    Filters out the INFO "Running job" / "executed successfully" lines for the
    tracker's own poll job, which would otherwise appear on every cycle.
    """
    JOB_NAMES = {
        "tracker_poll",
    }

    def filter(self, record):
        if record.levelno == logging.INFO:
            msg = record.getMessage()
            if "Running job" in msg or "executed successfully" in msg:
                match = re.search(r'(?:Running job|Job) "(.+?)\s*\(', msg)
                job_name = match.group(1) if match else None
                if job_name and job_name in self.JOB_NAMES:
                    return False
        return True

class APSchedulerDebugNoiseFilter(logging.Filter):
    """
    Filters out specific DEBUG messages from apscheduler.scheduler.
    """
    def filter(self, record):
        if record.levelno == logging.DEBUG and record.name == 'apscheduler.scheduler':
            msg = record.getMessage()
            if "Looking for jobs to run" in msg or "Next wakeup is due at" in msg:
                return False
        return True

def exclude_http_libraries(record):
    return not record.name.startswith(('urllib3', 'requests', 'charset_normalizer'))

class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'name': record.name,
        }
        if isinstance(record.msg, dict):
            log_record.update(record.msg)  # Merge the dictionary message
        else:
            log_record['message'] = record.getMessage()

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record['stack_info'] = self.formatStack(record.stack_info)

        return json.dumps(log_record)

def setup_debug_logging(log_dir):
    class ImmediateRotatingFileHandler(logging.handlers.RotatingFileHandler):
        def emit(self, record):
            super().emit(record)
            self.flush()

    debug_handler = ImmediateRotatingFileHandler(
        os.path.join(log_dir, 'debug.log'),
        maxBytes=50*1024*1024,
        backupCount=5,
        encoding='utf-8',
        errors='replace'
    )
    debug_handler.setLevel(logging.DEBUG)

    debug_handler.addFilter(exclude_http_libraries)
    debug_handler.addFilter(APSchedulerJobFilter())
    debug_handler.addFilter(APSchedulerDebugNoiseFilter())

    formatter = logging.Formatter('%(asctime)s - %(filename)s:%(funcName)s:%(lineno)d - %(levelname)s - %(message)s')
    debug_handler.setFormatter(formatter)
    logging.getLogger().addHandler(debug_handler)

def setup_info_logging():
    console_handler = DynamicConsoleHandler()
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s', datefmt='%Y-%m-%d %H:%M:%S'))

    console_handler.addFilter(exclude_http_libraries)
    console_handler.addFilter(APSchedulerJobFilter())
    console_handler.addFilter(APSchedulerDebugNoiseFilter())

    logging.getLogger().addHandler(console_handler)

def setup_download_tracker_logging(log_dir):
    """Sets up the JSON logger recording every dispatched release."""
    tracker_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, 'download_tracker.log'),
        maxBytes=50*1024*1024,
        backupCount=5,
        encoding='utf-8'
    )
    tracker_handler.setLevel(logging.INFO)
    tracker_handler.setFormatter(JSONFormatter())

    tracker_logger = logging.getLogger('download_tracker')
    tracker_logger.setLevel(logging.INFO)
    tracker_logger.addHandler(tracker_handler)
    tracker_logger.propagate = False

def log_download_event(show_title, episode, fingerprint, locator, destination):
    logging.getLogger('download_tracker').info({
        'event': 'dispatched',
        'show': show_title,
        'episode': episode,
        'fingerprint': fingerprint,
        'locator': locator,
        'destination': destination,
    })

def setup_logging():
    """Initialize logging configuration"""
    log_dir = os.environ.get('USER_LOGS', '/user/logs')
    os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    setup_debug_logging(log_dir)
    setup_info_logging()
    setup_download_tracker_logging(log_dir)
    setup_api_logging()

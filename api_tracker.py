import requests
import logging
import logging.handlers
from functools import wraps
from urllib.parse import urlparse
import time
from collections import defaultdict
from requests.exceptions import RequestException
import os

api_logger = logging.getLogger('api_calls')

def setup_api_logging():
    api_logger.setLevel(logging.INFO)
    api_logger.propagate = False  # Prevent propagation to root logger

    log_dir = os.environ.get('USER_LOGS', '/user/logs')
    log_path = os.path.join(log_dir, 'api_calls.log')

    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=10*1024*1024,  # 10MB per file
        backupCount=5,
        encoding='utf-8',
        errors='replace'
    )

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s',
                                datefmt='%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)

    # Compress old log files on rotation
    def namer(name):
        return name + ".gz"

    def rotator(source, dest):
        import gzip
        with open(source, 'rb') as f_in:
            with gzip.open(dest, 'wb') as f_out:
                f_out.writelines(f_in)
        os.remove(source)

    handler.rotator = rotator
    handler.namer = namer

    api_logger.addHandler(handler)

def log_api_call(func):
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            url = args[0] if args else kwargs.get('url')
            if not isinstance(url, str):
                return func(self, *args, **kwargs)

            method = func.__name__.upper()
            parsed = urlparse(url)
            # Only log domain and path, skip query parameters
            api_logger.info(f"{method} {parsed.netloc}{parsed.path}")
        except Exception as e:
            api_logger.error(f"Error in log_api_call: {str(e)}")
        return func(self, *args, **kwargs)
    return wrapper

class APIRateLimiter:
    """Counts calls per monitored domain. Limits are reported, not enforced."""

    def __init__(self, hourly_limit=500, five_minute_limit=100):
        self.hourly_limit = hourly_limit
        self.five_minute_limit = five_minute_limit
        self.hourly_calls = defaultdict(list)
        self.five_minute_calls = defaultdict(list)
        self.rate_limit_warning = False

    def check_limits(self, domain):
        current_time = time.time()

        # Clean up old calls
        self.hourly_calls[domain] = [t for t in self.hourly_calls[domain] if current_time - t < 3600]
        self.five_minute_calls[domain] = [t for t in self.five_minute_calls[domain] if current_time - t < 300]

        self.hourly_calls[domain].append(current_time)
        self.five_minute_calls[domain].append(current_time)

        hourly_exceeded = len(self.hourly_calls[domain]) > self.hourly_limit
        five_min_exceeded = len(self.five_minute_calls[domain]) > self.five_minute_limit

        if (hourly_exceeded or five_min_exceeded) and not self.rate_limit_warning:
            api_logger.warning(f"Call volume for {domain} is above the configured limits")
        self.rate_limit_warning = hourly_exceeded or five_min_exceeded
        return True

    def reset_limits(self):
        self.hourly_calls.clear()
        self.five_minute_calls.clear()
        self.rate_limit_warning = False
        api_logger.info("Rate limits have been manually reset.")

class APITracker:
    """
    Shared HTTP client for feed providers and the download client.

    Wraps a requests.Session, logs every call to the api_calls logger and raises
    for non-2xx responses. Constructed once at startup and passed to whatever needs it.
    """

    def __init__(self, session=None, monitored_domains=None):
        self.session = session or requests.Session()
        self.exceptions = requests.exceptions
        self.rate_limiter = APIRateLimiter()
        self.monitored_domains = set(monitored_domains or {'nyaa.si', 'subsplease.org'})

    def _request(self, method, url, **kwargs):
        domain = urlparse(url).netloc
        if domain in self.monitored_domains:
            self.rate_limiter.check_limits(domain)

        try:
            response = self.session.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except RequestException as e:
            api_logger.error(f"Error: {domain} - {str(e)}")
            raise

    @log_api_call
    def get(self, url, **kwargs):
        return self._request('GET', url, **kwargs)

    @log_api_call
    def post(self, url, **kwargs):
        return self._request('POST', url, **kwargs)

    def close(self):
        self.session.close()

def is_rate_limited(tracker):
    return tracker.rate_limiter.rate_limit_warning

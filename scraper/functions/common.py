"""Common types and helpers shared by the feed scrapers and the tracker."""
import re
import time
import random
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

import feedparser
import requests


class FeedError(Exception):
    """Base exception for feed fetching and parsing failures"""
    pass

class FeedTransportError(FeedError):
    """Raised when a feed document could not be retrieved"""
    pass

class FeedParseError(FeedError):
    """Raised when a feed document is malformed"""
    pass


@dataclass(frozen=True)
class ReleaseItem:
    """One entry of a fetched feed. Only lives for a single poll cycle."""
    title: str
    torrent_link: str = ''
    view_url: str = ''
    pub_date: str = ''
    info_hash: str = ''
    category_id: str = ''
    size: str = ''
    seeders: int = 0
    leechers: int = 0

    @property
    def size_gb(self) -> float:
        return convert_size_to_gb(self.size)


@dataclass(frozen=True)
class ParsedEpisode:
    show_title: str
    episode: int
    quality: str
    info_hash: str
    torrent_url: str
    magnet_url: str


def convert_size_to_gb(size: str) -> float:
    """Convert various size formats to GB. Returns 0.0 when the size is missing or unreadable."""
    if not size:
        return 0.0
    size = size.lower().replace(' ', '')
    units = [
        ('kib', 1 / (1024 * 1024)),
        ('mib', 1 / 1024),
        ('gib', 1.0),
        ('tib', 1024.0),
        ('kb', 1 / (1024 * 1024)),
        ('mb', 1 / 1024),
        ('gb', 1.0),
        ('tb', 1024.0),
    ]
    try:
        for unit, factor in units:
            if unit in size:
                return float(size.replace(unit, '').strip()) * factor
        # No unit, assume bytes
        return float(size) / (1024 * 1024 * 1024)
    except ValueError:
        logging.debug(f"Could not convert size '{size}' to GB")
        return 0.0

def parse_count(value) -> int:
    """Parse a seeder/leecher count, defaulting to 0."""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0

def construct_magnet_url(info_hash: str, title: str) -> str:
    """Build a magnet URI from an info hash and a display name."""
    return f"magnet:?xt=urn:btih:{info_hash}&dn={quote(title, safe='')}"

def download_locator(item: ReleaseItem) -> str:
    """Prefer a magnet built from the info hash, fall back to the torrent file link."""
    if item.info_hash:
        return construct_magnet_url(item.info_hash, item.title)
    return item.torrent_link

def release_fingerprint(item: ReleaseItem, provider: str) -> str:
    """
    Unique identifier of a release for the download history.

    Feeds that expose an info hash use it directly. Otherwise a deterministic
    fingerprint is synthesized from the provider name and the torrent link so the
    history's uniqueness constraint still applies.
    """
    if item.info_hash:
        return item.info_hash.lower()
    return f"{provider.lower()}:{item.torrent_link}"

KNOWN_GROUPS = {
    'subsplease': 'subsplease',
    'erai-raws': 'Erai-raws',
    'horriblesubs': 'horriblesubs',
    'judas': 'judas',
    'yameii': 'yameii',
    'ember': 'ember',
    'asm': 'asm',
}

def detect_fansub_source(title: str) -> str:
    """Return the release group in the leading brackets, or 'subsplease' when there is none."""
    match = re.match(r'^\[([^\]]+)\]', title)
    if match:
        source = match.group(1).strip()
        return KNOWN_GROUPS.get(source.lower(), source)
    return 'subsplease'

def filter_by_quality(items: List[ReleaseItem], quality: Optional[str]) -> List[ReleaseItem]:
    """Keep items whose title contains the quality tag (e.g. '1080p')."""
    if not quality:
        return list(items)
    return [item for item in items if quality in item.title]

RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

def fetch_feed_document(http, url: str, timeout: int = 30, max_retries: int = 3, initial_delay: float = 1.0) -> bytes:
    """
    GET a feed document with exponential backoff for rate limits and outages.

    Raises FeedTransportError once retries are exhausted or on a non-retryable failure.
    """
    for attempt in range(max_retries):
        try:
            logging.debug(f"Feed request attempt {attempt + 1}/{max_retries}: {url}")
            response = http.get(url, timeout=timeout)
            return response.content
        except requests.exceptions.RequestException as e:
            status_code = e.response.status_code if getattr(e, 'response', None) is not None else None
            is_retryable_error = (
                status_code in RETRYABLE_STATUS_CODES or
                isinstance(e, (requests.exceptions.Timeout, requests.exceptions.ConnectionError))
            )

            if is_retryable_error and attempt < max_retries - 1:
                # Exponential backoff with jitter
                delay = initial_delay * (2 ** attempt) + random.uniform(0, 1)
                if status_code == 429:
                    logging.warning(f"Feed rate limit (429) hit. Waiting {delay:.2f}s before retry {attempt + 1}/{max_retries}")
                else:
                    logging.warning(f"Feed request failed with retryable error. Waiting {delay:.2f}s before retry {attempt + 1}/{max_retries}. Error: {str(e)}")
                time.sleep(delay)
                continue

            if is_retryable_error:
                logging.error(f"Feed request failed after {max_retries} attempts: {str(e)}")
            else:
                logging.error(f"Feed request failed with non-retryable error: {str(e)}")
            raise FeedTransportError(f"Failed to fetch feed from {url}: {str(e)}") from e

    raise FeedTransportError(f"Failed to fetch feed from {url}: no attempts made")

def parse_feed_document(document) -> list:
    """Run feedparser over a raw document and return its entries."""
    feed = feedparser.parse(document)
    if feed.bozo and not feed.entries:
        raise FeedParseError(f"Malformed feed document: {feed.get('bozo_exception')}")
    if feed.bozo:
        logging.warning(f"Feed document parsed with errors: {feed.get('bozo_exception')}")
    return feed.entries

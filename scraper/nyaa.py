import logging
from typing import Any, List, Mapping
from urllib.parse import quote

from scraper.functions.common import (
    ReleaseItem,
    fetch_feed_document,
    parse_count,
    parse_feed_document,
)
from scraper.functions.season_parser import normalize_title_for_search
from utilities.settings import get_setting

DEFAULT_NYAA_BASE_URL = 'https://nyaa.si'

def build_nyaa_query(source: str, alternate: str) -> str:
    """Uploader name plus the show title with any season suffix stripped."""
    normalized_title = normalize_title_for_search(alternate)
    if normalized_title != alternate:
        logging.debug(f"Title normalized: '{alternate}' -> '{normalized_title}'")
    return f"{source} {normalized_title}".strip()

def build_nyaa_rss_url(source: str, alternate: str, base_url: str = DEFAULT_NYAA_BASE_URL, category: str = '1_2', filters: str = '0') -> str:
    query = quote(build_nyaa_query(source, alternate), safe='')
    return f"{base_url.rstrip('/')}/?page=rss&q={query}&c={category}&f={filters}"

def entry_to_release_item(entry: Mapping[str, Any]) -> ReleaseItem:
    """
    Convert a feedparser entry from a Nyaa search feed.

    Nyaa's namespaced fields come through feedparser as nyaa_<lowercased name>;
    any of them may be missing.
    """
    return ReleaseItem(
        title=entry.get('title', ''),
        torrent_link=entry.get('link', ''),
        view_url=entry.get('id', ''),
        pub_date=entry.get('published', ''),
        info_hash=(entry.get('nyaa_infohash') or '').strip(),
        category_id=(entry.get('nyaa_categoryid') or '').strip(),
        size=(entry.get('nyaa_size') or '').strip(),
        seeders=parse_count(entry.get('nyaa_seeders')),
        leechers=parse_count(entry.get('nyaa_leechers')),
    )

def parse_nyaa_rss(document) -> List[ReleaseItem]:
    items = []
    for entry in parse_feed_document(document):
        if not entry.get('title'):
            logging.debug("Skipping Nyaa entry without a title")
            continue
        items.append(entry_to_release_item(entry))
    return items

def fetch_nyaa_rss(http, source: str, alternate: str) -> List[ReleaseItem]:
    """Search Nyaa for `source` + `alternate` and return the parsed feed items."""
    url = build_nyaa_rss_url(
        source,
        alternate,
        base_url=get_setting('Feeds', 'nyaa_base_url', DEFAULT_NYAA_BASE_URL) or DEFAULT_NYAA_BASE_URL,
        category=str(get_setting('Feeds', 'nyaa_category', '1_2')),
        filters=str(get_setting('Feeds', 'nyaa_filter', '0')),
    )
    logging.debug(f"Fetching Nyaa RSS: {url}")

    document = fetch_feed_document(
        http,
        url,
        timeout=int(get_setting('Feeds', 'request_timeout', 30)),
        max_retries=int(get_setting('Feeds', 'max_retries', 3)),
    )
    items = parse_nyaa_rss(document)
    logging.info(f"Nyaa returned {len(items)} items for '{build_nyaa_query(source, alternate)}'")
    return items

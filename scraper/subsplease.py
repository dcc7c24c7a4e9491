import re
import logging
from typing import Any, List, Mapping, Tuple

from scraper.functions.common import (
    ReleaseItem,
    fetch_feed_document,
    parse_feed_document,
)
from utilities.settings import get_setting

DEFAULT_SUBSPLEASE_BASE_URL = 'https://subsplease.org'

NYAA_VIEW_LINK = re.compile(r'nyaa\.si/view/(\d+)')

def build_subsplease_rss_url(quality: str, base_url: str = DEFAULT_SUBSPLEASE_BASE_URL) -> str:
    # The feed takes the resolution without its 'p' suffix
    quality_param = quality.rstrip('p')
    return f"{base_url.rstrip('/')}/rss/?t&r={quality_param}"

def view_link_to_torrent_link(link: str) -> Tuple[str, str]:
    """
    Return (torrent_link, view_url) for a feed link.

    The feed links to the release's nyaa.si page; the torrent file lives at
    /download/<id>.torrent. Other links are used unchanged.
    """
    match = NYAA_VIEW_LINK.search(link)
    if match:
        return f"https://nyaa.si/download/{match.group(1)}.torrent", link
    return link, link

def entry_to_release_item(entry: Mapping[str, Any]) -> ReleaseItem:
    torrent_link, view_url = view_link_to_torrent_link(entry.get('link', '') or entry.get('id', ''))
    return ReleaseItem(
        title=entry.get('title', ''),
        torrent_link=torrent_link,
        view_url=view_url,
        pub_date=entry.get('published', ''),
        category_id='1_2',
        size=(entry.get('subsplease_size') or '').strip(),
    )

def parse_subsplease_rss(document) -> List[ReleaseItem]:
    items = []
    for entry in parse_feed_document(document):
        if not entry.get('title'):
            logging.debug("Skipping SubsPlease entry without a title")
            continue
        items.append(entry_to_release_item(entry))
    return items

def fetch_subsplease_rss(http, quality: str) -> List[ReleaseItem]:
    """Fetch every recent SubsPlease release at one quality tier."""
    url = build_subsplease_rss_url(
        quality,
        base_url=get_setting('Feeds', 'subsplease_base_url', DEFAULT_SUBSPLEASE_BASE_URL) or DEFAULT_SUBSPLEASE_BASE_URL,
    )
    logging.debug(f"Fetching SubsPlease RSS: {url}")

    document = fetch_feed_document(
        http,
        url,
        timeout=int(get_setting('Feeds', 'request_timeout', 30)),
        max_retries=int(get_setting('Feeds', 'max_retries', 3)),
    )
    items = parse_subsplease_rss(document)
    logging.debug(f"SubsPlease feed returned {len(items)} items at {quality}")
    return items

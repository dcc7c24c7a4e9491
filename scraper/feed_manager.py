import logging
from enum import Enum
from typing import List, Optional

from scraper.functions.common import ParsedEpisode, ReleaseItem
from scraper.functions.episode_parser import parse_episodes
from scraper.nyaa import fetch_nyaa_rss
from scraper.subsplease import fetch_subsplease_rss

class FeedSource(Enum):
    NYAA = 'nyaa'
    SUBSPLEASE_DIRECT = 'subsplease_direct'

    @classmethod
    def from_source_string(cls, source: Optional[str]) -> 'FeedSource':
        """'subsplease_direct' reads the SubsPlease feed; any other tag is a Nyaa uploader name."""
        if source and source.strip().lower() == cls.SUBSPLEASE_DIRECT.value:
            return cls.SUBSPLEASE_DIRECT
        return cls.NYAA

    def provider_name(self) -> str:
        return 'subsplease' if self == FeedSource.SUBSPLEASE_DIRECT else 'nyaa'

def filter_by_show_name(items: List[ReleaseItem], show_name: str) -> List[ReleaseItem]:
    show_lower = show_name.lower()
    return [item for item in items if show_lower in item.title.lower()]

def fetch_by_source(http, source: FeedSource, source_name: str, show_name: str, quality: str) -> List[ReleaseItem]:
    """
    Fetch the releases for one show.

    Nyaa is searched with the uploader name and show title. The SubsPlease feed has
    no search, so the whole tier is fetched and narrowed to titles containing the
    show name. Raises FeedError on transport or document failures.
    """
    if source == FeedSource.NYAA:
        return fetch_nyaa_rss(http, source_name, show_name)

    all_items = fetch_subsplease_rss(http, quality)
    filtered = filter_by_show_name(all_items, show_name)
    logging.debug(f"{len(filtered)}/{len(all_items)} SubsPlease items match '{show_name}'")
    return filtered

def fetch_episodes(http, source_name: str, alternate: str, quality: Optional[str] = None) -> List[ParsedEpisode]:
    """Search Nyaa and return the items whose titles parse, optionally limited to one quality."""
    items = fetch_nyaa_rss(http, source_name, alternate)
    return parse_episodes(items, quality)

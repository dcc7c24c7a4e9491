import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from database.download_history import DuplicateDownloadError, is_already_downloaded, record_download
from database.filters import get_global_filters, get_show_filters
from database.models import Show
from database.shows import update_last_downloaded
from download_client.base import DownloadClient, DownloadClientError
from logging_config import log_download_event
from scraper.feed_manager import FeedSource
from scraper.functions.common import FeedError, ReleaseItem, download_locator, release_fingerprint
from scraper.functions.episode_parser import parse_episode
from scraper.functions.filter_engine import FilterEngine

# (source, source_name, show_name, quality) -> items
FeedFetcher = Callable[[FeedSource, str, str, str], List[ReleaseItem]]

@dataclass
class ShowResult:
    show_id: int
    title: str
    downloads: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

class ShowProcessor:
    """
    Runs one show through fetch, filter, freshness checks and dispatch.

    Duplicates are stopped twice: by the show's episode watermark and by the
    download history's fingerprint. Hashes the download client already holds
    count as downloaded too.
    """

    def __init__(self, conn: sqlite3.Connection, fetch_items: FeedFetcher, download_client: DownloadClient,
                 existing_hashes: Optional[Set[str]] = None):
        self.conn = conn
        self.fetch_items = fetch_items
        self.download_client = download_client
        self.existing_hashes = existing_hashes or set()

    def process(self, show: Show) -> ShowResult:
        result = ShowResult(show_id=show.id, title=show.title)
        source = FeedSource.from_source_string(show.source)
        search_title = show.search_title

        try:
            items = self.fetch_items(source, show.source, search_title, show.quality)
        except FeedError as e:
            logging.error(f"Failed to fetch RSS feed for '{search_title}' (source: {source.value}): {e}")
            result.error = str(e)
            return result

        if not items:
            logging.debug(f"No RSS items found for '{search_title}'")
            return result
        logging.debug(f"Fetched {len(items)} RSS items for '{search_title}' (source: {source.value})")

        engine = FilterEngine(get_global_filters(self.conn), get_show_filters(show.id, self.conn))
        filtered_results = engine.apply(items)
        if not filtered_results:
            logging.debug(f"No items passed filters for '{search_title}' (quality: {show.quality})")
            return result
        logging.debug(f"{len(filtered_results)} items passed filters for '{search_title}'")

        provider = source.provider_name()
        watermark = show.last_downloaded_episode or 0
        dispatched_episodes = set()

        for filter_result in filtered_results:
            item = filter_result.item
            if filter_result.matched_rules:
                logging.debug(f"Item '{item.title}' matched rules: {filter_result.matched_rules}")

            info = parse_episode(item.title)
            if info is None:
                logging.debug(f"Could not parse episode info from: {item.title}")
                continue

            episode = info.episode
            if episode <= watermark:
                continue
            if episode in dispatched_episodes:
                logging.debug(f"Episode {episode} of '{show.title}' already sent this pass, skipping {item.title}")
                continue

            fingerprint = release_fingerprint(item, provider)
            if is_already_downloaded(fingerprint, self.conn):
                logging.debug(f"Already downloaded (by hash): {item.title}")
                continue
            if item.info_hash and item.info_hash.lower() in self.existing_hashes:
                logging.debug(f"Already in download client: {item.title}")
                continue

            if self._dispatch(show, search_title, episode, item, fingerprint):
                dispatched_episodes.add(episode)
                result.downloads += 1

        return result

    def _dispatch(self, show: Show, search_title: str, episode: int, item: ReleaseItem, fingerprint: str) -> bool:
        locator = download_locator(item)
        try:
            destination = self.download_client.dispatch([locator], search_title, show.season, show.download_path)
        except DownloadClientError as e:
            logging.error(f"Failed to send '{item.title}' to the download client: {e}")
            return False

        logging.info(f"Downloaded: {item.title}")
        log_download_event(show.title, episode, fingerprint, locator, destination)

        try:
            record_download(show.id, episode, fingerprint, item.torrent_link or locator, self.conn)
        except DuplicateDownloadError:
            logging.info(f"'{item.title}' was already recorded by another run")
        except sqlite3.Error as e:
            logging.error(f"Failed to record download in history: {e}")

        try:
            update_last_downloaded(show.id, episode, fingerprint, self.conn)
        except sqlite3.Error as e:
            logging.error(f"Failed to update last downloaded episode: {e}")

        return True

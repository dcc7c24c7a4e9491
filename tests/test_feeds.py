import unittest
from unittest.mock import MagicMock, Mock, patch
import sys
import os
import logging

import requests

# Add the project root to the path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scraper.functions.common import (
    FeedParseError,
    FeedTransportError,
    ReleaseItem,
    construct_magnet_url,
    convert_size_to_gb,
    detect_fansub_source,
    download_locator,
    fetch_feed_document,
    filter_by_quality,
    parse_count,
    parse_feed_document,
    release_fingerprint,
)
from scraper.feed_manager import FeedSource, fetch_by_source, fetch_episodes, filter_by_show_name
from scraper.nyaa import build_nyaa_query, build_nyaa_rss_url, fetch_nyaa_rss, parse_nyaa_rss
from scraper.subsplease import build_subsplease_rss_url, parse_subsplease_rss, view_link_to_torrent_link

NYAA_RSS = b"""<?xml version="1.0" encoding="utf-8"?>
<rss xmlns:atom="http://www.w3.org/2005/Atom" xmlns:nyaa="https://nyaa.si/xmlns/nyaa" version="2.0">
  <channel>
    <title>Nyaa - "subsplease frieren" - Torrent File RSS</title>
    <description>RSS Feed for "subsplease frieren"</description>
    <link>https://nyaa.si/</link>
    <item>
      <title>[SubsPlease] Sousou no Frieren S2 - 02 (1080p) [ABCD1234].mkv</title>
      <link>https://nyaa.si/download/1900001.torrent</link>
      <guid isPermaLink="true">https://nyaa.si/view/1900001</guid>
      <pubDate>Fri, 23 Jan 2026 16:31:02 -0000</pubDate>
      <nyaa:seeders>812</nyaa:seeders>
      <nyaa:leechers>40</nyaa:leechers>
      <nyaa:downloads>2000</nyaa:downloads>
      <nyaa:infoHash>0123456789abcdef0123456789abcdef01234567</nyaa:infoHash>
      <nyaa:categoryId>1_2</nyaa:categoryId>
      <nyaa:category>Anime - English-translated</nyaa:category>
      <nyaa:size>1.4 GiB</nyaa:size>
    </item>
    <item>
      <nyaa:size>700 MiB</nyaa:size>
      <title>[SubsPlease] Sousou no Frieren S2 - 01 (720p) [DCBA4321].mkv</title>
      <link>https://nyaa.si/download/1900000.torrent</link>
      <guid isPermaLink="true">https://nyaa.si/view/1900000</guid>
    </item>
  </channel>
</rss>
"""

SUBSPLEASE_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:subsplease="https://subsplease.org/rss">
  <channel>
    <title>SubsPlease RSS</title>
    <link>https://subsplease.org</link>
    <description>RSS feed for SubsPlease releases (1080p)</description>
    <item>
      <title>[SubsPlease] Sousou no Frieren S2 - 02 (1080p) [ABCD1234].mkv</title>
      <link>https://nyaa.si/view/1900001</link>
      <guid isPermaLink="false">ABCD1234</guid>
      <pubDate>Fri, 23 Jan 2026 16:31:02 +0000</pubDate>
      <category>Sousou no Frieren S2 - 1080</category>
      <subsplease:size>1.4 GiB</subsplease:size>
    </item>
    <item>
      <title>[SubsPlease] Dandadan - 15 (1080p) [EEEE5555].mkv</title>
      <link>https://nyaa.si/view/1900002</link>
      <guid isPermaLink="false">EEEE5555</guid>
      <pubDate>Fri, 23 Jan 2026 17:01:02 +0000</pubDate>
    </item>
  </channel>
</rss>
"""


def settings_default(section, key=None, default=None):
    return default


def http_error(status_code):
    response = Mock(status_code=status_code)
    return requests.exceptions.HTTPError(f"{status_code} Error", response=response)


class TestCommonHelpers(unittest.TestCase):

    def test_construct_magnet_url(self):
        self.assertEqual(
            construct_magnet_url("ABC123", "[SubsPlease] Show - 01 (1080p).mkv"),
            "magnet:?xt=urn:btih:ABC123&dn=%5BSubsPlease%5D%20Show%20-%2001%20%281080p%29.mkv",
        )

    def test_download_locator_prefers_magnet(self):
        with_hash = ReleaseItem(title="Show", torrent_link="https://nyaa.si/download/1.torrent", info_hash="abc")
        without_hash = ReleaseItem(title="Show", torrent_link="https://nyaa.si/download/1.torrent")

        self.assertTrue(download_locator(with_hash).startswith("magnet:?xt=urn:btih:abc"))
        self.assertEqual(download_locator(without_hash), "https://nyaa.si/download/1.torrent")

    def test_release_fingerprint(self):
        with_hash = ReleaseItem(title="Show", torrent_link="link", info_hash="ABCDEF")
        without_hash = ReleaseItem(title="Show", torrent_link="https://nyaa.si/download/1.torrent")

        self.assertEqual(release_fingerprint(with_hash, "nyaa"), "abcdef")
        self.assertEqual(release_fingerprint(without_hash, "SubsPlease"),
                         "subsplease:https://nyaa.si/download/1.torrent")
        self.assertEqual(release_fingerprint(without_hash, "subsplease"),
                         release_fingerprint(without_hash, "subsplease"))

    def test_convert_size_to_gb(self):
        self.assertAlmostEqual(convert_size_to_gb("1.5 GiB"), 1.5)
        self.assertAlmostEqual(convert_size_to_gb("512 MiB"), 0.5)
        self.assertAlmostEqual(convert_size_to_gb("1 TiB"), 1024.0)
        self.assertEqual(convert_size_to_gb(""), 0.0)
        self.assertEqual(convert_size_to_gb("lots"), 0.0)
        self.assertAlmostEqual(ReleaseItem(title="x", size="2 GiB").size_gb, 2.0)

    def test_parse_count(self):
        self.assertEqual(parse_count(" 12 "), 12)
        self.assertEqual(parse_count(None), 0)
        self.assertEqual(parse_count("n/a"), 0)

    def test_detect_fansub_source(self):
        self.assertEqual(detect_fansub_source("[Erai-raws] Show - 01 [1080p]"), "Erai-raws")
        self.assertEqual(detect_fansub_source("[SUBSPLEASE] Show - 01 (1080p)"), "subsplease")
        self.assertEqual(detect_fansub_source("[NewGroup] Show - 01 (1080p)"), "NewGroup")
        self.assertEqual(detect_fansub_source("Show - 01 (1080p)"), "subsplease")

    def test_filter_by_quality(self):
        items = [ReleaseItem(title="Show - 01 (1080p)"), ReleaseItem(title="Show - 01 (720p)")]
        self.assertEqual(filter_by_quality(items, "720p"), [items[1]])
        self.assertEqual(filter_by_quality(items, None), items)


class TestFetchFeedDocument(unittest.TestCase):

    def setUp(self):
        logging.basicConfig(level=logging.ERROR)
        self.http = MagicMock()

    @patch('scraper.functions.common.time.sleep')
    def test_retries_on_rate_limit_then_succeeds(self, mock_sleep):
        self.http.get.side_effect = [http_error(429), http_error(503), Mock(content=b"<rss/>")]

        document = fetch_feed_document(self.http, "https://nyaa.si/?page=rss", max_retries=3)

        self.assertEqual(document, b"<rss/>")
        self.assertEqual(self.http.get.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    @patch('scraper.functions.common.time.sleep')
    def test_gives_up_after_max_retries(self, mock_sleep):
        self.http.get.side_effect = requests.exceptions.ConnectionError("refused")

        with self.assertRaises(FeedTransportError):
            fetch_feed_document(self.http, "https://nyaa.si/?page=rss", max_retries=3)

        self.assertEqual(self.http.get.call_count, 3)

    @patch('scraper.functions.common.time.sleep')
    def test_non_retryable_status_fails_immediately(self, mock_sleep):
        self.http.get.side_effect = http_error(404)

        with self.assertRaises(FeedTransportError):
            fetch_feed_document(self.http, "https://nyaa.si/?page=rss")

        self.assertEqual(self.http.get.call_count, 1)
        mock_sleep.assert_not_called()

    def test_parse_feed_document_rejects_garbage(self):
        with self.assertRaises(FeedParseError):
            parse_feed_document(b"this is not a feed at all")


class TestNyaaFeed(unittest.TestCase):

    def test_build_query_and_url(self):
        self.assertEqual(build_nyaa_query("subsplease", "Sousou no Frieren 2nd Season"), "subsplease Sousou no Frieren")
        self.assertEqual(
            build_nyaa_rss_url("subsplease", "Dandadan", base_url="https://nyaa.si/"),
            "https://nyaa.si/?page=rss&q=subsplease%20Dandadan&c=1_2&f=0",
        )

    def test_parse_nyaa_rss(self):
        items = parse_nyaa_rss(NYAA_RSS)

        self.assertEqual(len(items), 2)
        first = items[0]
        self.assertEqual(first.title, "[SubsPlease] Sousou no Frieren S2 - 02 (1080p) [ABCD1234].mkv")
        self.assertEqual(first.torrent_link, "https://nyaa.si/download/1900001.torrent")
        self.assertEqual(first.view_url, "https://nyaa.si/view/1900001")
        self.assertEqual(first.info_hash, "0123456789abcdef0123456789abcdef01234567")
        self.assertEqual(first.seeders, 812)
        self.assertEqual(first.leechers, 40)
        self.assertEqual(first.size, "1.4 GiB")
        self.assertEqual(first.category_id, "1_2")

    def test_missing_extension_fields_default_to_empty(self):
        second = parse_nyaa_rss(NYAA_RSS)[1]

        self.assertEqual(second.title, "[SubsPlease] Sousou no Frieren S2 - 01 (720p) [DCBA4321].mkv")
        self.assertEqual(second.torrent_link, "https://nyaa.si/download/1900000.torrent")
        self.assertEqual(second.info_hash, "")
        self.assertEqual(second.seeders, 0)
        self.assertEqual(second.leechers, 0)
        self.assertEqual(second.size, "700 MiB")

    @patch('scraper.nyaa.get_setting', side_effect=settings_default)
    def test_fetch_nyaa_rss(self, mock_get_setting):
        http = MagicMock()
        http.get.return_value = Mock(content=NYAA_RSS)

        items = fetch_nyaa_rss(http, "subsplease", "Sousou no Frieren S2")

        self.assertEqual(len(items), 2)
        url = http.get.call_args[0][0]
        self.assertEqual(url, "https://nyaa.si/?page=rss&q=subsplease%20Sousou%20no%20Frieren&c=1_2&f=0")


class TestSubsPleaseFeed(unittest.TestCase):

    def test_build_url_strips_p_suffix(self):
        self.assertEqual(build_subsplease_rss_url("1080p"), "https://subsplease.org/rss/?t&r=1080")
        self.assertEqual(build_subsplease_rss_url("720", "https://mirror.example/"), "https://mirror.example/rss/?t&r=720")

    def test_view_link_to_torrent_link(self):
        self.assertEqual(
            view_link_to_torrent_link("https://nyaa.si/view/1900001"),
            ("https://nyaa.si/download/1900001.torrent", "https://nyaa.si/view/1900001"),
        )
        self.assertEqual(
            view_link_to_torrent_link("magnet:?xt=urn:btih:abc"),
            ("magnet:?xt=urn:btih:abc", "magnet:?xt=urn:btih:abc"),
        )

    def test_parse_subsplease_rss(self):
        items = parse_subsplease_rss(SUBSPLEASE_RSS)

        self.assertEqual(len(items), 2)
        self.assertEqual(items[0].torrent_link, "https://nyaa.si/download/1900001.torrent")
        self.assertEqual(items[0].view_url, "https://nyaa.si/view/1900001")
        self.assertEqual(items[0].info_hash, "")
        self.assertEqual(items[0].size, "1.4 GiB")
        self.assertEqual(items[1].size, "")


class TestFeedManager(unittest.TestCase):

    def setUp(self):
        self.http = MagicMock()

    def test_source_resolution(self):
        self.assertEqual(FeedSource.from_source_string("subsplease_direct"), FeedSource.SUBSPLEASE_DIRECT)
        self.assertEqual(FeedSource.from_source_string(" SubsPlease_Direct "), FeedSource.SUBSPLEASE_DIRECT)
        self.assertEqual(FeedSource.from_source_string("subsplease"), FeedSource.NYAA)
        self.assertEqual(FeedSource.from_source_string("Erai-raws"), FeedSource.NYAA)
        self.assertEqual(FeedSource.from_source_string(None), FeedSource.NYAA)
        self.assertEqual(FeedSource.SUBSPLEASE_DIRECT.provider_name(), "subsplease")
        self.assertEqual(FeedSource.NYAA.provider_name(), "nyaa")

    def test_filter_by_show_name(self):
        items = parse_subsplease_rss(SUBSPLEASE_RSS)
        self.assertEqual([i.title for i in filter_by_show_name(items, "DANDADAN")],
                         ["[SubsPlease] Dandadan - 15 (1080p) [EEEE5555].mkv"])

    @patch('scraper.subsplease.get_setting', side_effect=settings_default)
    def test_firehose_is_filtered_client_side(self, mock_get_setting):
        self.http.get.return_value = Mock(content=SUBSPLEASE_RSS)

        items = fetch_by_source(self.http, FeedSource.SUBSPLEASE_DIRECT, "subsplease_direct", "sousou no frieren", "1080p")

        self.assertEqual(len(items), 1)
        self.assertIn("Frieren", items[0].title)
        self.assertEqual(self.http.get.call_args[0][0], "https://subsplease.org/rss/?t&r=1080")

    @patch('scraper.feed_manager.fetch_nyaa_rss')
    def test_searchable_source_uses_nyaa(self, mock_fetch_nyaa):
        mock_fetch_nyaa.return_value = []

        fetch_by_source(self.http, FeedSource.NYAA, "Erai-raws", "Dandadan", "1080p")

        mock_fetch_nyaa.assert_called_once_with(self.http, "Erai-raws", "Dandadan")

    @patch('scraper.nyaa.get_setting', side_effect=settings_default)
    def test_fetch_episodes(self, mock_get_setting):
        self.http.get.return_value = Mock(content=NYAA_RSS)

        episodes = fetch_episodes(self.http, "subsplease", "Sousou no Frieren", "1080p")

        self.assertEqual(len(episodes), 1)
        self.assertEqual(episodes[0].episode, 2)
        self.assertEqual(episodes[0].info_hash, "0123456789abcdef0123456789abcdef01234567")


if __name__ == '__main__':
    unittest.main()

"""
Episode number extraction from release titles.

Release titles have no fixed grammar, so parsing is an ordered cascade of
pattern families evaluated first-match-wins. Season-bearing families must come
before the no-season fallback, otherwise the season marker ends up inside the
captured show title.
"""
import re
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from scraper.functions.common import ReleaseItem, ParsedEpisode, construct_magnet_url, filter_by_quality


@dataclass(frozen=True)
class EpisodeInfo:
    show_title: str
    season: Optional[int]
    episode: int
    quality: str = ''


def _with_season(match: re.Match) -> EpisodeInfo:
    return EpisodeInfo(
        show_title=match.group('show').strip(),
        season=int(match.group('season')),
        episode=int(match.group('episode')),
        quality=match.group('quality') or '',
    )

def _without_season(match: re.Match) -> EpisodeInfo:
    return EpisodeInfo(
        show_title=match.group('show').strip(),
        season=None,  # season 1 or a long-running show
        episode=int(match.group('episode')),
        quality=match.group('quality') or '',
    )

# (name, pattern, extractor), tried in order
EPISODE_PATTERNS: List[Tuple[str, re.Pattern, Callable[[re.Match], EpisodeInfo]]] = [
    # [Group] Show S2 - 02 (1080p)
    ('s_prefix',
     re.compile(r'\[.*?\]\s*(?P<show>.*?)\s+S(?P<season>\d+)\s*-\s*(?P<episode>\d+)\s*.*?(?P<quality>\d{3,4}p)'),
     _with_season),
    # [Group] Show 3rd Season - 01 [1080p]
    ('ordinal_season',
     re.compile(r'\[.*?\]\s*(?P<show>.*?)\s+(?P<season>\d+)(?:st|nd|rd|th)\s+Season\s*-\s*(?P<episode>\d+)\s*.*?(?P<quality>\d{3,4}p)'),
     _with_season),
    # [Group] Show Season 2 - 01 [1080p]
    ('spelled_season',
     re.compile(r'\[.*?\]\s*(?P<show>.*?)\s+Season\s+(?P<season>\d+)\s*-\s*(?P<episode>\d+)\s*.*?(?P<quality>\d{3,4}p)'),
     _with_season),
    # [Group] Show - 28 (1080p)
    ('no_season',
     re.compile(r'\[.*?\]\s*(?P<show>.*?)\s*-\s*(?P<episode>\d+)\s*.*?(?P<quality>\d{3,4}p)'),
     _without_season),
]


def parse_episode(title: str) -> Optional[EpisodeInfo]:
    """
    Extract show title, season, episode and quality from a release title.

    Returns the first pattern family that matches, or None when nothing does.
    Callers must discard items that return None rather than guess.
    """
    for name, pattern, extract in EPISODE_PATTERNS:
        match = pattern.search(title)
        if match:
            info = extract(match)
            logging.debug(f"Parsed '{title}' with '{name}' pattern: {info}")
            return info
    return None

def parse_episode_info(title: str) -> Optional[Tuple[str, int, str]]:
    """Shorthand for (show_title, episode, quality)."""
    info = parse_episode(title)
    if info is None:
        return None
    return info.show_title, info.episode, info.quality

def to_parsed_episode(item: ReleaseItem) -> Optional[ParsedEpisode]:
    parsed = parse_episode_info(item.title)
    if parsed is None:
        return None
    show_title, episode, quality = parsed
    return ParsedEpisode(
        show_title=show_title,
        episode=episode,
        quality=quality,
        info_hash=item.info_hash,
        torrent_url=item.torrent_link,
        magnet_url=construct_magnet_url(item.info_hash, item.title),
    )

def parse_episodes(items: List[ReleaseItem], quality: Optional[str] = None) -> List[ParsedEpisode]:
    """Quality-filter feed items and keep the ones whose title parses."""
    episodes = []
    for item in filter_by_quality(items, quality):
        parsed = to_parsed_episode(item)
        if parsed is None:
            logging.debug(f"Could not parse episode info from: {item.title}")
            continue
        episodes.append(parsed)
    return episodes

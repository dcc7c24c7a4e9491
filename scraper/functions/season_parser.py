"""
Season number detection for show titles.

Handles the naming conventions seen on airing lists and release groups:
S2 / S02, Season 2 (and Saison/Series/Stagione), 2nd Season, Part 2 / Part II,
Cour 2, trailing Roman numerals (II and up) and a trailing single digit.

This is used when establishing a show's season metadata, not when parsing the
episode out of an individual release; see episode_parser for that.
"""
import re
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

ROMAN_NUMERALS = {
    'I': 1, 'II': 2, 'III': 3, 'IV': 4, 'V': 5,
    'VI': 6, 'VII': 7, 'VIII': 8, 'IX': 9, 'X': 10,
}


@dataclass(frozen=True)
class SeasonInfo:
    season: int = 1
    matched_pattern: Optional[str] = None
    clean_title: Optional[str] = None


def roman_to_arabic(roman: str) -> Optional[int]:
    return ROMAN_NUMERALS.get(roman.upper())

def _clean(title: str, matched: str) -> str:
    return title.replace(matched, '').strip()


S_PREFIX = re.compile(r'\bS(\d{1,2})\b', re.IGNORECASE)
SPELLED_SEASON = re.compile(r'\b(Season|Saison|Series|Stagione)[-_.\s]?(\d{1,2})\b', re.IGNORECASE)
ORDINAL_SEASON = re.compile(r'\b(\d{1,2})(st|nd|rd|th)\s*(Season|Cour)?\b', re.IGNORECASE)
PART_ARABIC = re.compile(r'\bPart[-_.\s]?(\d{1,2})\b', re.IGNORECASE)
PART_ROMAN = re.compile(r'\bPart[-_.\s]?(I{1,3}|IV|VI{0,3}|IX|X)\b', re.IGNORECASE)
COUR = re.compile(r'\bCour[-_.\s]?(\d{1,2})\b', re.IGNORECASE)
# Case sensitive: lowercase "ii" is almost always part of a word
TRAILING_ROMAN = re.compile(r'\b(X{0,1}(?:IX|IV|V?I{1,3}))\s*$')
TRAILING_DIGIT = re.compile(r'(?:[-:]\s*|\s+)(\d)\s*$')


def _detect_s_prefix(title: str) -> Optional[SeasonInfo]:
    match = S_PREFIX.search(title)
    if not match:
        return None
    return SeasonInfo(
        season=int(match.group(1)),
        matched_pattern=f"S{match.group(1)}",
        clean_title=S_PREFIX.sub('', title, count=1).strip(),
    )

def _detect_numbered(pattern: re.Pattern, group: int) -> Callable[[str], Optional[SeasonInfo]]:
    """Build a detector for '<keyword> <number>' style markers."""
    def detect(title: str) -> Optional[SeasonInfo]:
        match = pattern.search(title)
        if not match:
            return None
        matched = match.group(0)
        return SeasonInfo(
            season=int(match.group(group)),
            matched_pattern=matched,
            clean_title=_clean(title, matched),
        )
    return detect

def _detect_part_roman(title: str) -> Optional[SeasonInfo]:
    match = PART_ROMAN.search(title)
    if not match:
        return None
    season = roman_to_arabic(match.group(1))
    if season is None:
        return None
    matched = match.group(0)
    return SeasonInfo(season=season, matched_pattern=matched, clean_title=_clean(title, matched))

def _detect_trailing_roman(title: str) -> Optional[SeasonInfo]:
    match = TRAILING_ROMAN.search(title)
    if not match:
        return None
    numeral = match.group(1)
    season = roman_to_arabic(numeral)
    # A lone "I" is usually part of the title itself
    if season is None or season < 2:
        return None
    return SeasonInfo(
        season=season,
        matched_pattern=numeral,
        clean_title=TRAILING_ROMAN.sub('', title, count=1).strip(),
    )

def _detect_trailing_digit(title: str) -> Optional[SeasonInfo]:
    match = TRAILING_DIGIT.search(title)
    if not match:
        return None
    season = int(match.group(1))
    if not 1 <= season <= 9:
        return None
    return SeasonInfo(
        season=season,
        matched_pattern=f"trailing {season}",
        clean_title=_clean(title, match.group(0)),
    )


# Most specific first; the trailing digit is the loosest guess and goes last
SEASON_DETECTORS: List[Tuple[str, Callable[[str], Optional[SeasonInfo]]]] = [
    ('s_prefix', _detect_s_prefix),
    ('spelled', _detect_numbered(SPELLED_SEASON, 2)),
    ('ordinal', _detect_numbered(ORDINAL_SEASON, 1)),
    ('part', _detect_numbered(PART_ARABIC, 1)),
    ('part_roman', _detect_part_roman),
    ('cour', _detect_numbered(COUR, 1)),
    ('roman', _detect_trailing_roman),
    ('trailing_number', _detect_trailing_digit),
]


def detect_season(title: str) -> SeasonInfo:
    """
    Detect the season number of a show title.

    Returns the first detector that matches. When nothing matches the season
    defaults to 1 with no matched pattern or clean title.

        >>> detect_season("Sousou no Frieren S2").season
        2
        >>> detect_season("My Hero Academia 2nd Season").clean_title
        'My Hero Academia'
    """
    for name, detector in SEASON_DETECTORS:
        info = detector(title)
        if info is not None:
            logging.debug(f"Season {info.season} detected in '{title}' ({name}: {info.matched_pattern})")
            return info
    return SeasonInfo()


SEARCH_SUFFIXES = [
    re.compile(r'\s+(?:2nd|3rd|[4-9]th)\s+Season\s*$', re.IGNORECASE),
    re.compile(r'\s+Season\s+\d+\s*$', re.IGNORECASE),
    re.compile(r'\s+S\d+\s*$', re.IGNORECASE),
    re.compile(r'\s+Part\s+\d+\s*$', re.IGNORECASE),
    re.compile(r'\s+(?:II|III|IV|V|VI|VII|VIII|IX|X)\s*$', re.IGNORECASE),
    re.compile(r'\s+Cour\s+\d+\s*$', re.IGNORECASE),
]

def normalize_title_for_search(title: str) -> str:
    """
    Strip season suffixes so the query matches feed naming.

    Feeds tag seasons tersely ("S2"), so "Sousou no Frieren 2nd Season" has to be
    searched as "Sousou no Frieren".
    """
    result = title
    for pattern in SEARCH_SUFFIXES:
        result = pattern.sub('', result, count=1)
    return result.strip()

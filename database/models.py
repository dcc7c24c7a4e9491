"""Record types for the tracker database tables."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class FilterType(Enum):
    RESOLUTION = 'resolution'
    GROUP = 'group'
    TITLE_EXCLUDE = 'title_exclude'
    TITLE_INCLUDE = 'title_include'

    @classmethod
    def from_str(cls, value: Optional[str]) -> Optional['FilterType']:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class FilterAction(Enum):
    PREFER = 'prefer'
    REQUIRE = 'require'
    EXCLUDE = 'exclude'

    @classmethod
    def from_str(cls, value: Optional[str]) -> Optional['FilterAction']:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass
class FilterRule:
    id: int
    name: str
    filter_type: FilterType
    pattern: str
    action: FilterAction
    priority: int = 0
    is_global: bool = True
    enabled: bool = True
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'filter_type': self.filter_type.value,
            'pattern': self.pattern,
            'action': self.action.value,
            'priority': self.priority,
            'is_global': self.is_global,
            'enabled': self.enabled,
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class GlobalRuleToggle:
    """Per-show switch for a global rule. Only enabled=False has an effect."""
    id: int
    show_id: int
    filter_rule_id: int
    enabled: bool = True


@dataclass(frozen=True)
class CustomShowFilter:
    """A rule private to one show, evaluated after the global rules."""
    id: int
    show_id: int
    filter_type: FilterType
    pattern: str
    action: FilterAction = FilterAction.PREFER
    enabled: bool = True


# A show_filter_overrides row is exactly one of these
ShowFilterOverride = Union[GlobalRuleToggle, CustomShowFilter]


@dataclass
class Show:
    id: int
    title: str
    alternate: str = ''
    season: int = 1
    source: str = 'subsplease'
    quality: str = '1080p'
    download_path: Optional[str] = None
    last_downloaded_episode: int = 0
    last_downloaded_hash: Optional[str] = None
    is_tracked: bool = True
    latest_episode: Optional[str] = None
    next_air_date: Optional[str] = None

    @property
    def search_title(self) -> str:
        return self.alternate if self.alternate else self.title


@dataclass
class DownloadRecord:
    id: int
    show_id: int
    episode: int
    info_hash: str
    torrent_url: Optional[str]
    downloaded_at: Optional[str]


@dataclass
class PollingConfig:
    id: int = 1
    poll_times_per_day: int = 4
    last_poll_time: Optional[str] = None
    enabled: bool = True

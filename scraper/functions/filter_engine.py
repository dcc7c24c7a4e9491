"""
Rule based filtering and scoring of feed releases.

Global rules are evaluated by priority (highest first, ties by id). An exclude
match or a failed require drops the release immediately, independent of any
score it has collected so far. Show specific custom rules run afterwards and
can only add a small fixed bonus, so they never outrank global curation.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from database.models import (
    CustomShowFilter,
    FilterAction,
    FilterRule,
    FilterType,
    GlobalRuleToggle,
    ShowFilterOverride,
)
from scraper.functions.common import ReleaseItem

CUSTOM_PREFER_POINTS = 5


@dataclass
class FilterResult:
    item: ReleaseItem
    score: int = 0
    matched_rules: List[str] = field(default_factory=list)


def pattern_matches(filter_type: FilterType, pattern: str, item: ReleaseItem) -> bool:
    """Case-insensitive substring match; groups must appear bracketed, e.g. [SubsPlease]."""
    title_lower = item.title.lower()
    pattern_lower = pattern.lower()

    if filter_type == FilterType.GROUP:
        return f"[{pattern_lower}]" in title_lower
    return pattern_lower in title_lower


class FilterEngine:
    def __init__(self, global_rules: Iterable[FilterRule], show_overrides: Optional[Iterable[ShowFilterOverride]] = None):
        self.rules = sorted(global_rules, key=lambda rule: (-rule.priority, rule.id))
        overrides = list(show_overrides or [])
        self.disabled_rule_ids: Set[int] = {
            o.filter_rule_id for o in overrides
            if isinstance(o, GlobalRuleToggle) and not o.enabled
        }
        self.custom_filters: List[CustomShowFilter] = sorted(
            (o for o in overrides if isinstance(o, CustomShowFilter)),
            key=lambda o: o.id,
        )

    @classmethod
    def with_global_rules(cls, global_rules: Iterable[FilterRule]) -> 'FilterEngine':
        return cls(global_rules, [])

    def apply(self, items: Iterable[ReleaseItem]) -> List[FilterResult]:
        """
        Return the releases that pass every rule, best first.

        Ordered by score, then by seeders, then by feed order. An empty list is a
        normal outcome (e.g. a require rule nothing matched).
        """
        results = [result for result in map(self.evaluate_item, items) if result is not None]
        return sorted(results, key=lambda r: (-r.score, -r.item.seeders))

    def evaluate_item(self, item: ReleaseItem) -> Optional[FilterResult]:
        result = FilterResult(item=item)

        for rule in self.rules:
            if not rule.enabled or rule.id in self.disabled_rule_ids:
                continue

            matches = pattern_matches(rule.filter_type, rule.pattern, item)

            if rule.action == FilterAction.EXCLUDE:
                if matches:
                    logging.debug(f"Item '{item.title}' excluded by rule '{rule.name}': matched exclude pattern '{rule.pattern}'")
                    return None
            elif rule.action == FilterAction.REQUIRE:
                if not matches:
                    logging.debug(f"Item '{item.title}' failed require rule '{rule.name}': did not match required pattern '{rule.pattern}'")
                    return None
                result.matched_rules.append(f"{rule.name} (required)")
            elif rule.action == FilterAction.PREFER and matches:
                points = max(rule.priority, 1)
                result.score += points
                result.matched_rules.append(f"{rule.name} (+{points})")

        for custom in self.custom_filters:
            if not custom.enabled:
                continue

            matches = pattern_matches(custom.filter_type, custom.pattern, item)

            if custom.action == FilterAction.EXCLUDE and matches:
                logging.debug(f"Item '{item.title}' excluded by show filter: {custom.filter_type.value} = {custom.pattern}")
                return None
            if custom.action == FilterAction.REQUIRE and not matches:
                logging.debug(f"Item '{item.title}' failed show require filter: {custom.filter_type.value} = {custom.pattern}")
                return None
            if custom.action == FilterAction.PREFER and matches:
                result.score += CUSTOM_PREFER_POINTS
                result.matched_rules.append(f"show:{custom.pattern} (+{CUSTOM_PREFER_POINTS})")

        return result


def apply_filters(global_rules: Iterable[FilterRule], overrides: Iterable[ShowFilterOverride], items: Iterable[ReleaseItem]) -> List[FilterResult]:
    return FilterEngine(global_rules, overrides).apply(items)

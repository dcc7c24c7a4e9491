import unittest
import sys
import os
import logging

# Add the project root to the path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.models import (
    CustomShowFilter,
    FilterAction,
    FilterRule,
    FilterType,
    GlobalRuleToggle,
)
from scraper.functions.common import ReleaseItem
from scraper.functions.filter_engine import CUSTOM_PREFER_POINTS, FilterEngine, apply_filters, pattern_matches


def make_rule(rule_id, filter_type, pattern, action, priority=0, enabled=True, name=None):
    return FilterRule(
        id=rule_id,
        name=name or f"rule {rule_id}",
        filter_type=filter_type,
        pattern=pattern,
        action=action,
        priority=priority,
        enabled=enabled,
    )


class TestFilterEngine(unittest.TestCase):
    """Rule evaluation, scoring and ordering of feed releases."""

    def setUp(self):
        logging.basicConfig(level=logging.ERROR)

        self.sp_1080 = ReleaseItem(title="[SubsPlease] Dandadan - 03 (1080p) [AAAA].mkv", seeders=100)
        self.sp_720 = ReleaseItem(title="[SubsPlease] Dandadan - 03 (720p) [BBBB].mkv", seeders=300)
        self.erai_1080 = ReleaseItem(title="[Erai-raws] Dandadan - 03 [1080p][Multiple Subtitle].mkv", seeders=50)
        self.batch = ReleaseItem(title="[SubsPlease] Dandadan (01-12) (1080p) [Batch]", seeders=900)

        self.prefer_1080 = make_rule(1, FilterType.RESOLUTION, "1080p", FilterAction.PREFER, priority=10, name="Prefer 1080p")
        self.prefer_sp = make_rule(2, FilterType.GROUP, "SubsPlease", FilterAction.PREFER, priority=5, name="Prefer SubsPlease")
        self.exclude_batch = make_rule(3, FilterType.TITLE_EXCLUDE, "batch", FilterAction.EXCLUDE, priority=100, name="Exclude batches")

    def test_exclude_wins_over_higher_priority_prefer(self):
        low_exclude = make_rule(4, FilterType.TITLE_EXCLUDE, "Batch", FilterAction.EXCLUDE, priority=1)
        big_prefer = make_rule(5, FilterType.TITLE_INCLUDE, "Batch", FilterAction.PREFER, priority=1000)

        results = FilterEngine.with_global_rules([low_exclude, big_prefer]).apply([self.batch, self.sp_1080])

        self.assertEqual([r.item for r in results], [self.sp_1080])

    def test_scores_and_annotations(self):
        results = FilterEngine.with_global_rules([self.prefer_1080, self.prefer_sp, self.exclude_batch]).apply(
            [self.sp_720, self.erai_1080, self.sp_1080, self.batch]
        )

        self.assertEqual([r.item for r in results], [self.sp_1080, self.erai_1080, self.sp_720])
        self.assertEqual(results[0].score, 15)
        self.assertEqual(results[0].matched_rules, ["Prefer 1080p (+10)", "Prefer SubsPlease (+5)"])
        self.assertEqual(results[1].score, 10)
        self.assertEqual(results[2].score, 5)

    def test_higher_priority_sorts_first_when_seeders_equal(self):
        a = ReleaseItem(title="[A] Show - 01 (1080p)", seeders=10)
        b = ReleaseItem(title="[B] Show - 01 (1080p)", seeders=10)
        rules = [
            make_rule(1, FilterType.GROUP, "A", FilterAction.PREFER, priority=3),
            make_rule(2, FilterType.GROUP, "B", FilterAction.PREFER, priority=7),
        ]

        results = FilterEngine(rules).apply([a, b])

        self.assertEqual([r.item for r in results], [b, a])

    def test_seeders_break_score_ties_then_feed_order(self):
        first = ReleaseItem(title="[X] Show - 01 (1080p) v1", seeders=5)
        second = ReleaseItem(title="[X] Show - 01 (1080p) v2", seeders=50)
        third = ReleaseItem(title="[X] Show - 01 (1080p) v3", seeders=5)

        results = FilterEngine([]).apply([first, second, third])

        self.assertEqual([r.item for r in results], [second, first, third])

    def test_prefer_with_zero_priority_still_scores_one(self):
        rule = make_rule(1, FilterType.RESOLUTION, "1080p", FilterAction.PREFER, priority=0, name="Any 1080p")

        results = FilterEngine([rule]).apply([self.sp_1080])

        self.assertEqual(results[0].score, 1)
        self.assertEqual(results[0].matched_rules, ["Any 1080p (+1)"])

    def test_require_that_never_matches_empties_result(self):
        require_hevc = make_rule(1, FilterType.TITLE_INCLUDE, "HEVC", FilterAction.REQUIRE, priority=50)

        results = FilterEngine.with_global_rules([require_hevc, self.prefer_1080]).apply([self.sp_1080, self.sp_720])

        self.assertEqual(results, [])

    def test_require_match_is_annotated_without_score(self):
        require_sp = make_rule(1, FilterType.GROUP, "SubsPlease", FilterAction.REQUIRE, name="Only SubsPlease")

        results = FilterEngine([require_sp]).apply([self.sp_1080, self.erai_1080])

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].score, 0)
        self.assertEqual(results[0].matched_rules, ["Only SubsPlease (required)"])

    def test_disabled_rule_is_skipped(self):
        disabled_exclude = make_rule(3, FilterType.TITLE_EXCLUDE, "batch", FilterAction.EXCLUDE, priority=100, enabled=False)

        results = FilterEngine([disabled_exclude]).apply([self.batch])

        self.assertEqual(len(results), 1)

    def test_override_disables_global_rule_for_one_show_only(self):
        toggle_off = GlobalRuleToggle(id=1, show_id=7, filter_rule_id=self.exclude_batch.id, enabled=False)

        for_show = FilterEngine([self.exclude_batch], [toggle_off]).apply([self.batch])
        for_others = FilterEngine([self.exclude_batch], []).apply([self.batch])

        self.assertEqual([r.item for r in for_show], [self.batch])
        self.assertEqual(for_others, [])

    def test_enabled_toggle_has_no_effect(self):
        toggle_on = GlobalRuleToggle(id=1, show_id=7, filter_rule_id=self.exclude_batch.id, enabled=True)

        self.assertEqual(FilterEngine([self.exclude_batch], [toggle_on]).apply([self.batch]), [])

    def test_custom_show_filters(self):
        prefer_erai = CustomShowFilter(id=1, show_id=7, filter_type=FilterType.GROUP, pattern="Erai-raws",
                                       action=FilterAction.PREFER)
        exclude_720 = CustomShowFilter(id=2, show_id=7, filter_type=FilterType.RESOLUTION, pattern="720p",
                                       action=FilterAction.EXCLUDE)

        results = FilterEngine([self.prefer_1080], [prefer_erai, exclude_720]).apply(
            [self.sp_720, self.sp_1080, self.erai_1080]
        )

        self.assertEqual([r.item for r in results], [self.erai_1080, self.sp_1080])
        self.assertEqual(results[0].score, 10 + CUSTOM_PREFER_POINTS)
        self.assertIn(f"show:Erai-raws (+{CUSTOM_PREFER_POINTS})", results[0].matched_rules)

    def test_custom_require_and_disabled_custom(self):
        require_erai = CustomShowFilter(id=1, show_id=7, filter_type=FilterType.GROUP, pattern="Erai-raws",
                                        action=FilterAction.REQUIRE)
        disabled = CustomShowFilter(id=2, show_id=7, filter_type=FilterType.GROUP, pattern="Erai-raws",
                                    action=FilterAction.EXCLUDE, enabled=False)

        results = FilterEngine([], [require_erai, disabled]).apply([self.sp_1080, self.erai_1080])

        self.assertEqual([r.item for r in results], [self.erai_1080])

    def test_rule_input_order_does_not_matter(self):
        items = [self.sp_720, self.erai_1080, self.sp_1080, self.batch]
        forward = FilterEngine([self.prefer_1080, self.prefer_sp, self.exclude_batch]).apply(items)
        backward = FilterEngine([self.exclude_batch, self.prefer_sp, self.prefer_1080]).apply(items)

        self.assertEqual([(r.item, r.score) for r in forward], [(r.item, r.score) for r in backward])

    def test_apply_filters_helper(self):
        results = apply_filters([self.exclude_batch], [], [self.batch, self.sp_720])
        self.assertEqual([r.item for r in results], [self.sp_720])


class TestPatternMatches(unittest.TestCase):

    def test_group_must_be_bracketed(self):
        bracketed = ReleaseItem(title="[SubsPlease] Show - 01 (1080p)")
        mid_title = ReleaseItem(title="[Other] SubsPlease Show - 01 (1080p)")
        later_bracket = ReleaseItem(title="Show - 01 (1080p) [subsplease]")

        self.assertTrue(pattern_matches(FilterType.GROUP, "SubsPlease", bracketed))
        self.assertFalse(pattern_matches(FilterType.GROUP, "SubsPlease", mid_title))
        self.assertTrue(pattern_matches(FilterType.GROUP, "SubsPlease", later_bracket))

    def test_other_types_are_case_insensitive_substrings(self):
        item = ReleaseItem(title="[Group] Show - 01 (1080p) BATCH")
        self.assertTrue(pattern_matches(FilterType.TITLE_EXCLUDE, "batch", item))
        self.assertTrue(pattern_matches(FilterType.RESOLUTION, "1080P", item))
        self.assertFalse(pattern_matches(FilterType.TITLE_INCLUDE, "720p", item))


if __name__ == '__main__':
    unittest.main()

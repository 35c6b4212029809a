"""Unit tests for crux_metrics.py.

Run with:
    pytest test_crux_metrics.py -v
"""

import unittest

import crux_metrics as cm
from crux_client import CollectionPeriod


class TestRateMetric(unittest.TestCase):

    def test_good_threshold_is_inclusive(self):
        for metric, (good, _) in cm.METRIC_THRESHOLDS.items():
            with self.subTest(metric=metric):
                self.assertEqual(cm.rate_metric(metric, good), cm.GOOD)

    def test_just_above_good_needs_improvement(self):
        for metric, (good, _) in cm.METRIC_THRESHOLDS.items():
            with self.subTest(metric=metric):
                self.assertEqual(cm.rate_metric(metric, good + 0.0001), cm.NEEDS_IMPROVEMENT)

    def test_poor_threshold_is_inclusive(self):
        for metric, (_, poor) in cm.METRIC_THRESHOLDS.items():
            with self.subTest(metric=metric):
                self.assertEqual(cm.rate_metric(metric, poor), cm.NEEDS_IMPROVEMENT)
                self.assertEqual(cm.rate_metric(metric, poor + 0.0001), cm.POOR)

    def test_lcp_boundaries(self):
        self.assertEqual(cm.rate_metric("lcp", 2500), "good")
        self.assertEqual(cm.rate_metric("lcp", 2500.0001), "needs-improvement")
        self.assertEqual(cm.rate_metric("lcp", 4001), "poor")

    def test_zero_is_good(self):
        self.assertEqual(cm.rate_metric("fid", 0), cm.GOOD)

    def test_case_insensitive(self):
        self.assertEqual(cm.rate_metric("LCP", 1000), cm.GOOD)

    def test_unknown_metric(self):
        self.assertEqual(cm.rate_metric("speed_index", 10), cm.UNKNOWN)

    def test_empty_metric(self):
        self.assertEqual(cm.rate_metric("", 10), cm.UNKNOWN)
        self.assertEqual(cm.rate_metric(None, 10), cm.UNKNOWN)

    def test_missing_value(self):
        for metric in cm.METRIC_NAMES:
            with self.subTest(metric=metric):
                self.assertEqual(cm.rate_metric(metric, None), cm.UNKNOWN)
                self.assertEqual(cm.rate_metric(metric, float("nan")), cm.UNKNOWN)

    def test_non_numeric_value(self):
        self.assertEqual(cm.rate_metric("lcp", "fast"), cm.UNKNOWN)


class TestFormatMetric(unittest.TestCase):

    def test_cls_three_decimals(self):
        self.assertEqual(cm.format_metric("cls", 0.1), "0.100")

    def test_time_metric_rounded_with_unit(self):
        self.assertEqual(cm.format_metric("lcp", 2500.4), "2500 ms")

    def test_half_rounds_up(self):
        self.assertEqual(cm.format_metric("ttfb", 799.5), "800 ms")

    def test_missing_value(self):
        self.assertEqual(cm.format_metric("lcp", None), "-")
        self.assertEqual(cm.format_metric("cls", float("nan")), "-")

    def test_unknown_metric_uses_str(self):
        self.assertEqual(cm.format_metric("speed_index", 12.5), "12.5")

    def test_non_numeric_known_metric_uses_str(self):
        self.assertEqual(cm.format_metric("lcp", "n/a"), "n/a")


class TestDescribeMetric(unittest.TestCase):

    def test_known_metric(self):
        self.assertEqual(cm.describe_metric("cls"), "Cumulative Layout Shift - measures visual stability")

    def test_unknown_returned_unchanged(self):
        self.assertEqual(cm.describe_metric("Speed_Index"), "Speed_Index")

    def test_non_string(self):
        self.assertEqual(cm.describe_metric(None), "")


class TestDisplayHelpers(unittest.TestCase):

    def test_metric_label(self):
        self.assertEqual(cm.metric_label("ttfb"), "TTFB")
        self.assertEqual(cm.metric_label(""), "-")

    def test_rating_color(self):
        self.assertEqual(cm.rating_color(cm.GOOD), "#3CBC64")
        self.assertEqual(cm.rating_color(cm.POOR), "#F44336")
        self.assertEqual(cm.rating_color(cm.UNKNOWN), "#999")

    def test_format_collection_period(self):
        period = CollectionPeriod(
            first_date={"year": 2023, "month": 6, "day": 1},
            last_date={"year": 2023, "month": 6, "day": 28},
        )
        self.assertEqual(cm.format_collection_period(period), "2023-06-01 - 2023-06-28")

    def test_format_collection_period_missing(self):
        self.assertEqual(cm.format_collection_period(None), "-")
        self.assertEqual(cm.format_collection_period(CollectionPeriod()), "-")

    def test_format_collection_period_partial(self):
        period = CollectionPeriod(last_date={"year": 2024, "month": 1, "day": 9})
        self.assertEqual(cm.format_collection_period(period), "? - 2024-01-09")


if __name__ == "__main__":
    unittest.main()

"""
Unit tests for SKU set comparisons.
"""

from price_dashboard.diagnostics import diff_keys, sku_diff_report
from price_dashboard.models import KeyDiff
from price_dashboard.parsing import parse_digital_sheet, parse_trade_sheet


class TestDiffKeys:

    def test_basic(self):
        assert diff_keys({"A", "B", "C"}, {"B", "C", "D"}) == KeyDiff(
            only_in_a=["A"], only_in_b=["D"], intersection_count=2
        )

    def test_sorted_and_deduplicated(self):
        d = diff_keys(["z", "a", "a", "m"], [])
        assert d.only_in_a == ["a", "m", "z"]
        assert d.only_in_b == []
        assert d.intersection_count == 0

    def test_identical_sets(self):
        d = diff_keys(["A", "B"], ["B", "A"])
        assert d.only_in_a == [] and d.only_in_b == []
        assert d.intersection_count == 2


class TestSkuDiffReport:

    def test_from_sheets(self, trade_grid, digital_grid):
        report = sku_diff_report(parse_trade_sheet(trade_grid), parse_digital_sheet(digital_grid))
        assert report == {
            "tradeIdCount": 3,
            "digitalIdCount": 3,
            "matchedCount": 2,
            "inDigitalNotTrade": {"count": 1, "skus": ["E"]},
            "inTradeNotDigital": {"count": 1, "skus": ["D"]},
        }

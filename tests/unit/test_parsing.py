"""
Unit tests for the sheet parsers.

Covers column resolution, cell parsing and the keep/drop row policy.
"""

import pytest

from price_dashboard import logger
from price_dashboard.parsing import (
    TRADE_ID_COLUMNS,
    clean_json_text,
    extract_json_object,
    parse_cost,
    parse_description_sheet,
    parse_digital_sheet,
    parse_quantity,
    parse_trade_sheet,
    resolve_columns,
)


# ===================
# CELL PARSING
# ===================

class TestParseCost:

    @pytest.mark.parametrize(
        "cell,expected",
        [
            ("10", 10.0),
            ("£12.00", 12.0),
            ("€1,234.50", 1234.5),
            ("$ 7.25 ", 7.25),
            ("0", 0.0),
            ("-1", -1.0),
            ("12.5abc", 12.5),
            (3, 3.0),
        ],
    )
    def test_reads_numbers(self, cell, expected):
        assert parse_cost(cell) == expected

    @pytest.mark.parametrize("cell", ["", "n/a", "£", None, "abc12", "inf", float("nan")])
    def test_unreadable_is_none(self, cell):
        assert parse_cost(cell) is None


class TestParseQuantity:

    def test_reads_leading_integer(self):
        assert parse_quantity("12") == 12
        assert parse_quantity("7.9") == 7
        assert parse_quantity(" 3 units") == 3

    def test_unreadable_is_none(self):
        assert parse_quantity("") is None
        assert parse_quantity("x") is None
        assert parse_quantity(None) is None


# ===================
# COLUMN RESOLUTION
# ===================

class TestResolveColumns:

    def test_exact_and_contains_matching(self):
        cols = resolve_columns(
            ["Trade Product ID", "PRODUCT NAME (EN)", "Price", "sku", "Stock"],
            TRADE_ID_COLUMNS,
        )
        assert cols.indices == {
            "product_id": 0,
            "name": 1,
            "price": 2,
            "sku": 3,
            "stock": 4,
        }
        assert cols.missing == []

    def test_exact_match_does_not_accept_substring(self):
        cols = resolve_columns(["Product ID", "Product Name", "Price (GBP)", "SKU"], TRADE_ID_COLUMNS)
        assert cols.indices["price"] is None
        assert set(cols.missing) == {"price", "stock"}

    def test_missing_column_is_logged(self):
        resolve_columns(["SKU"], TRADE_ID_COLUMNS)
        assert logger.get_logs(context="parsing", text="missing columns")

    def test_missing_column_reads_empty(self):
        cols = resolve_columns(["SKU"], TRADE_ID_COLUMNS)
        assert cols.cell(["A"], "price") == ""
        assert cols.cell(["A"], "sku") == "A"

    def test_short_rows_and_none_cells_read_empty(self):
        cols = resolve_columns(["SKU", "Price"], [("sku", "sku", "exact"), ("price", "price", "exact")])
        assert cols.cell([], "sku") == ""
        assert cols.cell([None, "3"], "sku") == ""


# ===================
# SHEET PARSERS
# ===================

class TestParseTradeSheet:

    def test_keep_policy(self, trade_grid):
        records = parse_trade_sheet(trade_grid)
        assert [r.key for r in records] == ["A", "B", "D"]

    def test_fields(self, trade_grid):
        a = parse_trade_sheet(trade_grid)[0]
        assert a.cost == 10.0
        assert a.quantity == 5
        assert a.display_name == "Alpha Box"
        assert a.product_id == "P-1"

    def test_unparseable_cost_kept_as_none(self, trade_grid):
        d = parse_trade_sheet(trade_grid)[-1]
        assert d.key == "D"
        assert d.cost is None
        assert d.quantity is None

    def test_zero_quantity_is_kept(self, trade_grid):
        b = parse_trade_sheet(trade_grid)[1]
        assert b.quantity == 0

    def test_header_only_or_empty(self):
        assert parse_trade_sheet([]) == []
        assert parse_trade_sheet([["SKU", "Price"]]) == []

    def test_missing_price_column_degrades_to_none(self):
        grid = [["SKU", "Name"], ["A", "x"], ["B", "y"]]
        records = parse_trade_sheet(grid)
        assert [r.key for r in records] == ["A", "B"]
        assert all(r.cost is None for r in records)

    def test_missing_sku_column_drops_everything(self):
        grid = [["Product ID", "Price"], ["1", "2"]]
        assert parse_trade_sheet(grid) == []

    def test_sentinel_with_currency_symbol_is_dropped(self):
        grid = [["SKU", "Price"], ["A", "£-1.00"], ["B", "-1.5"]]
        assert [r.key for r in parse_trade_sheet(grid)] == ["B"]

    def test_garbage_grid_never_raises(self):
        grid = [[None, 3, "SKU"], [], [None], ["x", None, None, "extra"], [1, 2, 3]]
        records = parse_trade_sheet(grid)
        assert [r.key for r in records] == ["3"]


class TestParseDigitalSheet:

    def test_strips_currency_and_thousands(self, digital_grid):
        records = parse_digital_sheet(digital_grid)
        assert [(r.key, r.cost) for r in records] == [("A", 12.0), ("B", 1234.5), ("E", 9.0)]

    def test_keeps_name_and_description(self, digital_grid):
        a = parse_digital_sheet(digital_grid)[0]
        assert a.display_name == "Alpha"
        assert a.description == "Alpha desc"

    def test_duplicates_are_not_removed_by_parser(self):
        grid = [["sku", "price"], ["A", "1"], ["A", "2"]]
        assert len(parse_digital_sheet(grid)) == 2


class TestParseDescriptionSheet:

    def test_reads_product_uses(self):
        grid = [
            ["_timestamp", "Product ID", "SKU", "Description"],
            ["t", "1", "A", "<ul><li>Gift</li></ul>"],
            ["t", "2", "", "orphan"],
        ]
        records = parse_description_sheet(grid)
        assert len(records) == 1
        assert records[0].key == "A"
        assert records[0].product_uses == "<ul><li>Gift</li></ul>"


# ===================
# LLM JSON CLEANUP
# ===================

class TestJsonCleanup:

    def test_strips_json_fence(self):
        assert clean_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert clean_json_text('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert clean_json_text('  {"a": 1} ') == '{"a": 1}'

    def test_extracts_embedded_object(self):
        assert extract_json_object('Sure! Here you go: {"a": 1} Enjoy.') == {"a": 1}

    def test_none_when_unparseable(self):
        assert extract_json_object("no json here") is None
        assert extract_json_object("{broken") is None
        assert extract_json_object("[1, 2]") is None

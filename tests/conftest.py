"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest

from price_dashboard import logger
from price_dashboard.models import MergedRecord, PrimarySide, SecondarySide, SourceRecord


# ===================
# LOG BUFFER
# ===================

@pytest.fixture(autouse=True)
def clean_log_buffer():
    """Each test starts with an empty log buffer in prod mode."""
    logger.clear_logs()
    logger.set_run_mode("prod")
    yield
    logger.clear_logs()


# ===================
# SHEET GRIDS
# ===================

@pytest.fixture
def trade_grid():
    """Trade-Id tab as returned by gspread get_all_values()."""
    return [
        ["Product ID", "Product Name", "Price", "SKU", "Stock", "Release Date"],
        ["P-1", "Alpha Box", "10", "A", "5", "2024-01-01"],
        ["P-2", "Beta Box", "20.50", "B", "0", ""],
        ["P-3", "Gamma Box", "-1", "C", "3", ""],
        ["P-4", "No Sku", "7", "", "1", ""],
        ["P-5", "Delta Box", "n/a", "D", "x", ""],
    ]


@pytest.fixture
def digital_grid():
    """Digital Id tab as returned by gspread get_all_values()."""
    return [
        ["_timestamp", "image", "name", "price", "sku", "description", "url"],
        ["t", "i", "Alpha", "£12.00", "A", "Alpha desc", "u"],
        ["t", "i", "Beta", "£1,234.50", "B", "Beta desc", "u"],
        ["t", "i", "Echo", "£9", "E", "Echo desc", "u"],
    ]


# ===================
# RECORDS
# ===================

def make_merged(key="A", primary_cost=10.0, secondary_cost=12.0, quantity=5, name="Alpha Box"):
    """Build a MergedRecord without going through the parser."""
    return MergedRecord(
        key=key,
        product_id=f"P-{key}",
        primary=PrimarySide(display_name=name, cost=primary_cost, quantity=quantity),
        secondary=SecondarySide(cost=secondary_cost),
    )


def make_source(key, cost, **kwargs):
    return SourceRecord(key=key, cost=cost, **kwargs)


@pytest.fixture
def merged_record():
    return make_merged()


@pytest.fixture
def merged_factory():
    return make_merged


@pytest.fixture
def source_factory():
    return make_source

# price_dashboard/parsing.py
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .logger import log
from .models import DescriptionRecord, SourceRecord

# Row price of -1 means "intentionally unpriced"; such rows are dropped
SENTINEL_COST = -1.0

_CURRENCY_CHARS = re.compile(r"[£$€,]")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^[+-]?\d+")

# (field, header text, "exact" | "contains")
TRADE_ID_COLUMNS: List[Tuple[str, str, str]] = [
    ("product_id", "product id", "contains"),
    ("name", "product name", "contains"),
    ("price", "price", "exact"),
    ("sku", "sku", "exact"),
    ("stock", "stock", "exact"),
]

DIGITAL_ID_COLUMNS: List[Tuple[str, str, str]] = [
    ("price", "price", "exact"),
    ("sku", "sku", "exact"),
    ("description", "description", "exact"),
    ("name", "name", "exact"),
]

DESCRIPTION_COLUMNS: List[Tuple[str, str, str]] = [
    ("sku", "sku", "exact"),
    ("description", "description", "exact"),
]


# --------------------------------------------------------------
# Column resolution
# --------------------------------------------------------------


@dataclass(frozen=True)
class ColumnMap:
    """
    Header name → column index, resolved once per grid.

    A field whose header was not found maps to None and every row reads ""
    for it.
    """

    indices: Dict[str, Optional[int]]

    @property
    def missing(self) -> List[str]:
        return [name for name, idx in self.indices.items() if idx is None]

    def cell(self, row: Sequence[Any], field: str) -> str:
        idx = self.indices.get(field)
        if idx is None or idx >= len(row):
            return ""
        value = row[idx]
        if value is None:
            return ""
        return str(value).strip()


def resolve_columns(
    header_row: Sequence[Any],
    columns: Sequence[Tuple[str, str, str]],
) -> ColumnMap:
    headers = [str(h or "").strip().lower() for h in header_row]
    indices: Dict[str, Optional[int]] = {}

    for field, wanted, match in columns:
        found: Optional[int] = None
        for i, h in enumerate(headers):
            if (match == "exact" and h == wanted) or (match == "contains" and wanted in h):
                found = i
                break
        indices[field] = found

    cmap = ColumnMap(indices)
    if cmap.missing:
        log(
            f"missing columns {cmap.missing}",
            context="parsing",
            extra={"headers": headers},
            level="warn",
        )
    return cmap


# --------------------------------------------------------------
# Cell parsing
# --------------------------------------------------------------


def parse_cost(cell: Any) -> Optional[float]:
    """'£1,234.50' → 1234.5; anything unreadable → None."""
    if cell is None:
        return None
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        value = float(cell)
        return value if math.isfinite(value) else None

    text = _CURRENCY_CHARS.sub("", str(cell)).strip()
    m = _LEADING_FLOAT.match(text)
    if not m:
        return None
    try:
        value = float(m.group(0))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_quantity(cell: Any) -> Optional[int]:
    if cell is None:
        return None
    if isinstance(cell, int) and not isinstance(cell, bool):
        return cell
    m = _LEADING_INT.match(str(cell).strip())
    return int(m.group(0)) if m else None


def _keep(key: str, cost: Optional[float]) -> bool:
    # Unparseable cost (None) is kept; only empty key or the -1 sentinel drop the row
    return key != "" and cost != SENTINEL_COST


# --------------------------------------------------------------
# Sheet parsers
# --------------------------------------------------------------


def parse_trade_sheet(grid: Sequence[Sequence[Any]]) -> List[SourceRecord]:
    """
    Trade-Id tab: Product ID, Product Name, Price, SKU, Stock, ...
    """
    if len(grid) < 2:
        return []

    cols = resolve_columns(grid[0], TRADE_ID_COLUMNS)
    records: List[SourceRecord] = []
    dropped = 0

    for row in grid[1:]:
        key = cols.cell(row, "sku")
        cost = parse_cost(cols.cell(row, "price"))
        if not _keep(key, cost):
            dropped += 1
            continue
        records.append(
            SourceRecord(
                key=key,
                cost=cost,
                display_name=cols.cell(row, "name"),
                quantity=parse_quantity(cols.cell(row, "stock")),
                product_id=cols.cell(row, "product_id"),
            )
        )

    log(f"trade-id parsed={len(records)} dropped={dropped}", context="parsing")
    return records


def parse_digital_sheet(grid: Sequence[Sequence[Any]]) -> List[SourceRecord]:
    """
    Digital Id tab: _timestamp, image, name, price, sku, description, url
    """
    if len(grid) < 2:
        return []

    cols = resolve_columns(grid[0], DIGITAL_ID_COLUMNS)
    records: List[SourceRecord] = []
    dropped = 0

    for row in grid[1:]:
        key = cols.cell(row, "sku")
        cost = parse_cost(cols.cell(row, "price"))
        if not _keep(key, cost):
            dropped += 1
            continue
        records.append(
            SourceRecord(
                key=key,
                cost=cost,
                display_name=cols.cell(row, "name"),
                description=cols.cell(row, "description"),
            )
        )

    log(f"digital-id parsed={len(records)} dropped={dropped}", context="parsing")
    return records


def parse_description_sheet(grid: Sequence[Sequence[Any]]) -> List[DescriptionRecord]:
    """Description tab (product uses): _timestamp, Product ID, SKU, Description."""
    if len(grid) < 2:
        return []

    cols = resolve_columns(grid[0], DESCRIPTION_COLUMNS)
    out: List[DescriptionRecord] = []
    for row in grid[1:]:
        key = cols.cell(row, "sku")
        if not key:
            continue
        out.append(
            DescriptionRecord(
                key=key,
                name="",
                description="",
                product_uses=cols.cell(row, "description"),
            )
        )
    return out


# --------------------------------------------------------------
# LLM output
# --------------------------------------------------------------


def clean_json_text(raw_text: str) -> str:
    """Strip ```json ... ``` fencing if the model wrapped its answer."""
    clean = raw_text.strip()
    if clean.startswith("```"):
        parts = clean.split("```")
        if len(parts) >= 2:
            clean = parts[1].strip()
            if clean.lower().startswith("json"):
                clean = clean[4:].strip()
    return clean


def extract_json_object(raw_text: str) -> Optional[Dict[str, Any]]:
    """
    Parse the cleaned text as a JSON object, falling back to the outermost
    {...} span. Returns None when nothing parses.
    """
    clean = clean_json_text(raw_text)
    try:
        data = json.loads(clean)
    except json.JSONDecodeError:
        m = re.search(r"\{[\s\S]*\}", clean)
        if not m:
            return None
        try:
            data = json.loads(m.group(0))
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None

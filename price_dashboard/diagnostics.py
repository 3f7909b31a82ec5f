# price_dashboard/diagnostics.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

from .models import KeyDiff, SourceRecord


def diff_keys(keys_a: Iterable[str], keys_b: Iterable[str]) -> KeyDiff:
    a, b = set(keys_a), set(keys_b)
    return KeyDiff(
        only_in_a=sorted(a - b),
        only_in_b=sorted(b - a),
        intersection_count=len(a & b),
    )


def sku_diff_report(
    trade_id: Sequence[SourceRecord],
    digital_id: Sequence[SourceRecord],
) -> Dict[str, Any]:
    """SKU overlap between the two cost sheets, for eyeballing join misses."""
    trade_keys = {r.key for r in trade_id}
    digital_keys = {r.key for r in digital_id}
    d = diff_keys(trade_keys, digital_keys)
    return {
        "tradeIdCount": len(trade_keys),
        "digitalIdCount": len(digital_keys),
        "matchedCount": d.intersection_count,
        "inDigitalNotTrade": {"count": len(d.only_in_b), "skus": d.only_in_b},
        "inTradeNotDigital": {"count": len(d.only_in_a), "skus": d.only_in_a},
    }

# price_dashboard/reconcile.py
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, TypeVar

from .logger import log
from .models import (
    DescriptionRecord,
    MergedRecord,
    PrimarySide,
    SecondarySide,
    SourceRecord,
)

R = TypeVar("R", SourceRecord, DescriptionRecord)


def dedupe_first(records: Iterable[R]) -> List[R]:
    """Keep the first record per key, in input order."""
    seen = set()
    out: List[R] = []
    for rec in records:
        if rec.key in seen:
            continue
        seen.add(rec.key)
        out.append(rec)
    return out


def reconcile(
    primary: Sequence[SourceRecord],
    secondary: Sequence[SourceRecord],
) -> List[MergedRecord]:
    """
    Join Trade-Id (primary) with Digital Id (secondary) by SKU.

    Both sides are deduplicated first-occurrence-wins. A primary record is
    emitted only when it and its matching secondary record both carry a
    cost; output keeps primary order.
    """
    secondary_by_key: Dict[str, SourceRecord] = {r.key: r for r in dedupe_first(secondary)}

    merged: List[MergedRecord] = []
    for rec in dedupe_first(primary):
        match = secondary_by_key.get(rec.key)
        if rec.cost is None or match is None or match.cost is None:
            continue
        merged.append(
            MergedRecord(
                key=rec.key,
                product_id=rec.product_id,
                primary=PrimarySide(
                    display_name=rec.display_name,
                    cost=rec.cost,
                    quantity=rec.quantity,
                ),
                secondary=SecondarySide(cost=match.cost),
            )
        )

    log(
        f"reconciled primary={len(primary)} secondary={len(secondary)} merged={len(merged)}",
        context="reconcile",
    )
    return merged


def combine_descriptions(
    digital: Sequence[SourceRecord],
    uses: Sequence[DescriptionRecord],
) -> List[DescriptionRecord]:
    """
    Digital Id rows (name + description) joined with the first product-uses
    entry per SKU from the Description tab. Digital Id rows are not deduped.
    """
    uses_by_key = {u.key: u.product_uses for u in dedupe_first(uses)}
    return [
        DescriptionRecord(
            key=rec.key,
            name=rec.display_name,
            description=rec.description,
            product_uses=uses_by_key.get(rec.key, ""),
        )
        for rec in digital
    ]

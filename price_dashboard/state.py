# price_dashboard/state.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .models import DerivedPrice, MergedRecord, PricingRule
from .pricing import derive, parse_rule, rule_label

STOCK_SYSTEMS = ("zoho", "shopify")


@dataclass
class PricingState:
    """
    User choices that outlive a sheet refresh: per-SKU rule selections,
    manual selling-price overrides, the rounding increment and manual stock
    overrides. Persisted through store.JsonStore under "pricing_state".

    An override is "set" when its key is present, so 0.0 is a real override.
    """

    selections: Dict[str, PricingRule] = field(default_factory=dict)
    overrides: Dict[str, float] = field(default_factory=dict)
    rounding: float = 0.0
    stock_overrides: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {system: {} for system in STOCK_SYSTEMS}
    )

    # -------------------------
    # Selling price
    # -------------------------

    def select_rule(self, key: str, rule: Optional[PricingRule]) -> None:
        if rule is None:
            self.selections.pop(key, None)
        else:
            self.selections[key] = rule
        self.overrides.pop(key, None)

    def fill_rule(self, keys: Iterable[str], rule: Optional[PricingRule]) -> None:
        for key in keys:
            self.select_rule(key, rule)

    def set_override(self, key: str, value: float) -> None:
        value = float(value)
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"override for {key} must be a non-negative number, got {value!r}")
        self.overrides[key] = value

    def clear_override(self, key: str) -> None:
        self.overrides.pop(key, None)

    def has_override(self, key: str) -> bool:
        return key in self.overrides

    def set_rounding(self, increment: Optional[float]) -> None:
        # A changed rounding invalidates every hand-typed price
        new = float(increment or 0)
        if new != self.rounding:
            self.overrides.clear()
        self.rounding = new

    def price_for(self, record: MergedRecord, fx_rate: Optional[float]) -> DerivedPrice:
        if record.key in self.overrides:
            return DerivedPrice(record.key, self.overrides[record.key])
        value = derive(record, self.selections.get(record.key), fx_rate, self.rounding)
        return DerivedPrice(record.key, value)

    # -------------------------
    # Stock
    # -------------------------

    def set_stock_override(self, system: str, key: str, quantity: int) -> None:
        if system not in STOCK_SYSTEMS:
            raise ValueError(f"unknown stock system {system!r}")
        quantity = int(quantity)
        if quantity < 0:
            raise ValueError(f"stock override for {key} must be >= 0")
        self.stock_overrides[system][key] = quantity

    def clear_stock_override(self, system: str, key: str) -> None:
        self.stock_overrides.get(system, {}).pop(key, None)

    def stock_for(self, system: str, key: str, fetched: Dict[str, int]) -> Optional[int]:
        manual = self.stock_overrides.get(system, {})
        if key in manual:
            return manual[key]
        return fetched.get(key)

    # -------------------------
    # Persistence
    # -------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selections": {k: rule_label(r) for k, r in self.selections.items()},
            "overrides": dict(self.overrides),
            "rounding": self.rounding,
            "stock_overrides": {s: dict(v) for s, v in self.stock_overrides.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PricingState":
        state = cls()
        if not data:
            return state
        for key, label in (data.get("selections") or {}).items():
            rule = parse_rule(label)
            if rule is not None:
                state.selections[key] = rule
        for key, value in (data.get("overrides") or {}).items():
            state.overrides[key] = float(value)
        state.rounding = float(data.get("rounding") or 0)
        for system, values in (data.get("stock_overrides") or {}).items():
            if system in STOCK_SYSTEMS:
                state.stock_overrides[system] = {k: int(v) for k, v in values.items()}
        return state

# price_dashboard/pricing.py
"""
Pure pricing functions.

Costs on both sheets are GBP. The exchange rate is EUR/GBP, i.e.
GBP amount / rate = EUR amount. Selling prices are EUR.

Nothing here knows about manual overrides; see state.PricingState.
"""
from __future__ import annotations

import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .models import MarkupPercent, MergedRecord, PricingRule, UseSecondaryConverted

SECONDARY_SELECTION = "digitalId"
_MARKUP_SELECTION = re.compile(r"^\+(\d+(?:\.\d+)?)$")


# -------------------------
# Rules
# -------------------------


def parse_rule(selection: Optional[str]) -> Optional[PricingRule]:
    """'digitalId' → UseSecondaryConverted, '+20' → MarkupPercent(20), else None."""
    if not selection:
        return None
    selection = selection.strip()
    if selection == SECONDARY_SELECTION:
        return UseSecondaryConverted()
    m = _MARKUP_SELECTION.match(selection)
    if m:
        return MarkupPercent(float(m.group(1)))
    return None


def rule_label(rule: Optional[PricingRule]) -> str:
    if isinstance(rule, UseSecondaryConverted):
        return SECONDARY_SELECTION
    if isinstance(rule, MarkupPercent):
        pct = rule.percent
        return f"+{int(pct)}" if float(pct).is_integer() else f"+{pct}"
    return ""


# -------------------------
# Arithmetic
# -------------------------


def convert(amount: Optional[float], fx_rate: Optional[float]) -> Optional[float]:
    if amount is None or fx_rate is None:
        return None
    if fx_rate == 0 or not math.isfinite(fx_rate):
        return None
    return amount / fx_rate


def round_to_increment(value: Optional[float], increment: Optional[float]) -> Optional[float]:
    """
    Round to the nearest multiple of `increment`, halves away from zero.
    An increment of 0/None leaves the value untouched.
    """
    if value is None:
        return None
    if not increment or increment <= 0:
        return value
    step = Decimal(str(increment))
    units = (Decimal(str(value)) / step).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return float(units * step)


def derive(
    record: MergedRecord,
    rule: Optional[PricingRule],
    fx_rate: Optional[float],
    rounding_increment: Optional[float] = 0,
) -> Optional[float]:
    if rule is None:
        return None

    base: Optional[float] = record.secondary.cost
    if rule.requires_conversion:
        base = convert(base, fx_rate)
    if base is None:
        return None

    if isinstance(rule, MarkupPercent):
        price = base * (1 + rule.percent / 100)
    else:
        price = base

    return round_to_increment(price, rounding_increment)


# -------------------------
# Diagnostics (independent of the selected rule)
# -------------------------


def profit(
    record: MergedRecord,
    selling_price: Optional[float],
    fx_rate: Optional[float],
) -> Optional[float]:
    if selling_price is None:
        return None
    cost_eur = convert(record.primary.cost, fx_rate)
    if cost_eur is None:
        return None
    return selling_price - cost_eur


def cost_diff(record: MergedRecord) -> Optional[float]:
    if record.primary.cost is None or record.secondary.cost is None:
        return None
    return record.secondary.cost - record.primary.cost


def markup_percent(record: MergedRecord) -> Optional[float]:
    diff = cost_diff(record)
    if diff is None or record.primary.cost == 0:
        return None
    return diff / record.primary.cost * 100


# -------------------------
# Display
# -------------------------

ABSENT = "—"


def format_price(price: Optional[float], symbol: str = "£") -> str:
    if price is None or math.isnan(price):
        return ABSENT
    return f"{symbol}{price:.2f}"


def format_diff(diff: Optional[float], symbol: str = "£") -> str:
    if diff is None or math.isnan(diff):
        return ABSENT
    sign = "+" if diff >= 0 else "-"
    return f"{sign}{symbol}{abs(diff):.2f}"


def format_markup(markup: Optional[float]) -> str:
    if markup is None or math.isnan(markup):
        return ABSENT
    sign = "+" if markup >= 0 else ""
    return f"{sign}{markup:.1f}%"

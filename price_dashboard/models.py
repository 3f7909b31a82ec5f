# price_dashboard/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


# -------------------------
# Sheet records
# -------------------------


@dataclass(frozen=True)
class SourceRecord:
    """One parsed row from either cost sheet. `key` is the SKU."""

    key: str
    cost: Optional[float]
    display_name: str = ""
    quantity: Optional[int] = None
    product_id: str = ""
    description: str = ""


@dataclass(frozen=True)
class PrimarySide:
    display_name: str
    cost: float
    quantity: Optional[int]


@dataclass(frozen=True)
class SecondarySide:
    cost: float


@dataclass(frozen=True)
class MergedRecord:
    """Trade-Id row joined with its Digital Id price. Both costs are set."""

    key: str
    primary: PrimarySide
    secondary: SecondarySide
    product_id: str = ""


@dataclass(frozen=True)
class DescriptionRecord:
    key: str
    name: str
    description: str
    product_uses: str


# -------------------------
# Pricing rules
# -------------------------


@dataclass(frozen=True)
class UseSecondaryConverted:
    """Sell at the Digital Id price converted to EUR."""

    requires_conversion = True


@dataclass(frozen=True)
class MarkupPercent:
    """Converted Digital Id price plus `percent` %."""

    percent: float
    requires_conversion = True


PricingRule = Union[UseSecondaryConverted, MarkupPercent]


@dataclass(frozen=True)
class DerivedPrice:
    key: str
    value: Optional[float]


@dataclass(frozen=True)
class ExchangeRate:
    rate: float
    date: str
    pair: str = "EUR/GBP"


# -------------------------
# Batches
# -------------------------


@dataclass(frozen=True)
class BatchItem:
    key: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchResult:
    key: str
    success: bool
    error: Optional[str] = None
    detail: Any = None


# -------------------------
# LLM rewrite output
# -------------------------


@dataclass(frozen=True)
class RewrittenContent:
    rewritten_description: str = ""
    rewritten_product_uses: str = ""
    html_title: str = ""
    meta_description: str = ""

    def has_content(self) -> bool:
        return bool(self.rewritten_description or self.html_title or self.meta_description)

    def to_dict(self) -> Dict[str, str]:
        return {
            "rewrittenDescription": self.rewritten_description,
            "rewrittenProductUses": self.rewritten_product_uses,
            "htmlTitle": self.html_title,
            "metaDescription": self.meta_description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RewrittenContent":
        return cls(
            rewritten_description=str(data.get("rewrittenDescription") or ""),
            rewritten_product_uses=str(data.get("rewrittenProductUses") or ""),
            html_title=str(data.get("htmlTitle") or ""),
            meta_description=str(data.get("metaDescription") or ""),
        )


@dataclass(frozen=True)
class KeyDiff:
    only_in_a: List[str]
    only_in_b: List[str]
    intersection_count: int

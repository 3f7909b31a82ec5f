# price_dashboard/workbook.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Sequence

import pandas as pd
import openpyxl

from .logger import log
from .models import DescriptionRecord, MergedRecord
from .pricing import (
    ABSENT,
    convert,
    cost_diff,
    format_diff,
    format_markup,
    format_price,
    markup_percent,
    profit,
    rule_label,
)
from .state import PricingState

PRICING_COLUMNS = [
    "SKU",
    "Product ID",
    "Name",
    "Trade-Id (£)",
    "Digital Id (£)",
    "Diff (£)",
    "Markup %",
    "Cost (€)",
    "Identity Rule",
    "Identity Price (€)",
    "Override",
    "Profit (€)",
    "Trade Stock",
    "Zoho Stock",
    "Shopify Stock",
    "Shopify Status",
    "Last Zoho Update",
]


# --------------------------------------------------------------
# Dashboard tables
# --------------------------------------------------------------

def pricing_table(
    records: Sequence[MergedRecord],
    state: PricingState,
    fx_rate: Optional[float],
    zoho_stock: Optional[Dict[str, int]] = None,
    shopify_stock: Optional[Dict[str, int]] = None,
    shopify_status: Optional[Dict[str, str]] = None,
    zoho_timestamps: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    One row per reconciled SKU. Missing numbers are NaN so the frame stays
    numeric; the CLI renders them as '—'.
    """
    zoho_stock = zoho_stock or {}
    shopify_stock = shopify_stock or {}
    shopify_status = shopify_status or {}
    zoho_timestamps = zoho_timestamps or {}

    rows = []
    for rec in records:
        price = state.price_for(rec, fx_rate).value
        rows.append(
            {
                "SKU": rec.key,
                "Product ID": rec.product_id,
                "Name": rec.primary.display_name,
                "Trade-Id (£)": rec.primary.cost,
                "Digital Id (£)": rec.secondary.cost,
                "Diff (£)": cost_diff(rec),
                "Markup %": markup_percent(rec),
                "Cost (€)": convert(rec.primary.cost, fx_rate),
                "Identity Rule": rule_label(state.selections.get(rec.key)),
                "Identity Price (€)": price,
                "Override": state.has_override(rec.key),
                "Profit (€)": profit(rec, price, fx_rate),
                "Trade Stock": rec.primary.quantity,
                "Zoho Stock": state.stock_for("zoho", rec.key, zoho_stock),
                "Shopify Stock": state.stock_for("shopify", rec.key, shopify_stock),
                "Shopify Status": shopify_status.get(rec.key, ""),
                "Last Zoho Update": zoho_timestamps.get(rec.key, ""),
            }
        )

    df = pd.DataFrame(rows, columns=PRICING_COLUMNS)
    for col in ("Trade-Id (£)", "Digital Id (£)", "Diff (£)", "Markup %",
                "Cost (€)", "Identity Price (€)", "Profit (€)"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


_DISPLAY_FORMATS = {
    "Trade-Id (£)": format_price,
    "Digital Id (£)": format_price,
    "Diff (£)": format_diff,
    "Markup %": format_markup,
    "Cost (€)": lambda v: format_price(v, "€"),
    "Identity Price (€)": lambda v: format_price(v, "€"),
    "Profit (€)": lambda v: format_diff(v, "€"),
}


def display_table(df: pd.DataFrame) -> pd.DataFrame:
    """Copy of a pricing table with money columns rendered for the terminal."""
    out = df.copy()
    for col, fmt in _DISPLAY_FORMATS.items():
        if col in out.columns:
            out[col] = [fmt(None if pd.isna(v) else float(v)) for v in out[col]]
    out["Override"] = ["✎" if v else "" for v in out["Override"]]
    return out.fillna(ABSENT)


def descriptions_table(
    products: Sequence[DescriptionRecord],
    rewritten: Optional[Dict[str, Dict[str, str]]] = None,
) -> pd.DataFrame:
    rewritten = rewritten or {}
    rows = []
    for p in products:
        r = rewritten.get(p.key) or {}
        rows.append(
            {
                "SKU": p.key,
                "Name": p.name,
                "Description": p.description,
                "Product Uses": p.product_uses,
                "Rewritten Description": r.get("rewrittenDescription", ""),
                "Rewritten Uses": r.get("rewrittenProductUses", ""),
                "HTML Title": r.get("htmlTitle", ""),
                "Meta Description": r.get("metaDescription", ""),
                "Updated": r.get("updated_at", ""),
                "Synced": r.get("synced_at", ""),
            }
        )
    return pd.DataFrame(rows)


# --------------------------------------------------------------
# XLSX export
# --------------------------------------------------------------

def _cell_value(v):
    if pd.isna(v):
        return None
    # numpy scalars → plain Python
    return v.item() if hasattr(v, "item") else v


def save_workbook(
    workbook_path: Path,
    sheets: Dict[str, pd.DataFrame],
) -> Path:
    """
    Writes a fresh XLSX file with one sheet per DataFrame.
    """
    workbook_path = Path(workbook_path)
    workbook_path.parent.mkdir(parents=True, exist_ok=True)
    log(f"Saving workbook → {workbook_path}", context="workbook")

    wb = openpyxl.Workbook()
    wb.remove(wb.active)

    for name, df in sheets.items():
        ws = wb.create_sheet(title=name[:31])

        # Write header
        ws.append(list(df.columns))

        # Write rows; NaN cells stay empty
        for row in df.itertuples(index=False, name=None):
            ws.append([_cell_value(v) for v in row])

    wb.save(workbook_path)
    log("Workbook saved.", context="workbook")
    return workbook_path

# price_dashboard/__init__.py
"""
Price Dashboard: product price reconciliation across sheets, Zoho and Shopify.

Fetch Trade-Id + Digital Id sheets → reconcile by SKU → derive EUR selling
prices (rule + rounding, manual overrides first) → push to Zoho Inventory /
Shopify → rewrite descriptions with OpenAI and sync them to Shopify.
"""

__all__ = [
    "config",
    "logger",
    "models",
    "errors",
    "parsing",
    "reconcile",
    "pricing",
    "state",
    "store",
    "batch",
    "diagnostics",
    "gsheet",
    "exchange",
    "zoho",
    "shopify",
    "rewriter",
    "workbook",
    "orchestrator",
]

# price_dashboard/errors.py
from __future__ import annotations


class PriceDashboardError(Exception):
    """Base class for everything this package raises on purpose."""


class ExternalServiceError(PriceDashboardError):
    """
    A remote call (Zoho, Shopify, ECB, Google) failed.

    Raised for non-2xx responses, Zoho payloads with code != 0 and
    GraphQL `errors` / `userErrors`.
    """


class ItemNotFoundError(ExternalServiceError):
    """Remote lookup by SKU returned nothing."""


class BatchAbortedError(PriceDashboardError):
    """
    Systemic failure before any batch item was attempted
    (token exchange failed, no Shopify connection, network down).
    """


class RewriteError(PriceDashboardError):
    """LLM output was empty or could not be parsed as JSON."""

# price_dashboard/shopify.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from . import config
from .batch import propagate
from .errors import ExternalServiceError, ItemNotFoundError
from .logger import log
from .models import BatchItem, BatchResult, RewrittenContent

VALID_STATUSES = ("ACTIVE", "DRAFT", "ARCHIVED")

PRODUCT_USES_HEADING = '<br><h2 class="card__title heading h3 h2">Product Uses</h2><br>'


# --------------------------------------------------------------
# GraphQL plumbing
# --------------------------------------------------------------


def graphql(
    store: str,
    access_token: str,
    query: str,
    variables: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """POST one Admin GraphQL request and return its `data` block."""
    url = f"https://{store}/admin/api/{config.SHOPIFY_API_VERSION}/graphql.json"
    body: Dict[str, Any] = {"query": query}
    if variables is not None:
        body["variables"] = variables

    try:
        resp = requests.post(
            url,
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": access_token,
            },
            json=body,
            timeout=config.HTTP_TIMEOUT,
        )
    except requests.RequestException as e:
        raise ExternalServiceError(f"Shopify request failed: {e}") from e

    if not resp.ok:
        raise ExternalServiceError(f"Shopify request failed: HTTP {resp.status_code} {resp.text[:200]}")

    try:
        payload = resp.json()
    except ValueError as e:
        raise ExternalServiceError(f"Shopify returned non-JSON: HTTP {resp.status_code} {resp.text[:200]}") from e
    if not isinstance(payload, dict):
        raise ExternalServiceError("Shopify returned an unexpected response")
    if payload.get("errors"):
        raise ExternalServiceError(f"GraphQL error: {json.dumps(payload['errors'])}")
    return payload.get("data") or {}


def _raise_user_errors(block: Optional[Dict[str, Any]], label: str) -> None:
    errors = (block or {}).get("userErrors") or []
    if errors:
        raise ExternalServiceError(f"{label}: {', '.join(e.get('message', '') for e in errors)}")


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


# --------------------------------------------------------------
# Reads
# --------------------------------------------------------------

STOCK_QUERY = """
query {
  products(first: 250) {
    edges {
      node {
        id
        status
        variants(first: 10) {
          edges { node { sku inventoryQuantity } }
        }
      }
    }
  }
}
"""


def fetch_stock(store: str, access_token: str) -> Tuple[Dict[str, int], Dict[str, str], Dict[str, str]]:
    """
    Returns (stock, status, product_ids), each keyed by variant SKU.
    """
    data = graphql(store, access_token, STOCK_QUERY)

    stock: Dict[str, int] = {}
    status: Dict[str, str] = {}
    product_ids: Dict[str, str] = {}

    for edge in (data.get("products") or {}).get("edges") or []:
        node = edge.get("node") or {}
        for v_edge in (node.get("variants") or {}).get("edges") or []:
            variant = v_edge.get("node") or {}
            sku = variant.get("sku")
            if not sku:
                continue
            if variant.get("inventoryQuantity") is not None:
                stock[sku] = variant["inventoryQuantity"]
            if node.get("status"):
                status[sku] = node["status"]
            if node.get("id"):
                product_ids[sku] = node["id"]

    log(f"shopify stock skus={len(stock)}", context="shopify")
    return stock, status, product_ids


def find_product_by_sku(store: str, access_token: str, sku: str) -> Dict[str, Any]:
    query = f"""
    query {{
      products(first: 1, query: "sku:{_escape(sku)}") {{
        edges {{ node {{ id title descriptionHtml seo {{ title description }} }} }}
      }}
    }}
    """
    data = graphql(store, access_token, query)
    edges = (data.get("products") or {}).get("edges") or []
    if not edges:
        raise ItemNotFoundError(f"Product not found with SKU: {sku}")
    return edges[0]["node"]


# --------------------------------------------------------------
# Writes
# --------------------------------------------------------------

PRODUCT_UPDATE = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id title status descriptionHtml seo { title description } }
    userErrors { field message }
  }
}
"""

SET_QUANTITY = """
mutation inventorySetOnHandQuantities($input: InventorySetOnHandQuantitiesInput!) {
  inventorySetOnHandQuantities(input: $input) {
    inventoryAdjustmentGroup { createdAt reason }
    userErrors { field message }
  }
}
"""


def compose_description_html(content: RewrittenContent) -> str:
    html = content.rewritten_description or ""
    if content.rewritten_product_uses:
        html += PRODUCT_USES_HEADING + content.rewritten_product_uses
    return html


def build_product_input(
    product_id: str,
    description_html: Optional[str],
    seo_title: Optional[str],
    seo_description: Optional[str],
) -> Dict[str, Any]:
    """ProductInput with empty fields left out entirely."""
    update: Dict[str, Any] = {"id": product_id}
    if description_html:
        update["descriptionHtml"] = description_html

    seo = {}
    if seo_title:
        seo["title"] = seo_title
    if seo_description:
        seo["description"] = seo_description
    if seo:
        update["seo"] = seo

    # Some themes read <meta name="description"> from this metafield
    if seo_description:
        update["metafields"] = [
            {
                "namespace": "global",
                "key": "description_tag",
                "value": seo_description,
                "type": "single_line_text_field",
            }
        ]
    return update


def sync_description(
    store: str,
    access_token: str,
    sku: str,
    description_html: Optional[str],
    seo_title: Optional[str],
    seo_description: Optional[str],
) -> Dict[str, Any]:
    product = find_product_by_sku(store, access_token, sku)
    update = build_product_input(product["id"], description_html, seo_title, seo_description)

    data = graphql(store, access_token, PRODUCT_UPDATE, {"input": update})
    block = data.get("productUpdate")
    _raise_user_errors(block, "Update error")

    log(f"synced description sku={sku} product={product['id']}", context="shopify", level="success")
    return {
        "product_id": product["id"],
        "product_title": product.get("title"),
        "sent_seo": update.get("seo"),
        "received_seo": ((block or {}).get("product") or {}).get("seo"),
    }


def update_stock(store: str, access_token: str, sku: str, quantity: int) -> Dict[str, Any]:
    """Set on-hand quantity for the variant with this SKU at its first location."""
    query = f"""
    query {{
      productVariants(first: 1, query: "sku:{_escape(sku)}") {{
        edges {{ node {{
          id sku
          inventoryItem {{
            id
            inventoryLevels(first: 1) {{ edges {{ node {{ id location {{ id }} }} }} }}
          }}
        }} }}
      }}
    }}
    """
    data = graphql(store, access_token, query)
    edges = (data.get("productVariants") or {}).get("edges") or []
    if not edges:
        raise ItemNotFoundError(f"Variant not found with SKU: {sku}")

    inventory_item = edges[0]["node"].get("inventoryItem") or {}
    levels = (inventory_item.get("inventoryLevels") or {}).get("edges") or []
    if not inventory_item.get("id") or not levels:
        raise ExternalServiceError(f"No inventory tracking for SKU: {sku}")

    location_id = levels[0]["node"]["location"]["id"]
    data = graphql(
        store,
        access_token,
        SET_QUANTITY,
        {
            "input": {
                "reason": "correction",
                "setQuantities": [
                    {
                        "inventoryItemId": inventory_item["id"],
                        "locationId": location_id,
                        "quantity": int(quantity),
                    }
                ],
            }
        },
    )
    _raise_user_errors(data.get("inventorySetOnHandQuantities"), "Inventory update error")

    return {
        "sku": sku,
        "quantity": int(quantity),
        "inventory_item_id": inventory_item["id"],
        "location_id": location_id,
    }


def update_status(store: str, access_token: str, product_id: str, status: str) -> str:
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")

    data = graphql(
        store,
        access_token,
        PRODUCT_UPDATE,
        {"input": {"id": product_id, "status": status}},
    )
    block = data.get("productUpdate")
    _raise_user_errors(block, "Status update error")
    return ((block or {}).get("product") or {}).get("status") or status


# --------------------------------------------------------------
# Batches
# --------------------------------------------------------------


def _require_token(access_token: Optional[str]) -> str:
    if not access_token:
        raise ExternalServiceError("Not connected to Shopify")
    return access_token


def friendly_error(message: str) -> str:
    if "not found" in message.lower() or "404" in message:
        return "SKU not found in Shopify"
    if "401" in message or "Unauthorized" in message:
        return "Not authorized - reconnect Shopify"
    return message


def match_stock(
    items: Sequence[BatchItem],
    store: str,
    access_token: Optional[str],
) -> List[BatchResult]:
    """Write each payload's `quantity` to the Shopify variant with that SKU."""
    return propagate(
        items,
        lambda item, token: update_stock(store, token, item.key, item.payload["quantity"]),
        acquire_session=lambda: _require_token(access_token),
        context="shopify",
    )


def sync_descriptions(
    items: Sequence[BatchItem],
    store: str,
    access_token: Optional[str],
) -> List[BatchResult]:
    """Each payload holds a RewrittenContent under `content`."""

    def _apply(item: BatchItem, token: str) -> Dict[str, Any]:
        content: RewrittenContent = item.payload["content"]
        return sync_description(
            store,
            token,
            item.key,
            compose_description_html(content) or None,
            content.html_title or None,
            content.meta_description or None,
        )

    results = propagate(
        items,
        _apply,
        acquire_session=lambda: _require_token(access_token),
        context="shopify",
    )
    return [
        r if r.success else BatchResult(r.key, False, friendly_error(r.error or ""), r.detail)
        for r in results
    ]

# price_dashboard/zoho.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import requests

from . import config
from .batch import propagate
from .errors import ExternalServiceError, ItemNotFoundError
from .logger import log
from .models import BatchItem, BatchResult


def _json_or_raise(resp: requests.Response, what: str) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as e:
        raise ExternalServiceError(f"{what}: HTTP {resp.status_code} {resp.text[:200]}") from e
    return data


def get_access_token(secrets: Dict[str, Any]) -> str:
    """Exchange the long-lived refresh token for a short-lived access token."""
    try:
        resp = requests.post(
            config.ZOHO_ACCOUNTS_URL,
            data={
                "grant_type": "refresh_token",
                "client_id": secrets["ZOHO_CLIENT_ID"],
                "client_secret": secrets["ZOHO_CLIENT_SECRET"],
                "refresh_token": secrets["ZOHO_REFRESH_TOKEN"],
            },
            timeout=config.HTTP_TIMEOUT,
        )
    except requests.RequestException as e:
        raise ExternalServiceError(f"Zoho token request failed: {e}") from e

    data = _json_or_raise(resp, "Zoho token request failed")
    if data.get("error"):
        raise ExternalServiceError(str(data["error"]))
    if not data.get("access_token"):
        raise ExternalServiceError("Zoho token response had no access_token")
    return data["access_token"]


def _headers(access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Zoho-oauthtoken {access_token}"}


def search_item_by_sku(access_token: str, org_id: str, sku: str) -> Optional[Dict[str, Any]]:
    resp = requests.get(
        f"{config.ZOHO_INVENTORY_URL}/items",
        params={"organization_id": org_id, "sku": sku},
        headers=_headers(access_token),
        timeout=config.HTTP_TIMEOUT,
    )
    data = _json_or_raise(resp, "Failed to search item")
    if data.get("code") != 0:
        raise ExternalServiceError(data.get("message") or "Failed to search item")
    items = data.get("items") or []
    return items[0] if items else None


def update_item_prices(
    access_token: str,
    org_id: str,
    item_id: str,
    cost_price: float,
    selling_price: float,
) -> Dict[str, Any]:
    """purchase_rate = cost, rate = selling price."""
    resp = requests.put(
        f"{config.ZOHO_INVENTORY_URL}/items/{item_id}",
        params={"organization_id": org_id},
        headers={**_headers(access_token), "Content-Type": "application/json"},
        json={"purchase_rate": cost_price, "rate": selling_price},
        timeout=config.HTTP_TIMEOUT,
    )
    data = _json_or_raise(resp, "Failed to update item")
    if data.get("code") != 0:
        raise ExternalServiceError(data.get("message") or "Failed to update item")
    return data.get("item") or {}


def fetch_stock(access_token: str, org_id: str) -> Dict[str, int]:
    """SKU → stock_on_hand for the first 200 items."""
    resp = requests.get(
        f"{config.ZOHO_INVENTORY_URL}/items",
        params={"organization_id": org_id, "per_page": 200},
        headers=_headers(access_token),
        timeout=config.HTTP_TIMEOUT,
    )
    data = _json_or_raise(resp, "Failed to fetch items")
    if data.get("code") != 0:
        raise ExternalServiceError(data.get("message") or "Failed to fetch items")

    stock: Dict[str, int] = {}
    for item in data.get("items") or []:
        if item.get("sku") and item.get("stock_on_hand") is not None:
            stock[item["sku"]] = item["stock_on_hand"]
    return stock


def push_prices(items: Sequence[BatchItem], secrets: Dict[str, Any]) -> List[BatchResult]:
    """
    Batch price update. Each item payload carries `cost_price` and
    `selling_price`; one token is fetched for the whole batch.
    """
    org_id = secrets["ZOHO_ORG_ID"]

    def _apply(item: BatchItem, token: str) -> Dict[str, Any]:
        found = search_item_by_sku(token, org_id, item.key)
        if not found:
            raise ItemNotFoundError("Item not found")
        update_item_prices(
            token,
            org_id,
            found["item_id"],
            item.payload["cost_price"],
            item.payload["selling_price"],
        )
        return {"item_id": found["item_id"], "item_name": found.get("name")}

    results = propagate(
        items,
        _apply,
        acquire_session=lambda: get_access_token(secrets),
        context="zoho",
    )
    # Failures are already logged by propagate
    for item, result in zip(items, results):
        if result.success:
            log(
                f"price push sku={item.key}",
                context="zoho",
                extra={**item.payload, **result.detail},
                level="success",
            )
    return results

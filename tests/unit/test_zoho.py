"""
Unit tests for the Zoho Inventory client and price push batch.

HTTP is patched at requests.get/post/put; no network.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from price_dashboard import logger, zoho
from price_dashboard.errors import BatchAbortedError, ExternalServiceError
from price_dashboard.models import BatchItem

SECRETS = {
    "ZOHO_CLIENT_ID": "cid",
    "ZOHO_CLIENT_SECRET": "secret",
    "ZOHO_REFRESH_TOKEN": "refresh",
    "ZOHO_ORG_ID": "org-1",
    "SHOPIFY_STORE": "shop.myshopify.com",
}


def _response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


# ===================
# TOKEN
# ===================

class TestAccessToken:

    def test_returns_token(self):
        with patch("price_dashboard.zoho.requests.post", return_value=_response({"access_token": "tok"})) as post:
            assert zoho.get_access_token(SECRETS) == "tok"
        sent = post.call_args.kwargs["data"]
        assert sent["grant_type"] == "refresh_token"
        assert sent["refresh_token"] == "refresh"

    def test_error_payload_raises(self):
        with patch("price_dashboard.zoho.requests.post", return_value=_response({"error": "invalid_code"})):
            with pytest.raises(ExternalServiceError, match="invalid_code"):
                zoho.get_access_token(SECRETS)

    def test_missing_token_raises(self):
        with patch("price_dashboard.zoho.requests.post", return_value=_response({})):
            with pytest.raises(ExternalServiceError):
                zoho.get_access_token(SECRETS)

    def test_network_error_raises(self):
        with patch("price_dashboard.zoho.requests.post", side_effect=requests.ConnectionError("down")):
            with pytest.raises(ExternalServiceError, match="down"):
                zoho.get_access_token(SECRETS)


# ===================
# ITEMS
# ===================

class TestItems:

    def test_search_returns_first_item(self):
        payload = {"code": 0, "items": [{"item_id": "1"}, {"item_id": "2"}]}
        with patch("price_dashboard.zoho.requests.get", return_value=_response(payload)) as get:
            assert zoho.search_item_by_sku("tok", "org-1", "A") == {"item_id": "1"}
        assert get.call_args.kwargs["params"] == {"organization_id": "org-1", "sku": "A"}
        assert get.call_args.kwargs["headers"]["Authorization"] == "Zoho-oauthtoken tok"

    def test_search_no_match(self):
        with patch("price_dashboard.zoho.requests.get", return_value=_response({"code": 0, "items": []})):
            assert zoho.search_item_by_sku("tok", "org-1", "A") is None

    def test_search_nonzero_code_raises(self):
        with patch("price_dashboard.zoho.requests.get", return_value=_response({"code": 57, "message": "denied"})):
            with pytest.raises(ExternalServiceError, match="denied"):
                zoho.search_item_by_sku("tok", "org-1", "A")

    def test_update_sends_purchase_rate_and_rate(self):
        with patch("price_dashboard.zoho.requests.put", return_value=_response({"code": 0, "item": {"item_id": "9"}})) as put:
            zoho.update_item_prices("tok", "org-1", "9", 10.0, 12.5)
        assert put.call_args.args[0].endswith("/items/9")
        assert put.call_args.kwargs["json"] == {"purchase_rate": 10.0, "rate": 12.5}

    def test_non_json_body_raises(self):
        resp = _response(None, status_code=502)
        resp.json.side_effect = ValueError("not json")
        with patch("price_dashboard.zoho.requests.put", return_value=resp):
            with pytest.raises(ExternalServiceError, match="502"):
                zoho.update_item_prices("tok", "org-1", "9", 1.0, 2.0)

    def test_fetch_stock(self):
        payload = {
            "code": 0,
            "items": [
                {"sku": "A", "stock_on_hand": 4},
                {"sku": "B", "stock_on_hand": 0},
                {"sku": "", "stock_on_hand": 9},
                {"sku": "C"},
            ],
        }
        with patch("price_dashboard.zoho.requests.get", return_value=_response(payload)):
            assert zoho.fetch_stock("tok", "org-1") == {"A": 4, "B": 0}


# ===================
# PRICE PUSH
# ===================

class TestPushPrices:

    def _items(self, *keys):
        return [BatchItem(k, {"cost_price": 10.0, "selling_price": 12.0}) for k in keys]

    def test_item_not_found_fails_only_that_item(self):
        def search(token, org_id, sku):
            return None if sku == "B" else {"item_id": f"id-{sku}", "name": sku}

        with patch.object(zoho, "get_access_token", return_value="tok") as token, \
             patch.object(zoho, "search_item_by_sku", side_effect=search), \
             patch.object(zoho, "update_item_prices") as update:
            results = zoho.push_prices(self._items("A", "B", "C"), SECRETS)

        token.assert_called_once_with(SECRETS)
        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "Item not found"
        assert results[0].detail == {"item_id": "id-A", "item_name": "A"}
        assert [c.args[2] for c in update.call_args_list] == ["id-A", "id-C"]

    def test_token_failure_aborts_batch(self):
        with patch.object(zoho, "get_access_token", side_effect=ExternalServiceError("invalid_code")), \
             patch.object(zoho, "search_item_by_sku") as search:
            with pytest.raises(BatchAbortedError):
                zoho.push_prices(self._items("A"), SECRETS)
        search.assert_not_called()

    def test_update_error_is_recorded(self):
        with patch.object(zoho, "get_access_token", return_value="tok"), \
             patch.object(zoho, "search_item_by_sku", return_value={"item_id": "1"}), \
             patch.object(zoho, "update_item_prices", side_effect=ExternalServiceError("rate locked")):
            results = zoho.push_prices(self._items("A"), SECRETS)
        assert results[0].success is False
        assert results[0].error == "rate locked"

    def test_each_outcome_logged_once(self):
        def search(token, org_id, sku):
            return None if sku == "B" else {"item_id": f"id-{sku}", "name": sku}

        with patch.object(zoho, "get_access_token", return_value="tok"), \
             patch.object(zoho, "search_item_by_sku", side_effect=search), \
             patch.object(zoho, "update_item_prices"):
            zoho.push_prices(self._items("A", "B"), SECRETS)

        errors = logger.get_logs(context="zoho", level="error")
        assert len(errors) == 1
        assert "key=B" in errors[0]["message"]
        successes = logger.get_logs(context="zoho", level="success")
        assert [e["message"] for e in successes] == ["price push sku=A"]
        assert successes[0]["extra"]["item_id"] == "id-A"

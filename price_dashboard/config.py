# price_dashboard/config.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Any, Optional

from openai import OpenAI

# -------------------------
# Paths
# -------------------------

# This file is: <project>/price_dashboard/config.py
PROJECT_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_SECRETS_PATH = PROJECT_ROOT / "price_dashboard" / "secrets.json"

# Caller-owned key/value storage (selections, overrides, rewrites, timestamps)
DEFAULT_STATE_PATH = PROJECT_ROOT / "state" / "price_dashboard_state.json"

# -------------------------
# Google Sheets (cost sheets + product uses)
# -------------------------

SPREADSHEET_ID = "1AUqJof4VPh-BmE2Rm-kIR-9C_ipixOVXOJLI_DfTDxs"

SHEETS: Dict[str, str] = {
    "trade_id": "Trade-Id",
    "digital_id": "Digital Id",
    "description": "Description",
}

SERVICE_ACCOUNT_FILE = PROJECT_ROOT / "price_dashboard" / "service-account.json"

# -------------------------
# External services
# -------------------------

ECB_RATE_URL = "https://data.ecb.europa.eu/data-detail-api/EXR.D.GBP.EUR.SP00.A"

ZOHO_ACCOUNTS_URL = "https://accounts.zoho.eu/oauth/v2/token"
ZOHO_INVENTORY_URL = "https://www.zohoapis.eu/inventory/v1"

SHOPIFY_API_VERSION = "2024-10"

# Per-call timeout (seconds) for every outbound HTTP request
HTTP_TIMEOUT: float = 30

# -------------------------
# OpenAI (description rewrites)
# -------------------------

client: Optional[OpenAI] = None
OPENAI_MODEL: str = "gpt-4o"

REQUIRED_SECRETS = [
    "ZOHO_CLIENT_ID",
    "ZOHO_CLIENT_SECRET",
    "ZOHO_REFRESH_TOKEN",
    "ZOHO_ORG_ID",
    "SHOPIFY_STORE",
]


def load_secrets(secrets_path: Path | str | None = None) -> Dict[str, Any]:
    """
    Read secrets.json, check the Zoho/Shopify keys and apply optional
    overrides to the module settings above.

    Expected keys in secrets.json:
      - ZOHO_CLIENT_ID
      - ZOHO_CLIENT_SECRET
      - ZOHO_REFRESH_TOKEN
      - ZOHO_ORG_ID
      - SHOPIFY_STORE          (e.g. my-shop.myshopify.com)
      - (optional) SHOPIFY_ACCESS_TOKEN
      - (optional) OPENAI_API_KEY, OPENAI_MODEL
      - (optional) HTTP_TIMEOUT, SERVICE_ACCOUNT_FILE, SPREADSHEET_ID
    """
    global client, OPENAI_MODEL, HTTP_TIMEOUT, SERVICE_ACCOUNT_FILE, SPREADSHEET_ID

    if secrets_path is None:
        secrets_path = DEFAULT_SECRETS_PATH

    secrets_path = Path(secrets_path)
    if not secrets_path.exists():
        raise FileNotFoundError(f"secrets.json not found at: {secrets_path}")

    with open(secrets_path, "r", encoding="utf-8") as f:
        secrets: Dict[str, Any] = json.load(f)

    missing = [k for k in REQUIRED_SECRETS if k not in secrets]
    if missing:
        raise KeyError(f"secrets.json is missing keys: {missing}")

    OPENAI_MODEL = secrets.get("OPENAI_MODEL") or "gpt-4o"

    if "HTTP_TIMEOUT" in secrets:
        HTTP_TIMEOUT = float(secrets["HTTP_TIMEOUT"])

    if secrets.get("SERVICE_ACCOUNT_FILE"):
        SERVICE_ACCOUNT_FILE = Path(secrets["SERVICE_ACCOUNT_FILE"])

    if secrets.get("SPREADSHEET_ID"):
        SPREADSHEET_ID = secrets["SPREADSHEET_ID"]

    # Rewrites are optional; without a key the client stays None
    if secrets.get("OPENAI_API_KEY"):
        client = OpenAI(api_key=secrets["OPENAI_API_KEY"])

    return secrets

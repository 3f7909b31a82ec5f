# price_dashboard/gsheet.py
from __future__ import annotations

import asyncio
import json
from typing import Any, List, Optional, Sequence, Tuple

import gspread
from google.oauth2.service_account import Credentials

from . import config
from .logger import log

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
]


def get_google_client() -> gspread.Client:
    """
    Create an authorized gspread client using the service account.
    Also prints the 'Using service account...' banner.
    """
    try:
        with open(config.SERVICE_ACCOUNT_FILE, "r") as f:
            info = json.load(f)
        print(f"Using service account: {info.get('client_email')}")
        print(f"Project ID          : {info.get('project_id')}")
    except (OSError, ValueError) as e:
        print("⚠️ Could not read service account JSON:", e)

    creds = Credentials.from_service_account_file(
        str(config.SERVICE_ACCOUNT_FILE),
        scopes=SCOPES,
    )
    return gspread.authorize(creds)


def fetch_sheet(tab: str, gc: Optional[gspread.Client] = None) -> List[List[str]]:
    """
    Read every cell of one tab as strings (row 0 is the header row).
    """
    gc = gc or get_google_client()
    sh = gc.open_by_key(config.SPREADSHEET_ID)
    ws = sh.worksheet(tab)
    rows = ws.get_all_values()

    print(f"⬇️ Downloaded {len(rows)} rows from '{tab}'")
    log(f"fetched tab={tab} rows={len(rows)}", context="gsheet")
    return rows


def list_tabs(gc: Optional[gspread.Client] = None) -> List[str]:
    gc = gc or get_google_client()
    sh = gc.open_by_key(config.SPREADSHEET_ID)
    return [ws.title for ws in sh.worksheets()]


async def fetch_sheets_async(tabs: Sequence[str]) -> Tuple[List[List[Any]], ...]:
    """
    Fetch several tabs concurrently. If any read fails the whole call fails;
    results come back in `tabs` order.
    """
    gc = await asyncio.to_thread(get_google_client)
    results = await asyncio.gather(
        *(asyncio.to_thread(fetch_sheet, tab, gc) for tab in tabs)
    )
    return tuple(results)

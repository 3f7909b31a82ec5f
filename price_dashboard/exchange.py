# price_dashboard/exchange.py
from __future__ import annotations

from typing import Optional

import requests

from . import config
from .errors import ExternalServiceError
from .logger import log
from .models import ExchangeRate


def fetch_exchange_rate(timeout: Optional[float] = None) -> ExchangeRate:
    """
    Latest EUR/GBP reference rate from the ECB data API.

    The series is a list of observations, newest first; the first one with
    a non-null OBS wins.
    """
    try:
        resp = requests.get(config.ECB_RATE_URL, timeout=timeout or config.HTTP_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        log(f"exchange rate fetch failed: {e!r}", context="exchange", level="error")
        raise ExternalServiceError(f"Failed to fetch exchange rate: {e}") from e

    if not isinstance(data, list):
        log(f"unexpected exchange rate payload: {str(data)[:200]}", context="exchange", level="error")
        raise ExternalServiceError("Failed to fetch exchange rate: unexpected response")

    latest = next(
        (d for d in data if isinstance(d, dict) and d.get("OBS") is not None),
        None,
    )
    if latest is None:
        raise ExternalServiceError("Failed to fetch exchange rate: no observations")

    try:
        rate = float(latest["OBS"])
    except (TypeError, ValueError) as e:
        raise ExternalServiceError(f"Unreadable exchange rate {latest.get('OBS')!r}") from e

    fx = ExchangeRate(rate=rate, date=str(latest.get("PERIOD") or ""), pair="EUR/GBP")
    log(f"exchange rate {fx.pair}={fx.rate} on {fx.date}", context="exchange")
    return fx

# price_dashboard/logger.py
from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import PROJECT_ROOT

LOG_ROOT = PROJECT_ROOT / "logs"
LOG_FILE_NAME = "price_dashboard.jsonl"

# Newest entries win; older ones fall off the front
MAX_LOG_ENTRIES = 1000

LEVELS = ("info", "success", "warn", "error")

RUN_MODES = ("debug", "dry-run", "prod")
CURRENT_RUN_MODE = "prod"

_LOG_BUFFER: List[Dict[str, Any]] = []


# ================================================================
# RUN MODE
# ================================================================

def set_run_mode(mode: str) -> None:
    """
    debug    → --debug on the command line
    dry-run  → push-zoho --dry-run (nothing is sent)
    prod     → everything else
    """
    global CURRENT_RUN_MODE
    CURRENT_RUN_MODE = mode if mode in RUN_MODES else "prod"


# ================================================================
# WRITE
# ================================================================

def log(
    message: str,
    context: str = "general",
    extra: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    """
    Buffer one event. `context` is the subsystem (parsing, zoho, shopify,
    rewrite, ...); `level` is one of LEVELS.
    """
    _LOG_BUFFER.append(
        {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mode": CURRENT_RUN_MODE,
            "level": level if level in LEVELS else "info",
            "context": context,
            "message": message,
            "extra": extra or {},
        }
    )
    overflow = len(_LOG_BUFFER) - MAX_LOG_ENTRIES
    if overflow > 0:
        del _LOG_BUFFER[:overflow]


def clear_logs() -> None:
    _LOG_BUFFER.clear()


# ================================================================
# READ
# ================================================================

def get_logs(
    context: Optional[str] = None,
    text: Optional[str] = None,
    level: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Buffered events matching every filter given; `text` is case-insensitive."""
    needle = text.lower() if text else None
    return [
        ev
        for ev in _LOG_BUFFER
        if (context is None or ev["context"] == context)
        and (level is None or ev["level"] == level)
        and (needle is None or needle in ev["message"].lower())
    ]


def summarize_logs() -> Dict[str, Dict[str, int]]:
    """{context: {level: count}} over the buffer, for the end-of-run line."""
    counts = Counter((ev["context"], ev["level"]) for ev in _LOG_BUFFER)
    summary: Dict[str, Dict[str, int]] = {}
    for (context, level), n in sorted(counts.items()):
        summary.setdefault(context, {})[level] = n
    return summary


# ================================================================
# EXPORT
# ================================================================

def export_logs_as_jsonl(log_root: Optional[Path] = None) -> str:
    """
    Append the buffer to a partitioned file and return its path:

        logs/<mode>/date=YYYY-MM-DD/hour=HH/price_dashboard.jsonl
    """
    now = datetime.now(timezone.utc)
    partition = (
        Path(log_root or LOG_ROOT)
        / CURRENT_RUN_MODE
        / f"date={now:%Y-%m-%d}"
        / f"hour={now:%H}"
    )
    partition.mkdir(parents=True, exist_ok=True)

    out_file = partition / LOG_FILE_NAME
    with out_file.open("a", encoding="utf-8") as f:
        for entry in _LOG_BUFFER:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
    return str(out_file)


def export_logs_as_text(level: Optional[str] = None) -> str:
    return "\n".join(
        f"[{ev['timestamp']}] [{ev['level'].upper()}] [{ev['context']}] {ev['message']}"
        + (f" extra={ev['extra']}" if ev["extra"] else "")
        for ev in get_logs(level=level)
    )

# price_dashboard/batch.py
from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional, Tuple

from .errors import BatchAbortedError
from .logger import log
from .models import BatchItem, BatchResult


def propagate(
    items: Iterable[BatchItem],
    apply_one: Callable[[BatchItem, Any], Any],
    acquire_session: Optional[Callable[[], Any]] = None,
    context: str = "batch",
) -> List[BatchResult]:
    """
    Apply items one at a time, in order, against a single external session.

    `acquire_session` runs once before the loop (token exchange, client
    setup). If it raises, nothing is attempted and BatchAbortedError is
    raised. Each `apply_one(item, session)` failure is recorded as a failed
    BatchResult and the loop moves on; its return value is kept as `detail`.

    The result list is one-to-one with `items`. Nothing is retried.
    """
    item_list = list(items)
    if not item_list:
        return []

    session: Any = None
    if acquire_session is not None:
        try:
            session = acquire_session()
        except Exception as e:
            log(f"batch aborted before start: {e!r}", context=context, level="error")
            raise BatchAbortedError(str(e)) from e

    log(f"batch start items={len(item_list)}", context=context)

    results: List[BatchResult] = []
    for item in item_list:
        try:
            detail = apply_one(item, session)
        except Exception as e:
            log(
                f"key={item.key} failed: {e}",
                context=context,
                extra={"payload": item.payload},
                level="error",
            )
            results.append(BatchResult(key=item.key, success=False, error=str(e) or type(e).__name__))
            continue
        results.append(BatchResult(key=item.key, success=True, detail=detail))

    ok, failed = tally(results)
    log(f"batch done ok={ok} failed={failed}", context=context)
    return results


def tally(results: Iterable[BatchResult]) -> Tuple[int, int]:
    ok = failed = 0
    for r in results:
        if r.success:
            ok += 1
        else:
            failed += 1
    return ok, failed


def failed_keys(results: Iterable[BatchResult]) -> List[str]:
    """Keys to resubmit as a fresh batch."""
    return [r.key for r in results if not r.success]

# price_dashboard/orchestrator.py
from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from . import shopify, zoho
from .batch import failed_keys, tally
from .config import DEFAULT_SECRETS_PATH, DEFAULT_STATE_PATH, SHEETS, load_secrets
from .diagnostics import sku_diff_report
from .errors import BatchAbortedError, ExternalServiceError
from .exchange import fetch_exchange_rate
from .gsheet import fetch_sheets_async, list_tabs
from .logger import export_logs_as_jsonl, log, set_run_mode, summarize_logs
from .models import BatchItem, BatchResult, DescriptionRecord, MergedRecord, RewrittenContent
from .parsing import parse_description_sheet, parse_digital_sheet, parse_trade_sheet
from .pricing import convert, format_price, parse_rule
from .reconcile import combine_descriptions, reconcile
from .rewriter import rewrite_products
from .state import PricingState
from .store import JsonStore
from .workbook import descriptions_table, display_table, pricing_table, save_workbook


# -------------------------------------------------------------------
# State
# -------------------------------------------------------------------


def load_state(store: JsonStore) -> PricingState:
    return PricingState.from_dict(store.get("pricing_state"))


def save_state(store: JsonStore, state: PricingState) -> None:
    store.set("pricing_state", state.to_dict())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# -------------------------------------------------------------------
# Reads (independent fetches run concurrently, then join)
# -------------------------------------------------------------------


def _rate_or_none() -> Optional[float]:
    """A missing rate only blanks derived prices, it does not stop the run."""
    try:
        return fetch_exchange_rate().rate
    except ExternalServiceError as e:
        print(f"⚠️ Exchange rate unavailable: {e}")
        return None


async def load_products() -> Tuple[List[MergedRecord], Optional[float]]:
    (trade_rows, digital_rows), fx_rate = await asyncio.gather(
        fetch_sheets_async([SHEETS["trade_id"], SHEETS["digital_id"]]),
        asyncio.to_thread(_rate_or_none),
    )
    records = reconcile(parse_trade_sheet(trade_rows), parse_digital_sheet(digital_rows))
    return records, fx_rate


async def load_descriptions() -> List[DescriptionRecord]:
    digital_rows, description_rows = await fetch_sheets_async(
        [SHEETS["digital_id"], SHEETS["description"]]
    )
    return combine_descriptions(
        parse_digital_sheet(digital_rows),
        parse_description_sheet(description_rows),
    )


async def load_stock(
    secrets: Dict[str, Any],
    shopify_token: Optional[str],
) -> Tuple[Dict[str, int], Tuple[Dict[str, int], Dict[str, str], Dict[str, str]]]:
    """(zoho stock, (shopify stock, status, product ids)); either failing fails both."""

    def _zoho() -> Dict[str, int]:
        token = zoho.get_access_token(secrets)
        return zoho.fetch_stock(token, secrets["ZOHO_ORG_ID"])

    def _shopify() -> Tuple[Dict[str, int], Dict[str, str], Dict[str, str]]:
        if not shopify_token:
            return {}, {}, {}
        return shopify.fetch_stock(secrets["SHOPIFY_STORE"], shopify_token)

    zoho_stock, shopify_data = await asyncio.gather(
        asyncio.to_thread(_zoho),
        asyncio.to_thread(_shopify),
    )
    return zoho_stock, shopify_data


# -------------------------------------------------------------------
# Batch item builders
# -------------------------------------------------------------------


def _selected(records: Iterable[Any], keys: Optional[Sequence[str]]) -> List[Any]:
    if keys is None:
        return list(records)
    wanted = set(keys)
    return [r for r in records if r.key in wanted]


def build_price_items(
    records: Sequence[MergedRecord],
    state: PricingState,
    fx_rate: Optional[float],
    keys: Optional[Sequence[str]] = None,
) -> Tuple[List[BatchItem], List[str]]:
    """
    Zoho payloads for the selected SKUs: EUR cost (2 dp) and the identity
    price (override first). SKUs lacking either value are returned as
    skipped rather than sent.
    """
    items: List[BatchItem] = []
    skipped: List[str] = []
    for rec in _selected(records, keys):
        selling = state.price_for(rec, fx_rate).value
        cost = convert(rec.primary.cost, fx_rate)
        if selling is None or cost is None:
            skipped.append(rec.key)
            continue
        items.append(
            BatchItem(
                key=rec.key,
                payload={"cost_price": round(cost, 2), "selling_price": selling},
            )
        )
    return items, skipped


def build_stock_items(
    keys: Sequence[str],
    state: PricingState,
    zoho_stock: Dict[str, int],
) -> Tuple[List[BatchItem], List[str]]:
    """Zoho quantity (manual override first) → Shopify, for each SKU that has one."""
    items: List[BatchItem] = []
    skipped: List[str] = []
    for key in keys:
        qty = state.stock_for("zoho", key, zoho_stock)
        if qty is None:
            skipped.append(key)
            continue
        items.append(BatchItem(key=key, payload={"quantity": qty}))
    return items, skipped


def build_sync_items(
    keys: Sequence[str],
    rewritten: Dict[str, Dict[str, Any]],
) -> List[BatchItem]:
    """One item per distinct key that has rewritten content, first-seen order."""
    items = []
    for key in dict.fromkeys(keys):
        content = RewrittenContent.from_dict(rewritten.get(key) or {})
        if content.has_content():
            items.append(BatchItem(key=key, payload={"content": content}))
    return items


def print_results(results: Sequence[BatchResult], label: str) -> None:
    ok, failed = tally(results)
    for r in results:
        mark = "✅" if r.success else "❌"
        suffix = "" if r.success else f"  {r.error}"
        print(f"  {mark} {r.key}{suffix}")
    if failed == 0:
        print(f"{label}: updated {ok} items successfully")
    else:
        print(f"{label}: updated {ok}, failed {failed}")
        print(f"  retry with: {' '.join(failed_keys(results))}")


# -------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------


def cmd_products(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> pd.DataFrame:
    state = load_state(store)
    records, fx_rate = asyncio.run(load_products())

    if args.rounding is not None:
        had_overrides = bool(state.overrides)
        state.set_rounding(args.rounding)
        cleared = had_overrides and not state.overrides
        print(f"[orchestrator] Rounding set to {state.rounding}" + ("; overrides cleared" if cleared else ""))
    if args.fill_rule:
        rule = parse_rule(args.fill_rule)
        if rule is None:
            raise SystemExit(f"Unknown rule {args.fill_rule!r} (use 'digitalId' or '+N')")
        state.fill_rule([r.key for r in records], rule)
    save_state(store, state)

    zoho_stock: Dict[str, int] = {}
    shopify_stock: Dict[str, int] = {}
    shopify_status: Dict[str, str] = {}
    if args.with_stock:
        zoho_stock, (shopify_stock, shopify_status, _) = asyncio.run(
            load_stock(secrets, _shopify_token(secrets, store))
        )

    df = pricing_table(
        records,
        state,
        fx_rate,
        zoho_stock=zoho_stock,
        shopify_stock=shopify_stock,
        shopify_status=shopify_status,
        zoho_timestamps=store.get("zoho_timestamps") or {},
    )

    print(f"\nEUR/GBP rate: {fx_rate if fx_rate is not None else '—'}  products: {len(df)}")
    with pd.option_context("display.max_columns", None, "display.width", 220):
        print(display_table(df).to_string(index=False))

    if args.export:
        save_workbook(Path(args.export), {"Prices": df})
        print(f"📄 Exported to {args.export}")
    return df


def cmd_override(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> None:
    state = load_state(store)
    if args.value is None:
        state.clear_override(args.sku)
        print(f"Cleared override for {args.sku}")
    else:
        state.set_override(args.sku, args.value)
        print(f"Override for {args.sku} set to {args.value:.2f}")
    save_state(store, state)


def cmd_select(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> None:
    state = load_state(store)
    rule = parse_rule(args.rule)
    if rule is None and args.rule:
        raise SystemExit(f"Unknown rule {args.rule!r} (use 'digitalId' or '+N')")
    for sku in args.skus:
        state.select_rule(sku, rule)
    save_state(store, state)
    print(f"Rule {args.rule or '(none)'} applied to {len(args.skus)} SKUs")


def cmd_push_zoho(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> List[BatchResult]:
    state = load_state(store)
    records, fx_rate = asyncio.run(load_products())

    keys = None if args.all else args.skus
    items, skipped = build_price_items(records, state, fx_rate, keys)
    if skipped:
        print(f"⚠️ Skipping {len(skipped)} SKUs without a price: {', '.join(skipped)}")
    if not items:
        print("No items with valid prices")
        return []

    if args.dry_run:
        for item in items:
            print(f"  {item.key}: cost {format_price(item.payload['cost_price'], '€')} "
                  f"selling {format_price(item.payload['selling_price'], '€')}")
        return []

    print(f"Updating {len(items)} items in Zoho...")
    results = zoho.push_prices(items, secrets)

    timestamps = store.get("zoho_timestamps") or {}
    now = _now_iso()
    for r in results:
        if r.success:
            timestamps[r.key] = now
    store.set("zoho_timestamps", timestamps)

    print_results(results, "Zoho")
    return results


def cmd_match_stock(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> List[BatchResult]:
    state = load_state(store)
    token = zoho.get_access_token(secrets)
    zoho_stock = zoho.fetch_stock(token, secrets["ZOHO_ORG_ID"])

    keys = sorted(zoho_stock) if args.all else args.skus
    items, skipped = build_stock_items(keys, state, zoho_stock)
    if skipped:
        print(f"⚠️ No Zoho stock for: {', '.join(skipped)}")
    if not items:
        print("No items with Zoho stock data")
        return []

    print(f"Updating {len(items)} items in Shopify...")
    results = shopify.match_stock(items, secrets["SHOPIFY_STORE"], _shopify_token(secrets, store))
    print_results(results, "Shopify stock")
    return results


def cmd_rewrite(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> List[BatchResult]:
    products = asyncio.run(load_descriptions())
    targets = _selected(products, None if args.all else args.skus)
    rewritten: Dict[str, Dict[str, Any]] = store.get("rewritten") or {}
    options = store.get("options") or {}

    results: List[BatchResult] = []
    if targets:
        print(f"Rewriting {len(targets)} products...")
        results = rewrite_products(
            targets,
            main_prompt=store.get("rewrite_prompt"),
            html_title_rules=store.get("html_title_rules"),
            meta_desc_rules=store.get("meta_desc_rules"),
            generate_uses_if_empty=bool(options.get("generate_uses_if_empty")),
        )
        now = _now_iso()
        for r in results:
            if r.success:
                rewritten[r.key] = {**rewritten.get(r.key, {}), **r.detail.to_dict(), "updated_at": now}
        store.set("rewritten", rewritten)
        print_results(results, "Rewrite")

    if args.sync:
        keys = [p.key for p in targets]
        items = build_sync_items(keys, rewritten)
        if not items:
            print("No rewritten content to sync")
            return results
        sync_results = shopify.sync_descriptions(items, secrets["SHOPIFY_STORE"], _shopify_token(secrets, store))
        now = _now_iso()
        for r in sync_results:
            if r.success:
                rewritten[r.key]["synced_at"] = now
        store.set("rewritten", rewritten)
        print_results(sync_results, "Shopify sync")
        results = results + sync_results

    if args.export:
        save_workbook(Path(args.export), {"Descriptions": descriptions_table(products, rewritten)})
        print(f"📄 Exported to {args.export}")
    return results


def cmd_set_status(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> str:
    token = _shopify_token(secrets, store)
    if not token:
        raise SystemExit("Not connected to Shopify (set SHOPIFY_ACCESS_TOKEN)")
    status = shopify.update_status(secrets["SHOPIFY_STORE"], token, args.product_id, args.status)
    print(f"{args.product_id} → {status}")
    return status


def cmd_sku_diff(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> Dict[str, Any]:
    trade_rows, digital_rows = asyncio.run(
        fetch_sheets_async([SHEETS["trade_id"], SHEETS["digital_id"]])
    )
    report = sku_diff_report(parse_trade_sheet(trade_rows), parse_digital_sheet(digital_rows))
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return report


def cmd_tabs(args: argparse.Namespace, secrets: Dict[str, Any], store: JsonStore) -> List[str]:
    tabs = list_tabs()
    for title in tabs:
        mark = "✅" if title in SHEETS.values() else "  "
        print(f"{mark} {title}")
    return tabs


def _shopify_token(secrets: Dict[str, Any], store: JsonStore) -> Optional[str]:
    return secrets.get("SHOPIFY_ACCESS_TOKEN") or store.get("shopify_token")


# -------------------------------------------------------------------
# CLI plumbing
# -------------------------------------------------------------------


def build_cli_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description=(
            "Price dashboard.\n"
            "Reconciles Trade-Id / Digital Id sheet prices, derives EUR selling "
            "prices and pushes them to Zoho Inventory and Shopify."
        )
    )
    p.add_argument("--secrets-path", type=str, default=str(DEFAULT_SECRETS_PATH),
                   help="Path to secrets.json")
    p.add_argument("--state-path", type=str, default=str(DEFAULT_STATE_PATH),
                   help="JSON file holding selections, overrides and rewrites")
    p.add_argument("--debug", action="store_true", help="Log in debug mode.")

    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("products", help="Fetch, reconcile and price all products.")
    sp.add_argument("--fill-rule", type=str, default=None,
                    help="Apply a rule to every SKU: 'digitalId' or '+N' (markup %%).")
    sp.add_argument("--rounding", type=float, default=None,
                    help="Round identity prices to this increment (0 = off). Clears overrides.")
    sp.add_argument("--with-stock", action="store_true", help="Also fetch Zoho/Shopify stock.")
    sp.add_argument("--export", type=str, default=None, help="Write the table to this XLSX path.")
    sp.set_defaults(func=cmd_products)

    sp = sub.add_parser("select", help="Set the pricing rule for some SKUs.")
    sp.add_argument("rule", type=str, help="'digitalId', '+N', or '' to clear.")
    sp.add_argument("skus", nargs="+")
    sp.set_defaults(func=cmd_select)

    sp = sub.add_parser("override", help="Set (or clear, without VALUE) a manual price.")
    sp.add_argument("sku", type=str)
    sp.add_argument("value", type=float, nargs="?", default=None)
    sp.set_defaults(func=cmd_override)

    sp = sub.add_parser("push-zoho", help="Push cost + identity prices to Zoho Inventory.")
    sp.add_argument("skus", nargs="*")
    sp.add_argument("--all", action="store_true")
    sp.add_argument("--dry-run", action="store_true", help="Show payloads without sending.")
    sp.set_defaults(func=cmd_push_zoho)

    sp = sub.add_parser("match-stock", help="Copy Zoho stock levels to Shopify.")
    sp.add_argument("skus", nargs="*")
    sp.add_argument("--all", action="store_true")
    sp.set_defaults(func=cmd_match_stock)

    sp = sub.add_parser("rewrite", help="Rewrite descriptions with the LLM.")
    sp.add_argument("skus", nargs="*")
    sp.add_argument("--all", action="store_true")
    sp.add_argument("--sync", action="store_true", help="Sync rewritten content to Shopify.")
    sp.add_argument("--export", type=str, default=None)
    sp.set_defaults(func=cmd_rewrite)

    sp = sub.add_parser("set-status", help="Set a Shopify product status.")
    sp.add_argument("product_id", type=str)
    sp.add_argument("status", choices=shopify.VALID_STATUSES)
    sp.set_defaults(func=cmd_set_status)

    sp = sub.add_parser("sku-diff", help="Show SKUs present in only one cost sheet.")
    sp.set_defaults(func=cmd_sku_diff)

    sp = sub.add_parser("tabs", help="List the spreadsheet's tabs.")
    sp.set_defaults(func=cmd_tabs)

    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_cli_parser()
    args = parser.parse_args(argv)

    if getattr(args, "dry_run", False):
        set_run_mode("dry-run")
    elif args.debug:
        set_run_mode("debug")

    print("🔐 Loading secrets...")
    secrets = load_secrets(Path(args.secrets_path))
    store = JsonStore(Path(args.state_path))

    log(f"command={args.command}", context="orchestrator")
    try:
        args.func(args, secrets, store)
    except BatchAbortedError as e:
        # Nothing was attempted; one message for the whole batch
        print(f"❌ Error: {e}")
        log(f"batch aborted: {e}", context="orchestrator", level="error")
        raise SystemExit(1)
    finally:
        for context, counts in summarize_logs().items():
            if counts.get("error"):
                print(f"   {context}: {counts['error']} errors")
        path = export_logs_as_jsonl()
        print(f"📝 Logs written to {path}")


if __name__ == "__main__":
    main()

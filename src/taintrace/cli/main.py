from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import os
import sys
import time
from decimal import Decimal, InvalidOperation
from typing import Optional

from taintrace.config import settings
from taintrace.core.errors import InvalidInputError, TracerError
from taintrace.core.models import TraceConfig
from taintrace.services.taint_service import TaintTraceService
from taintrace.io.output_writer import write_trace_json, write_report_md
from taintrace.io.schemas import transfer_events_from_list

from taintrace.adapters.chain.helius_adapter import HeliusTransactionSource
from taintrace.adapters.chain.static_adapter import StaticTransactionSource


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="taintrace", description="Stolen funds tracer (FIFO taint propagation, Solana)")
    p.add_argument("--address", required=True, help="Victim (stolen) wallet address")
    p.add_argument("--amount", default=None, help="Stolen amount (0 or omitted: everything that left the wallet)")
    p.add_argument("--asset", choices=["auto", "native", "token"], default="auto", help="What was stolen")
    p.add_argument("--mint", default=None, help="Token mint address (required with --asset token)")
    p.add_argument("--hops", type=int, default=settings.DEFAULT_HOPS,
                   help=f"Max hops to trace ({settings.MIN_HOPS}-{settings.MAX_HOPS})")
    p.add_argument("--timeout", type=float, default=settings.TRACE_TIMEOUT_SEC, help="Overall trace timeout in seconds")
    p.add_argument("--max-rows", type=int, default=settings.MAX_FLOW_ROWS, help="Cap on flow graph rows")
    p.add_argument("--fixture", default=None, help="Replay transfers from a JSON file instead of Helius (dev/testing)")
    p.add_argument("--out", default="out", help="Output folder")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return p


def _parse_amount_arg(raw: Optional[str]) -> Optional[Decimal]:
    """`None` means trace everything that left the wallet."""
    if raw is None or not str(raw).strip():
        return None
    amount = Decimal(str(raw).strip())  # InvalidOperation on garbage
    return None if amount == 0 else amount


def _make_progress_reporter(cfg: TraceConfig):
    start_time = time.time()
    is_tty = sys.stdout.isatty()

    def _short_addr(addr: str) -> str:
        if not addr:
            return ""
        if len(addr) <= 12:
            return addr
        return f"{addr[:6]}...{addr[-4:]}"

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def _print_line(message: str) -> None:
        if is_tty:
            sys.stdout.write("\r" + message.ljust(88))
            sys.stdout.flush()
        else:
            print(message)

    def _clear_line() -> None:
        if is_tty:
            sys.stdout.write("\r" + (" " * 88) + "\r")
            sys.stdout.flush()

    def progress(event: str, data: dict) -> None:
        if event == "start":
            print(f"[{_ts()}] Tracing {cfg.address} • {cfg.asset_mode} • {cfg.hops} hop(s)")
            return
        if event == "root":
            print(f"[{_ts()}] Asset {data['asset']} • {data['transfers']} outgoing transfer(s) • taint {data['taint']}")
            return
        if event == "expand":
            msg = (
                f"Hop {data['hop']}/{cfg.hops} • "
                f"{_short_addr(data['address'])} • "
                f"queue {data['queue']} • "
                f"rows {data['rows']}"
            )
            _print_line(msg)
            return
        if event == "expand_failed":
            _clear_line()
            print(f"[{_ts()}] Skipped {_short_addr(data['address'])}: {data.get('message', 'unavailable')}")
            return
        if event == "done":
            _clear_line()
            elapsed = time.time() - start_time
            print(
                f"[{_ts()}] Done in {elapsed:.1f}s • "
                f"{data['rows']} flow row(s) • {data['endpoints']} endpoint(s)"
            )
            return
        if event == "error":
            _clear_line()
            print(f"[{_ts()}] Error: {data.get('message', 'Unknown error')}", file=sys.stderr)

    return progress


def main() -> int:
    args = build_arg_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        amount = _parse_amount_arg(args.amount)
    except InvalidOperation:
        print(f"Invalid --amount: {args.amount}", file=sys.stderr)
        return 2

    cfg = TraceConfig(
        address=args.address,
        amount=amount,
        asset_mode=args.asset,
        mint=args.mint,
        hops=args.hops,
        timeout_sec=args.timeout,
        max_rows=args.max_rows,
    )
    progress = _make_progress_reporter(cfg)

    # Ports
    if args.fixture:
        try:
            with open(args.fixture, encoding="utf-8") as f:
                source = StaticTransactionSource(transfers=transfer_events_from_list(json.load(f)))
        except (OSError, ValueError, InvalidInputError) as exc:
            progress("error", {"message": f"Cannot load fixture {args.fixture}: {exc}"})
            return 2
        source_label = "StaticTransactionSource (fixture replay)"
    else:
        # Helius key should come from env or .env
        if not os.getenv("HELIUS_API_KEY"):
            progress("error", {"message": "Missing HELIUS_API_KEY environment variable"})
            return 2
        source = HeliusTransactionSource()
        source_label = "HeliusTransactionSource"

    # Service
    svc = TaintTraceService(source=source)
    print(f"Source: {source_label}")
    try:
        result = svc.trace(cfg, on_progress=progress)
    except InvalidInputError as exc:
        progress("error", {"message": str(exc)})
        return 2
    except TracerError as exc:
        progress("error", {"message": f"{exc.__class__.__name__}: {exc}"})
        return 1

    # Outputs
    print("Writing outputs...")
    json_path = write_trace_json(result, args.out)
    report_path = write_report_md(result, args.out)

    print(f"Wrote: {json_path}")
    print(f"Wrote: {report_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

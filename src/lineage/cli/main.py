from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import sys
import time

from lineage.config import settings
from lineage.core.enums import TraversalDirection
from lineage.core.errors import InvalidInputError, LineageError
from lineage.core.models import LineageConfig
from lineage.services.lineage_service import LineageService
from lineage.io.output_writer import write_graph_json, write_report_json, write_summary_md

from lineage.adapters.ledger.blockcypher_ledger_adapter import BlockCypherLedgerAdapter
from lineage.adapters.ledger.static_ledger_adapter import StaticLedgerAdapter
from lineage.adapters.labels.static_label_adapter import StaticAddressLabelAdapter


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lineage", description="Transaction lineage and laundering-pattern analysis")
    p.add_argument("--tx", help="Seed transaction hash")
    p.add_argument("--address", help="Seed address (its largest recent transaction becomes the seed)")
    p.add_argument("--depth", type=int, default=settings.LINEAGE_MAX_DEPTH, help="Maximum lineage depth")
    p.add_argument("--max-children", type=int, default=settings.LINEAGE_MAX_CHILDREN, help="Children followed per transaction")
    p.add_argument("--direction", choices=[d.value for d in TraversalDirection], default="forward", help="Follow spends (forward) or funding (backward)")
    p.add_argument("--max-in-flight", type=int, default=settings.LINEAGE_MAX_IN_FLIGHT, help="Concurrent provider calls")
    p.add_argument("--timeout", type=float, default=settings.LINEAGE_PROVIDER_TIMEOUT_SEC, help="Per-call provider timeout (seconds)")
    p.add_argument("--timezone", default=settings.LINEAGE_TIMEZONE, help="Zone used for unusual-hour checks")
    p.add_argument("--static", metavar="JSON", help="Use a static ledger fixture instead of BlockCypher (dev/testing)")
    p.add_argument("--labels", default=settings.ADDRESS_LABELS_PATH, help="Address label directory (JSON)")
    p.add_argument("--out", default="out", help="Output folder")
    p.add_argument("--graph", action="store_true", help="Also write graph.json with the full lineage tree")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


_LINE_WIDTH = 88


def _make_progress_reporter(seed: str, depth: int):
    started = time.monotonic()
    live = sys.stdout.isatty()
    state = {"status_shown": False}

    def stamp() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def status(message: str) -> None:
        # tty: rewrite one line in place; otherwise log every level
        if not live:
            print(message)
            return
        sys.stdout.write("\r" + message.ljust(_LINE_WIDTH))
        sys.stdout.flush()
        state["status_shown"] = True

    def settle() -> None:
        if live and state["status_shown"]:
            sys.stdout.write("\r" + " " * _LINE_WIDTH + "\r")
            sys.stdout.flush()
            state["status_shown"] = False

    def progress(event: str, data: dict) -> None:
        if event == "level":
            status(f"Depth {data['depth']}/{depth} • fetching {data['pending']} transaction(s)")
            return

        settle()
        if event == "start":
            print(f"[{stamp()}] Tracing {data.get('seed', seed)} • {data.get('direction')} • depth {depth}")
        elif event == "fetch_error":
            print(f"[{stamp()}] Skipped {data.get('tx_hash')}: {data.get('message')}", file=sys.stderr)
        elif event == "done":
            print(
                f"[{stamp()}] Finished after {time.monotonic() - started:.1f}s: "
                f"{data['nodes']} nodes, {data['errors']} errors, {data['calls']} calls"
            )
        elif event == "error":
            print(f"[{stamp()}] Failed: {data.get('message', 'unknown error')}", file=sys.stderr)

    return progress


def main() -> int:
    args = build_arg_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    seed = args.tx or args.address
    if not seed or (args.tx and args.address):
        print("Provide exactly one of --tx or --address", file=sys.stderr)
        return 2

    try:
        cfg = LineageConfig(
            max_depth=args.depth,
            max_children_per_node=args.max_children,
            direction=TraversalDirection(args.direction),
            max_in_flight=args.max_in_flight,
            provider_timeout_sec=args.timeout,
            address_history_limit=settings.LINEAGE_ADDRESS_HISTORY_LIMIT,
            timezone=args.timezone,
        )
    except InvalidInputError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    progress = _make_progress_reporter(seed, cfg.max_depth)

    # Ports
    if args.static:
        ledger = StaticLedgerAdapter.from_json(args.static)
        adapter_label = f"StaticLedgerAdapter ({args.static})"
    else:
        # token is optional for BlockCypher but the anonymous quota is tiny
        if not os.getenv("BLOCKCYPHER_TOKEN"):
            print("Warning: BLOCKCYPHER_TOKEN not set; using the anonymous rate limit", file=sys.stderr)
        ledger = BlockCypherLedgerAdapter()
        adapter_label = "BlockCypherLedgerAdapter"
    labels = StaticAddressLabelAdapter.from_json(args.labels)

    # Service
    svc = LineageService(ledger=ledger, labels=labels, config=cfg)
    print(f"Adapter: {adapter_label} • {len(labels)} labelled address(es)")
    try:
        tx_hash = svc.resolve_seed(seed)
        graph = svc.builder.build_lineage(tx_hash, on_progress=progress)
        report = svc.report_for(seed, graph)
    except InvalidInputError as exc:
        progress("error", {"message": str(exc)})
        return 2
    except LineageError as exc:
        progress("error", {"message": f"{exc.__class__.__name__}: {exc}"})
        return 1

    # Outputs
    print("Writing outputs...")
    report_path = write_report_json(report, args.out)
    summary_path = write_summary_md(report, args.out)
    print(f"Wrote: {report_path}")
    print(f"Wrote: {summary_path}")
    if args.graph:
        print(f"Wrote: {write_graph_json(graph, args.out)}")

    risk = report.risk_assessment
    print(f"Risk: {risk.score}/100 ({risk.level.value}) • {len(risk.patterns)} pattern(s) • {len(report.recommendations)} action(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import logging
import re
import time
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set

from taintrace.config import settings
from taintrace.core.allocator import Allocation, allocate
from taintrace.core.dto import AssetKind, TransferEvent
from taintrace.core.entity_registry import EntityRegistry
from taintrace.core.errors import DataSourceError, InvalidInputError
from taintrace.core.models import FrontierItem, TaintedOutput, TraceConfig, TraceResult
from taintrace.ports.transaction_source_port import TransactionSourcePort
from taintrace.services.reconciler import reconcile, traced_amount


logger = logging.getLogger(__name__)

ProgressFn = Callable[[str, Dict[str, Any]], None]

# Solana base58 public key
ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
ASSET_MODES = ("auto", "native", "token")


def _no_progress(event: str, data: Dict[str, Any]) -> None:
    return None


@dataclass
class _TraceRun:
    """Mutable state owned by a single trace() call."""

    max_hops: int
    max_rows: int
    flow_graph: List[TaintedOutput] = field(default_factory=list)
    endpoints: List[TaintedOutput] = field(default_factory=list)
    visited: Set[str] = field(default_factory=set)
    unreachable: List[str] = field(default_factory=list)
    queue: Deque[FrontierItem] = field(default_factory=deque)
    truncated: bool = False
    timed_out: bool = False

    @property
    def full(self) -> bool:
        return len(self.flow_graph) >= self.max_rows


class TaintTraceService:
    """
    Follows stolen funds outward from a victim wallet.

    - Allocation: FIFO, earliest outgoing transfer tainted first
    - Traversal: breadth-first, one fetch per frontier address
    - Stops a branch at exchanges and bridges, or when taint drops to the
      continuation threshold or below
    - Terminates on hop limit, row cap or overall timeout
    """

    def __init__(
        self,
        source: TransactionSourcePort,
        registry: Optional[EntityRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.registry = registry or EntityRegistry()
        self._clock = clock

    def trace(self, cfg: TraceConfig, on_progress: Optional[ProgressFn] = None) -> TraceResult:
        progress = on_progress or _no_progress

        # INIT
        self._validate(cfg)
        victim = cfg.address.strip()
        amount = _parse_amount(cfg.amount)
        deadline = self._clock() + float(cfg.timeout_sec)

        progress("start", {"address": victim, "hops": cfg.hops})

        # root failure is fatal: nothing meaningful can be reported
        root_events = self.source.fetch_transfers(
            victim, None, settings.ROOT_TX_LIMIT, timeout=float(cfg.timeout_sec)
        )
        outgoing = _outgoing(root_events, victim)

        asset = self._select_asset(cfg, outgoing)
        relevant = _chronological(e for e in outgoing if e.asset == asset)
        total_outgoing = sum((e.amount for e in relevant), Decimal("0"))
        total_stolen = amount if amount is not None else total_outgoing
        symbol = _asset_symbol(asset, relevant)

        logger.info(
            "Tracing %s %s from %s (%d outgoing transfer(s), %d hop(s))",
            total_stolen, symbol, victim, len(relevant), cfg.hops,
        )
        progress("root", {"asset": symbol, "transfers": len(relevant), "taint": total_stolen})

        run = _TraceRun(max_hops=int(cfg.hops), max_rows=int(cfg.max_rows), visited={victim})

        # FIRST_HOP
        self._record(run, allocate(relevant, total_stolen), hop=1)

        # EXPANDING
        while run.queue:
            if run.full:
                # only a cut if something was still left to expand
                run.truncated = run.truncated or any(
                    i.address not in run.visited and i.hop < run.max_hops for i in run.queue
                )
                logger.warning("Flow graph reached %d rows, stopping expansion", run.max_rows)
                break
            remaining = deadline - self._clock()
            if remaining <= 0:
                run.timed_out = True
                logger.warning("Trace timed out after %ss with %d item(s) queued", cfg.timeout_sec, len(run.queue))
                break

            item = run.queue.popleft()
            if item.address in run.visited or item.hop >= run.max_hops:
                continue
            run.visited.add(item.address)

            progress("expand", {
                "address": item.address,
                "hop": item.hop + 1,
                "queue": len(run.queue),
                "rows": len(run.flow_graph),
            })
            self._expand(run, item, progress, remaining)

        # DONE
        flow_graph = tuple(run.flow_graph)
        summary = reconcile(flow_graph)

        result = TraceResult(
            source_address=victim,
            total_stolen=total_stolen,
            traced_amount=traced_amount(flow_graph),
            recovered_amount=summary.exchange_amount,
            endpoints=tuple(run.endpoints),
            flow_graph=flow_graph,
            summary=summary,
            asset=asset,
            asset_symbol=symbol,
            max_hops=run.max_hops,
            unreachable=tuple(run.unreachable),
            truncated=run.truncated,
            timed_out=run.timed_out,
        )
        progress("done", {"rows": len(flow_graph), "endpoints": len(result.endpoints)})
        return result

    # -------------------------
    # Traversal
    # -------------------------

    def _expand(self, run: _TraceRun, item: FrontierItem, progress: ProgressFn, remaining: float) -> None:
        try:
            events = self.source.fetch_transfers(
                item.address, item.asset, settings.HOP_TX_LIMIT, timeout=remaining
            )
        except DataSourceError as exc:
            # abandon this branch only
            logger.warning("Could not expand %s at hop %d: %s", item.address, item.hop + 1, exc)
            run.unreachable.append(item.address)
            progress("expand_failed", {"address": item.address, "message": str(exc)})
            return

        candidates = _chronological(
            e for e in _outgoing(events, item.address) if e.asset == item.asset
        )
        allocations = allocate(candidates, item.residual_taint, settings.NOISE_THRESHOLD_PCT)
        found = self._record(run, allocations, hop=item.hop + 1)
        logger.debug("%s: %d tainted output(s) at hop %d", item.address, found, item.hop + 1)

    def _record(self, run: _TraceRun, allocations: List[Allocation], hop: int) -> int:
        recorded = 0
        for a in allocations:
            if run.full:
                run.truncated = True
                break

            t = a.transfer
            output = TaintedOutput(
                address=t.to_address,
                amount=t.amount,
                taint_amount=a.taint_amount,
                taint_percent=a.taint_percent,
                signature=t.signature,
                timestamp=t.timestamp,
                hop=hop,
                entity=self.registry.resolve(t.to_address, t.is_swap_hint),
                asset=t.asset,
                symbol=t.symbol,
            )
            run.flow_graph.append(output)
            recorded += 1

            if output.is_terminal:
                run.endpoints.append(output)
            elif a.taint_percent > settings.CONTINUATION_THRESHOLD_PCT and hop < run.max_hops:
                run.queue.append(
                    FrontierItem(address=t.to_address, residual_taint=a.taint_amount, hop=hop, asset=t.asset)
                )
        return recorded

    # -------------------------
    # Helpers
    # -------------------------

    def _validate(self, cfg: TraceConfig) -> None:
        if not ADDRESS_RE.match((cfg.address or "").strip()):
            raise InvalidInputError(f"Invalid Solana address: {cfg.address!r}")

        if cfg.asset_mode not in ASSET_MODES:
            raise InvalidInputError(f"asset_mode must be one of {', '.join(ASSET_MODES)}")
        if cfg.asset_mode == "token" and not ADDRESS_RE.match((cfg.mint or "").strip()):
            raise InvalidInputError(f"Invalid token mint address: {cfg.mint!r}")

        if isinstance(cfg.hops, bool) or not isinstance(cfg.hops, int):
            raise InvalidInputError("hops must be an integer")
        if not settings.MIN_HOPS <= cfg.hops <= settings.MAX_HOPS:
            raise InvalidInputError(f"hops must be between {settings.MIN_HOPS} and {settings.MAX_HOPS}")

        if cfg.max_rows <= 0:
            raise InvalidInputError("max_rows must be > 0")
        if cfg.timeout_sec <= 0:
            raise InvalidInputError("timeout_sec must be > 0")

        amount = _parse_amount(cfg.amount)
        if amount is not None and (not amount.is_finite() or amount <= 0):
            raise InvalidInputError("Stolen amount must be > 0")

    def _select_asset(self, cfg: TraceConfig, outgoing: List[TransferEvent]) -> AssetKind:
        if cfg.asset_mode == "native":
            return AssetKind.native()
        if cfg.asset_mode == "token":
            return AssetKind.token((cfg.mint or "").strip())

        # auto: a token theft dwarfs the SOL spent on fees and rent
        native_total = sum((e.amount for e in outgoing if e.asset.is_native), Decimal("0"))
        token_total = sum((e.amount for e in outgoing if not e.asset.is_native), Decimal("0"))

        if token_total > native_total * settings.TOKEN_DOMINANCE_MULTIPLIER:
            for e in _chronological(outgoing):
                if not e.asset.is_native and e.amount > 0:
                    logger.info("Auto-detected token trace for mint %s", e.asset.mint)
                    return e.asset

        return AssetKind.native()


def _outgoing(events: Iterable[TransferEvent], address: str) -> List[TransferEvent]:
    return [e for e in events if e.is_outgoing_from(address) and e.amount > 0]


def _chronological(events: Iterable[TransferEvent]) -> List[TransferEvent]:
    # stable: same-second transfers keep source order
    return sorted(events, key=lambda e: e.timestamp)


def _asset_symbol(asset: AssetKind, transfers: List[TransferEvent]) -> str:
    if asset.is_native:
        return settings.NATIVE_SYMBOL
    for t in transfers:
        if t.symbol:
            return t.symbol
    return (asset.mint or "TOKEN")[:8]


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInputError(f"Invalid stolen amount: {value!r}") from exc

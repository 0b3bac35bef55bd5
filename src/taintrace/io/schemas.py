from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from taintrace.core.dto import AssetKind, TransferEvent
from taintrace.core.errors import InvalidInputError
from taintrace.core.models import EntityRef, TaintedOutput, TraceResult


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def _entity_to_dict(e: Optional[EntityRef]) -> Optional[Dict[str, Any]]:
    if e is None:
        return None
    return {"name": e.name, "category": e.category.value, "inferred": e.inferred}


def _output_to_dict(o: TaintedOutput) -> Dict[str, Any]:
    return {
        "address": o.address,
        "amount": _dec_to_str(o.amount),
        "taint_amount": _dec_to_str(o.taint_amount),
        "taint_percent": _dec_to_str(o.taint_percent),
        "signature": o.signature,
        "timestamp": o.timestamp,
        "hop": o.hop,
        "entity": _entity_to_dict(o.entity),
        "mint": o.asset.mint,
        "symbol": o.symbol,
    }


def trace_result_to_dict(r: TraceResult) -> Dict[str, Any]:
    s = r.summary
    return {
        "source_address": r.source_address,
        "asset": {
            "kind": "native" if r.asset.is_native else "token",
            "mint": r.asset.mint,
            "symbol": r.asset_symbol,
        },
        "max_hops": r.max_hops,
        "total_stolen": _dec_to_str(r.total_stolen),
        "traced_amount": _dec_to_str(r.traced_amount),
        "recovered_amount": _dec_to_str(r.recovered_amount),
        "summary": {
            "exchange_amount": _dec_to_str(s.exchange_amount),
            "swap_amount": _dec_to_str(s.swap_amount),
            "bridge_amount": _dec_to_str(s.bridge_amount),
            "untraced_amount": _dec_to_str(s.untraced_amount),
            "privacy_amount": _dec_to_str(s.privacy_amount),
        },
        "endpoints": [_output_to_dict(o) for o in r.endpoints],
        "flow_graph": [_output_to_dict(o) for o in r.flow_graph],
        "unreachable": list(r.unreachable),
        "truncated": r.truncated,
        "timed_out": r.timed_out,
    }


def transfer_events_from_list(rows: Iterable[Dict[str, Any]]) -> List[TransferEvent]:
    """
    Fixture rows: from, to, amount, signature, timestamp, optional mint,
    symbol and is_swap. A row without a mint is a native SOL transfer.
    """
    events: List[TransferEvent] = []
    for i, row in enumerate(rows):
        try:
            mint = row.get("mint")
            events.append(
                TransferEvent(
                    from_address=row["from"],
                    to_address=row["to"],
                    amount=Decimal(str(row["amount"])),
                    asset=AssetKind.token(mint) if mint else AssetKind.native(),
                    signature=row.get("signature", f"fixture-{i}"),
                    timestamp=int(row.get("timestamp", 0)),
                    is_swap_hint=bool(row.get("is_swap", False)),
                    symbol=row.get("symbol"),
                )
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise InvalidInputError(f"Invalid fixture row {i}: {e}") from e
    return events

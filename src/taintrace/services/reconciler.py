from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Sequence

from taintrace.core.models import EntityCategory, TaintedOutput, TraceResult, TraceSummary


ZERO = Decimal("0")


def _sum_category(rows: Iterable[TaintedOutput], category: EntityCategory) -> Decimal:
    return sum(
        (r.taint_amount for r in rows if r.entity is not None and r.entity.category == category),
        ZERO,
    )


def traced_amount(flow_graph: Sequence[TaintedOutput]) -> Decimal:
    """
    What actually left the victim: hop-1 rows only. Deeper hops describe the
    same taint moving further and would double count.
    """
    return sum((r.taint_amount for r in flow_graph if r.hop == 1), ZERO)


def reconcile(flow_graph: Sequence[TaintedOutput]) -> TraceSummary:
    """
    Category totals count every hop (an exchange reached at hop 3 is as
    recoverable as one at hop 1). Untraced is whatever of the traced amount
    no category accounts for, floored at zero.
    """
    exchange = _sum_category(flow_graph, EntityCategory.EXCHANGE)
    swap = _sum_category(flow_graph, EntityCategory.SWAP_VENUE)
    bridge = _sum_category(flow_graph, EntityCategory.BRIDGE)
    privacy = _sum_category(flow_graph, EntityCategory.PRIVACY_SERVICE)

    untraced = max(ZERO, traced_amount(flow_graph) - exchange - swap - bridge)

    return TraceSummary(
        exchange_amount=exchange,
        swap_amount=swap,
        bridge_amount=bridge,
        untraced_amount=untraced,
        privacy_amount=privacy,
    )


def contact_list(endpoints: Iterable[TaintedOutput]) -> List[str]:
    """Unique exchange names among the endpoints, first seen first."""
    names: List[str] = []
    for e in endpoints:
        if e.entity is None or e.entity.category != EntityCategory.EXCHANGE:
            continue
        if e.entity.name not in names:
            names.append(e.entity.name)
    return names


def recovery_percent(result: TraceResult) -> Decimal:
    if result.total_stolen <= 0:
        return ZERO
    return result.summary.exchange_amount / result.total_stolen * Decimal("100")

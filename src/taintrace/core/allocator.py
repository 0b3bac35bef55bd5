from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Sequence

from taintrace.core.dto import TransferEvent


ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Allocation:
    transfer: TransferEvent
    taint_amount: Decimal
    taint_percent: Decimal


def taint_percent(taint_amount: Decimal, amount: Decimal) -> Decimal:
    if amount <= 0:
        return ZERO
    return taint_amount / amount * HUNDRED


def allocate(
    transfers: Sequence[TransferEvent],
    budget: Decimal,
    min_percent: Decimal = ZERO,
) -> List[Allocation]:
    """
    FIFO taint allocation: the earliest outgoing transfer is tainted first,
    up to its full amount, before any later transfer receives taint.

    `transfers` must already be sorted by timestamp ascending.
    Allocations tainting less than `min_percent` of their transfer are noise:
    they are dropped and do not consume budget.
    """
    if budget <= 0:
        return []

    remaining = Decimal(budget)
    out: List[Allocation] = []

    for t in transfers:
        if remaining <= 0:
            break
        if t.amount <= 0:
            continue

        taint = min(remaining, t.amount)
        pct = taint_percent(taint, t.amount)
        if pct < min_percent:
            continue

        remaining -= taint
        out.append(Allocation(transfer=t, taint_amount=taint, taint_percent=pct))

    return out

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from taintrace.config import settings
from taintrace.core.dto import AssetKind



# Configuration model

@dataclass(frozen=True)
class TraceConfig:
    """
    User input / run configuration for a stolen-funds trace.
    """

    address: str
    amount: Optional[Decimal] = None   # None = taint everything that left
    asset_mode: str = "auto"           # auto | native | token
    mint: Optional[str] = None         # required when asset_mode == "token"
    hops: int = settings.DEFAULT_HOPS

    # termination guarantees
    timeout_sec: float = settings.TRACE_TIMEOUT_SEC
    max_rows: int = settings.MAX_FLOW_ROWS



# Entity models

class EntityCategory(str, Enum):
    EXCHANGE = "EXCHANGE"
    SWAP_VENUE = "SWAP_VENUE"
    BRIDGE = "BRIDGE"
    PRIVACY_SERVICE = "PRIVACY_SERVICE"

    @property
    def is_terminal(self) -> bool:
        # funds left the on-chain graph (KYC custody) or crossed chains
        return self in (EntityCategory.EXCHANGE, EntityCategory.BRIDGE)


@dataclass(frozen=True)
class EntityRef:
    name: str
    category: EntityCategory
    inferred: bool = False     # heuristic guess, not a registry hit



# Flow graph models

@dataclass(frozen=True)
class TaintedOutput:

    address: str
    amount: Decimal
    taint_amount: Decimal
    taint_percent: Decimal

    signature: str
    timestamp: int
    hop: int

    entity: Optional[EntityRef]
    asset: AssetKind
    symbol: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.entity is not None and self.entity.category.is_terminal


@dataclass(frozen=True)
class FrontierItem:

    address: str
    residual_taint: Decimal
    hop: int
    asset: AssetKind



# Result models

@dataclass(frozen=True)
class TraceSummary:

    exchange_amount: Decimal = Decimal("0")
    swap_amount: Decimal = Decimal("0")
    bridge_amount: Decimal = Decimal("0")
    untraced_amount: Decimal = Decimal("0")

    # informational, not part of the untraced formula
    privacy_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class TraceResult:

    source_address: str
    total_stolen: Decimal
    traced_amount: Decimal
    recovered_amount: Decimal

    endpoints: Tuple[TaintedOutput, ...]
    flow_graph: Tuple[TaintedOutput, ...]
    summary: TraceSummary

    asset: AssetKind
    asset_symbol: str
    max_hops: int

    unreachable: Tuple[str, ...] = field(default_factory=tuple)
    truncated: bool = False
    timed_out: bool = False

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class AssetKind:
    """
    Native SOL when `mint` is None, otherwise the SPL token with that mint.
    """

    mint: Optional[str] = None

    @classmethod
    def native(cls) -> "AssetKind":
        return cls(None)

    @classmethod
    def token(cls, mint: str) -> "AssetKind":
        if not mint:
            raise ValueError("token asset requires a mint")
        return cls(mint)

    @property
    def is_native(self) -> bool:
        return self.mint is None


@dataclass(frozen=True)
class TxMetadata:
    signature: str
    type: Optional[str] = None           # e.g. SWAP, TRANSFER
    source: Optional[str] = None         # e.g. JUPITER, SYSTEM_PROGRAM
    description: Optional[str] = None
    accounts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TransferEvent:
    from_address: str
    to_address: str
    amount: Decimal          # UI units (SOL, not lamports)
    asset: AssetKind
    signature: str
    timestamp: int
    is_swap_hint: bool = False
    symbol: Optional[str] = None

    def is_outgoing_from(self, address: str) -> bool:
        return self.from_address == address and self.to_address != address

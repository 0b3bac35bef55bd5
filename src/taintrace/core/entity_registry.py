from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from taintrace.core.dto import TxMetadata
from taintrace.core.models import EntityCategory, EntityRef


EX = EntityCategory.EXCHANGE
SWAP = EntityCategory.SWAP_VENUE
BRIDGE = EntityCategory.BRIDGE
PRIVACY = EntityCategory.PRIVACY_SERVICE

# Known Solana addresses from public sources
KNOWN_ENTITIES: Dict[str, Tuple[str, EntityCategory]] = {
    # ---- Centralized exchanges (KYC) ----
    "5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9": ("Binance", EX),
    "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM": ("Binance", EX),
    "BSwp6bEBihVLdqJRKGgzjcGLHkcTuzmSo1TQkHepzH8p": ("Binance", EX),
    "2ojv9BAiHUrvsm9gxDe7fJSzbNZSJcxZvf8dqmWGHG8S": ("Binance", EX),
    "H8sMJSCQxfKiFTCfDR3DUMLPwcRbM61LGFJ8N4dK3WjS": ("Coinbase", EX),
    "GJRs4FwHtemZ5ZE9x3FNvJ8TMwitKTh21yxdRPqn7npE": ("Coinbase", EX),
    "2AQdpHJ2JpcEgPiATUXjQxA8QmafFegfQwSLWSprPicm": ("Coinbase", EX),
    "FWznbcNXWQuHTawe9RxvQ2LdCENssh12dsznf4RiouN5": ("Kraken", EX),
    "5VCwKtCXgCJ6kit5FybXjvriW3xEPN2FGLFz2z4EJMk1": ("OKX", EX),
    "5MFjN1i7tCvFesLV3f9qXtCvhKPMk2VVjERG8YpbgoPT": ("OKX", EX),
    "AC5RDfQFmDS1deWZos921JfqscXdByf8BKHs5ACWjtW2": ("Bybit", EX),
    "u6PJ8DtQuPFnfmwHbGFULQ4u4EgjDiyYKjVEsynXq2w": ("Gate.io", EX),
    "BmFdpraQhkiDQE6SnfG5omcA1VwzqfXrwtNYBwWTymy6": ("KuCoin", EX),
    "AobVSwdW9BbpMdJvTqeCN4hPAmh4rHm7vwLnQ5ATSyrS": ("Crypto.com", EX),
    "ASTyfSima4LLAdDgoFGkgqoKowG1LZFDr9fAQrg7iaJZ": ("MEXC", EX),
    "88xTWZMeKfiTgbfEmPLdsUCQcZinwUfk25EBQZ21XMAZ": ("Huobi", EX),

    # ---- DEX programs / pools ----
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4": ("Jupiter v6", SWAP),
    "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB": ("Jupiter v4", SWAP),
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8": ("Raydium AMM", SWAP),
    "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK": ("Raydium CLMM", SWAP),
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc": ("Orca Whirlpool", SWAP),
    "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP": ("Orca v2", SWAP),
    "srmqPvymJeFKQ4zGQed1GFppgkRHL9kaELCbyksJtPX": ("Serum/OpenBook", SWAP),
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo": ("Meteora DLMM", SWAP),
    "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB": ("Meteora Pools", SWAP),
    "PhoeNiXZ8ByJGLkxNfZRnkUfjvmuYqLR89jjFHGqdXY": ("Phoenix", SWAP),
    "FLUXubRmkEi2q6K3Y2pBhfTJFRgJQVxFYooL3A8B8r4t": ("FluxBeam", SWAP),
    "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1": ("Raydium Pool", SWAP),

    # ---- Bridges ----
    "wormDTUJ6AWPNvk59vGQbDvGJmqbDTdgWgAqcLBCgUb": ("Wormhole", BRIDGE),
    "worm2ZoG2kUd4vFXhvjh93UUH596ayRfgQ2MgjNMTth": ("Wormhole v2", BRIDGE),

    # ---- Privacy ----
    "eLeN4F2oB4Ay9onMP9P4X8jCYvJYS1XhyoCg9hbrKv3": ("Elusiv", PRIVACY),
    "CLoUDKc4Ane7HeQcPpE3YHnznRxhMimJ4MyaUqyHFzAn": ("Light Protocol", PRIVACY),
}

# Program ids whose presence in a transaction marks it as a swap
SWAP_PROGRAMS: FrozenSet[str] = frozenset({
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",  # Jupiter v6
    "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB",  # Jupiter v4
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",  # Raydium AMM
    "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",  # Raydium CLMM
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",  # Orca Whirlpool
    "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",  # Orca v2
    "srmqPvymJeFKQ4zGQed1GFppgkRHL9kaELCbyksJtPX",  # Serum
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo",  # Meteora
    "PhoeNiXZ8ByJGLkxNfZRnkUfjvmuYqLR89jjFHGqdXY",  # Phoenix
})

SWAP_TX_TYPES = frozenset({"SWAP", "JUPITER_SWAP"})
SWAP_TX_SOURCES = frozenset({"JUPITER", "RAYDIUM"})

INFERRED_SWAP_NAME = "DEX Swap"


class EntityRegistry:
    """
    Static address -> entity lookup plus the swap heuristic.

    Registry hits are confirmed; `infer_swap` is a separate guessing step and
    its entities carry `inferred=True`.
    """

    def __init__(
        self,
        entities: Optional[Mapping[str, Tuple[str, EntityCategory]]] = None,
        swap_programs: Optional[Iterable[str]] = None,
    ) -> None:
        table = KNOWN_ENTITIES if entities is None else entities
        self._entities: Dict[str, EntityRef] = {
            addr: EntityRef(name=name, category=cat) for addr, (name, cat) in table.items()
        }
        self._swap_programs = frozenset(SWAP_PROGRAMS if swap_programs is None else swap_programs)

    def classify(self, address: str) -> Optional[EntityRef]:
        return self._entities.get(address)

    def looks_like_swap(self, meta: Optional[TxMetadata]) -> bool:
        if meta is None:
            return False

        if (meta.type or "").upper() in SWAP_TX_TYPES:
            return True
        if (meta.source or "").upper() in SWAP_TX_SOURCES:
            return True
        if "swap" in (meta.description or "").lower():
            return True

        return any(a in self._swap_programs for a in meta.accounts)

    def infer_swap(self, address: str, is_swap_hint: bool) -> Optional[EntityRef]:
        if not is_swap_hint or self.classify(address) is not None:
            return None
        return EntityRef(name=INFERRED_SWAP_NAME, category=EntityCategory.SWAP_VENUE, inferred=True)

    def resolve(self, address: str, is_swap_hint: bool = False) -> Optional[EntityRef]:
        """Registry hit first, heuristic swap guess second."""
        return self.classify(address) or self.infer_swap(address, is_swap_hint)

from taintrace.core.dto import TransferEvent
from taintrace.core.errors import DataSourceError
from taintrace.ports.transaction_source_port import TransactionSourcePort
from typing import Iterable, List, Optional

class StaticTransactionSource(TransactionSourcePort):
    def __init__(self,
                 transfers: Optional[List[TransferEvent]] = None,
                 failing_addresses: Optional[Iterable[str]] = None,
                 ):
        self._transfers = list(transfers or [])
        self._failing = set(failing_addresses or [])
        self.calls: List[str] = []
        self.timeouts: List[Optional[float]] = []

    def fetch_transfers(self, address, asset=None, limit=100, timeout=None):
        self.calls.append(address)
        self.timeouts.append(timeout)
        if address in self._failing:
            raise DataSourceError(f"static source: {address} unavailable")

        items = [
            t for t in self._transfers
            if (t.from_address == address or t.to_address == address)
            and (asset is None or t.asset == asset)
        ]
        # newest first, like the live API
        items.sort(key=lambda x: x.timestamp, reverse=True)
        return items[:limit]

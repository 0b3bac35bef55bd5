from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from taintrace.core.dto import AssetKind, TransferEvent


class TransactionSourcePort(ABC):
    """
    Abstract Class for fetching transfer events touching an address.
    """

    # --- Transfers (native + token) ---

    @abstractmethod
    def fetch_transfers(
        self,
        address: str,
        asset: Optional[AssetKind] = None,
        limit: int = 100,
        timeout: Optional[float] = None,
    ) -> List[TransferEvent]:
        """
        Transfers sent or received by `address` among its `limit` most recent
        transactions, restricted to `asset` when given.

        `timeout` is the caller's remaining time budget in seconds; retries and
        waits must not run past it.

        An empty list is a valid answer. Failures raise DataSourceError
        (or its DataSourceTimeoutError / RateLimitError subclasses).
        """
        raise NotImplementedError

import logging
import re
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests

from taintrace.config.settings import (
    HELIUS_API_KEY,
    HELIUS_BASE_URL,
    HELIUS_REQUESTS_PER_SEC,
    HELIUS_TIMEOUT_SEC,
    HELIUS_MAX_RETRIES,
    LAMPORTS_PER_SOL,
)

from taintrace.adapters.chain.rate_limiter import SimpleRateLimiter, backoff_sleep
from taintrace.core.dto import AssetKind, TransferEvent, TxMetadata
from taintrace.core.entity_registry import EntityRegistry
from taintrace.core.errors import DataSourceError, DataSourceTimeoutError, RateLimitError
from taintrace.ports.transaction_source_port import TransactionSourcePort


logger = logging.getLogger(__name__)

# "... transferred 1,000 USDC to ..."
_SYMBOL_RE = re.compile(r"transferred [\d,.]+ (\w+) to")


class HeliusTransactionSource(TransactionSourcePort):
    """
    Transfers from the Helius enhanced transactions API (Solana).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        registry: Optional[EntityRegistry] = None,
        session: Optional[requests.Session] = None,
        requests_per_sec: float = HELIUS_REQUESTS_PER_SEC,
    ) -> None:
        self._api_key = api_key or HELIUS_API_KEY
        self._base_url = HELIUS_BASE_URL.rstrip("/")
        self._timeout = HELIUS_TIMEOUT_SEC
        self._max_retries = HELIUS_MAX_RETRIES

        self._registry = registry or EntityRegistry()
        self._rl = SimpleRateLimiter(requests_per_sec)
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _call(self, address: str, limit: int, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        url = f"{self._base_url}/addresses/{address}/transactions"
        params = {"api-key": self._api_key, "limit": int(limit)}

        # retries and backoff share the caller's time budget
        deadline = time.monotonic() + timeout if timeout is not None else None
        last_err: Optional[DataSourceError] = None

        for attempt in range(self._max_retries):
            self._rl.wait()
            request_timeout = self._timeout
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise DataSourceTimeoutError(f"Helius time budget exhausted for {address}") from last_err
                request_timeout = min(request_timeout, remaining)
            try:
                resp = self._session.get(url, params=params, timeout=request_timeout)
            except requests.Timeout as e:
                last_err = DataSourceTimeoutError(f"Helius timed out for {address}: {e}")
                logger.warning("%s (attempt %d)", last_err, attempt + 1)
                backoff_sleep(attempt)
                continue
            except requests.RequestException as e:
                last_err = DataSourceError(f"Helius request failed for {address}: {e}")
                logger.warning("%s (attempt %d)", last_err, attempt + 1)
                backoff_sleep(attempt)
                continue

            if resp.status_code == 429:
                last_err = RateLimitError(f"Helius rate limit hit for {address}")
                logger.warning("%s (attempt %d)", last_err, attempt + 1)
                backoff_sleep(attempt, retry_after=_retry_after(resp))
                continue

            if resp.status_code in (401, 403):
                raise DataSourceError(f"Helius rejected the API key (HTTP {resp.status_code})")

            if resp.status_code >= 500:
                last_err = DataSourceError(f"Helius HTTP {resp.status_code} for {address}")
                logger.warning("%s (attempt %d)", last_err, attempt + 1)
                backoff_sleep(attempt)
                continue

            if resp.status_code >= 400:
                raise DataSourceError(f"Helius HTTP {resp.status_code} for {address}: {resp.text[:200]}")

            try:
                data = resp.json()
            except ValueError as e:
                raise DataSourceError(f"Invalid Helius response for {address}") from e

            return data if isinstance(data, list) else []

        raise last_err or DataSourceError(f"Helius failed after retries for {address}")

    def _metadata(self, tx: Dict[str, Any]) -> TxMetadata:
        accounts = tuple(
            a.get("account") for a in (tx.get("accountData") or []) if a.get("account")
        )
        return TxMetadata(
            signature=tx.get("signature", ""),
            type=tx.get("type"),
            source=tx.get("source"),
            description=tx.get("description"),
            accounts=accounts,
        )

    def _parse(self, tx: Dict[str, Any], address: str, asset: Optional[AssetKind]) -> List[TransferEvent]:
        meta = self._metadata(tx)
        is_swap = self._registry.looks_like_swap(meta)
        ts = int(tx.get("timestamp") or 0)

        out: List[TransferEvent] = []

        if asset is None or asset.is_native:
            for nt in tx.get("nativeTransfers") or []:
                src = nt.get("fromUserAccount") or ""
                dst = nt.get("toUserAccount") or ""
                if address not in (src, dst):
                    continue
                lamports = _to_decimal(nt.get("amount"))
                out.append(
                    TransferEvent(
                        from_address=src,
                        to_address=dst,
                        amount=lamports / LAMPORTS_PER_SOL,
                        asset=AssetKind.native(),
                        signature=meta.signature,
                        timestamp=ts,
                        is_swap_hint=is_swap,
                    )
                )

        if asset is None or not asset.is_native:
            match = _SYMBOL_RE.search(meta.description or "")
            symbol = match.group(1) if match else None

            for tt in tx.get("tokenTransfers") or []:
                src = tt.get("fromUserAccount") or ""
                dst = tt.get("toUserAccount") or ""
                mint = tt.get("mint") or ""
                if address not in (src, dst) or not mint:
                    continue
                if asset is not None and asset.mint != mint:
                    continue
                out.append(
                    TransferEvent(
                        from_address=src,
                        to_address=dst,
                        amount=_to_decimal(tt.get("tokenAmount")),
                        asset=AssetKind.token(mint),
                        signature=meta.signature,
                        timestamp=ts,
                        is_swap_hint=is_swap,
                        symbol=symbol,
                    )
                )

        return out

    # ---------- port methods ----------

    def fetch_transfers(
        self,
        address: str,
        asset: Optional[AssetKind] = None,
        limit: int = 100,
        timeout: Optional[float] = None,
    ) -> List[TransferEvent]:
        txs = self._call(address, limit, timeout)
        logger.debug("Helius returned %d transaction(s) for %s", len(txs), address)

        events: List[TransferEvent] = []
        for tx in txs:
            if not isinstance(tx, dict):
                continue
            try:
                events.extend(self._parse(tx, address, asset))
            except Exception as e:
                raise DataSourceError(f"Invalid Helius transaction for {address}: {tx.get('signature')!r}") from e
        return events


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        # str() keeps float token amounts from leaking binary noise
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def _retry_after(resp: requests.Response) -> Optional[float]:
    raw = resp.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None

import unittest
from decimal import Decimal
from unittest import mock

import requests

from taintrace.adapters.chain.helius_adapter import HeliusTransactionSource
from taintrace.core.dto import AssetKind
from taintrace.core.errors import DataSourceError, DataSourceTimeoutError
from taintrace.core.models import TraceConfig
from taintrace.services.taint_service import TaintTraceService


WALLET = "Wa11et1111111111111111111111111111111111"
OTHER = "0ther1111111111111111111111111111111111"
MINT = "Mint111111111111111111111111111111111111"
JUPITER = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"


def _response(status=200, payload=None, headers=None):
    resp = mock.MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.text = ""
    resp.json.return_value = payload if payload is not None else []
    return resp


TXS = [
    {
        "signature": "sigNative",
        "timestamp": 1700000000,
        "type": "TRANSFER",
        "source": "SYSTEM_PROGRAM",
        "description": "wallet transferred 1.5 SOL to other.",
        "nativeTransfers": [
            {"fromUserAccount": WALLET, "toUserAccount": OTHER, "amount": 1500000000},
            {"fromUserAccount": "Fee1111", "toUserAccount": "Fee2222", "amount": 5000},
        ],
        "tokenTransfers": [],
        "accountData": [{"account": WALLET}, {"account": OTHER}],
    },
    {
        "signature": "sigToken",
        "timestamp": 1700000100,
        "type": "UNKNOWN",
        "source": "UNKNOWN",
        "description": "wallet transferred 12.5 USDC to other.",
        "nativeTransfers": [],
        "tokenTransfers": [
            {"fromUserAccount": WALLET, "toUserAccount": OTHER, "tokenAmount": 12.5, "mint": MINT},
        ],
        "accountData": [{"account": JUPITER}],
    },
]


class HeliusTransactionSourceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.MagicMock()
        self.source = HeliusTransactionSource(api_key="test-key", session=self.session, requests_per_sec=1000)
        patcher = mock.patch("taintrace.adapters.chain.helius_adapter.backoff_sleep")
        self.backoff = patcher.start()
        self.addCleanup(patcher.stop)

    def test_parses_native_and_token_transfers(self) -> None:
        self.session.get.return_value = _response(payload=TXS)

        events = self.source.fetch_transfers(WALLET, limit=50)

        self.assertEqual(len(events), 2)
        native, token = events
        self.assertEqual(native.amount, Decimal("1.5"))
        self.assertTrue(native.asset.is_native)
        self.assertEqual((native.from_address, native.to_address), (WALLET, OTHER))
        self.assertEqual(native.timestamp, 1700000000)
        self.assertFalse(native.is_swap_hint)

        self.assertEqual(token.amount, Decimal("12.5"))
        self.assertEqual(token.asset, AssetKind.token(MINT))
        self.assertEqual(token.symbol, "USDC")
        # Jupiter program referenced by the transaction
        self.assertTrue(token.is_swap_hint)

        args, kwargs = self.session.get.call_args
        self.assertTrue(args[0].endswith(f"/addresses/{WALLET}/transactions"))
        self.assertEqual(kwargs["params"], {"api-key": "test-key", "limit": 50})

    def test_asset_filter(self) -> None:
        self.session.get.return_value = _response(payload=TXS)

        native = self.source.fetch_transfers(WALLET, AssetKind.native())
        token = self.source.fetch_transfers(WALLET, AssetKind.token(MINT))
        other_token = self.source.fetch_transfers(WALLET, AssetKind.token(OTHER))

        self.assertEqual([e.signature for e in native], ["sigNative"])
        self.assertEqual([e.signature for e in token], ["sigToken"])
        self.assertEqual(other_token, [])

    def test_empty_history(self) -> None:
        self.session.get.return_value = _response(payload=[])
        self.assertEqual(self.source.fetch_transfers(WALLET), [])

    def test_retries_after_rate_limit(self) -> None:
        self.session.get.side_effect = [
            _response(status=429, headers={"Retry-After": "1"}),
            _response(payload=TXS[:1]),
        ]

        events = self.source.fetch_transfers(WALLET)

        self.assertEqual(len(events), 1)
        self.assertEqual(self.session.get.call_count, 2)
        self.backoff.assert_called_once_with(0, retry_after=1.0)

    def test_timeout_after_retries(self) -> None:
        self.session.get.side_effect = requests.Timeout("slow")

        with self.assertRaises(DataSourceTimeoutError):
            self.source.fetch_transfers(WALLET)
        self.assertEqual(self.session.get.call_count, 3)

    def test_rejected_key_is_not_retried(self) -> None:
        self.session.get.return_value = _response(status=401)

        with self.assertRaises(DataSourceError):
            self.source.fetch_transfers(WALLET)
        self.assertEqual(self.session.get.call_count, 1)

    def test_invalid_json(self) -> None:
        resp = _response()
        resp.json.side_effect = ValueError("not json")
        self.session.get.return_value = resp

        with self.assertRaises(DataSourceError):
            self.source.fetch_transfers(WALLET)

    def test_request_timeout_is_bounded_by_budget(self) -> None:
        self.session.get.return_value = _response(payload=[])

        self.source.fetch_transfers(WALLET, timeout=2.5)

        _, kwargs = self.session.get.call_args
        self.assertLessEqual(kwargs["timeout"], 2.5)
        self.assertGreater(kwargs["timeout"], 0)

    def test_exhausted_budget_skips_the_request(self) -> None:
        with self.assertRaises(DataSourceTimeoutError):
            self.source.fetch_transfers(WALLET, timeout=0)
        self.session.get.assert_not_called()

    def test_malformed_transaction(self) -> None:
        self.session.get.return_value = _response(payload=[dict(TXS[0], timestamp="n/a")])

        with self.assertRaises(DataSourceError):
            self.source.fetch_transfers(WALLET)

    def test_malformed_branch_is_unreachable_in_trace(self) -> None:
        victim = "Victim1111111111111111111111111111111111"
        a = "A" * 40
        b = "B" * 40
        c = "C" * 40

        def native(signature, ts, src, dst, sol):
            return {
                "signature": signature,
                "timestamp": ts,
                "type": "TRANSFER",
                "source": "SYSTEM_PROGRAM",
                "nativeTransfers": [{"fromUserAccount": src, "toUserAccount": dst, "amount": sol * 1000000000}],
            }

        self.session.get.side_effect = [
            _response(payload=[native("sig2", 2, victim, b, 50), native("sig1", 1, victim, a, 50)]),
            _response(payload=[native("sigA", "n/a", a, c, 50)]),
            _response(payload=[native("sigB", 3, b, c, 50)]),
        ]
        svc = TaintTraceService(source=self.source)

        result = svc.trace(TraceConfig(address=victim, hops=2))

        self.assertEqual(result.unreachable, (a,))
        self.assertEqual(
            [(o.address, o.hop, o.signature) for o in result.flow_graph],
            [(a, 1, "sig1"), (b, 1, "sig2"), (c, 2, "sigB")],
        )
        self.assertEqual(self.session.get.call_count, 3)


if __name__ == "__main__":
    unittest.main()

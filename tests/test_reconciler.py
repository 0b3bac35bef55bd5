import unittest
from decimal import Decimal

from taintrace.core.dto import AssetKind
from taintrace.core.models import EntityCategory, EntityRef, TaintedOutput, TraceResult, TraceSummary
from taintrace.services.reconciler import contact_list, reconcile, recovery_percent, traced_amount


def _row(address, taint, hop, entity=None) -> TaintedOutput:
    taint = Decimal(str(taint))
    return TaintedOutput(
        address=address,
        amount=taint,
        taint_amount=taint,
        taint_percent=Decimal("100"),
        signature=f"sig-{address}-{hop}",
        timestamp=hop,
        hop=hop,
        entity=entity,
        asset=AssetKind.native(),
    )


BINANCE = EntityRef("Binance", EntityCategory.EXCHANGE)
KRAKEN = EntityRef("Kraken", EntityCategory.EXCHANGE)
WORMHOLE = EntityRef("Wormhole", EntityCategory.BRIDGE)
DEX = EntityRef("DEX Swap", EntityCategory.SWAP_VENUE, inferred=True)
MIXER = EntityRef("Elusiv", EntityCategory.PRIVACY_SERVICE)


class ReconcilerTests(unittest.TestCase):
    def test_traced_counts_first_hop_only(self) -> None:
        rows = [_row("a", 60, 1), _row("b", 40, 1), _row("c", 60, 2), _row("d", 60, 3)]
        self.assertEqual(traced_amount(rows), Decimal("100"))

    def test_categories_count_every_hop(self) -> None:
        rows = [
            _row("a", 70, 1),
            _row("pool", 30, 1, DEX),
            _row("ex", 50, 2, BINANCE),
            _row("br", 10, 3, WORMHOLE),
            _row("mix", 5, 3, MIXER),
        ]

        s = reconcile(rows)

        self.assertEqual(s.exchange_amount, Decimal("50"))
        self.assertEqual(s.swap_amount, Decimal("30"))
        self.assertEqual(s.bridge_amount, Decimal("10"))
        self.assertEqual(s.privacy_amount, Decimal("5"))
        self.assertEqual(s.untraced_amount, Decimal("10"))

    def test_untraced_is_never_negative(self) -> None:
        rows = [_row("a", 100, 1), _row("ex", 80, 2, BINANCE), _row("pool", 50, 2, DEX)]

        self.assertEqual(reconcile(rows).untraced_amount, Decimal("0"))

    def test_empty_flow_graph(self) -> None:
        s = reconcile([])
        self.assertEqual(s, TraceSummary())

    def test_contact_list_is_unique_exchange_names(self) -> None:
        endpoints = [
            _row("ex1", 1, 1, BINANCE),
            _row("br", 1, 1, WORMHOLE),
            _row("ex2", 1, 2, KRAKEN),
            _row("ex3", 1, 2, BINANCE),
        ]
        self.assertEqual(contact_list(endpoints), ["Binance", "Kraken"])

    def test_recovery_percent(self) -> None:
        def result(total, exchange):
            return TraceResult(
                source_address="v",
                total_stolen=Decimal(total),
                traced_amount=Decimal(total),
                recovered_amount=Decimal(exchange),
                endpoints=(),
                flow_graph=(),
                summary=TraceSummary(exchange_amount=Decimal(exchange)),
                asset=AssetKind.native(),
                asset_symbol="SOL",
                max_hops=3,
            )

        self.assertEqual(recovery_percent(result("200", "50")), Decimal("25"))
        self.assertEqual(recovery_percent(result("0", "0")), Decimal("0"))


if __name__ == "__main__":
    unittest.main()

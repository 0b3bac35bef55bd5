import unittest

from taintrace.core.dto import TxMetadata
from taintrace.core.entity_registry import INFERRED_SWAP_NAME, EntityRegistry
from taintrace.core.models import EntityCategory


BINANCE = "5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9"
JUPITER = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
WORMHOLE = "wormDTUJ6AWPNvk59vGQbDvGJmqbDTdgWgAqcLBCgUb"
UNKNOWN = "Unknown1111111111111111111111111111111111"


class EntityRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = EntityRegistry()

    def test_classify_known_addresses(self) -> None:
        binance = self.registry.classify(BINANCE)
        self.assertEqual(binance.name, "Binance")
        self.assertEqual(binance.category, EntityCategory.EXCHANGE)
        self.assertFalse(binance.inferred)

        self.assertEqual(self.registry.classify(JUPITER).category, EntityCategory.SWAP_VENUE)
        self.assertEqual(self.registry.classify(WORMHOLE).category, EntityCategory.BRIDGE)

    def test_classify_is_exact_match(self) -> None:
        self.assertIsNone(self.registry.classify(UNKNOWN))
        self.assertIsNone(self.registry.classify(BINANCE.lower()))

    def test_looks_like_swap_markers(self) -> None:
        self.assertTrue(self.registry.looks_like_swap(TxMetadata("s1", type="SWAP")))
        self.assertTrue(self.registry.looks_like_swap(TxMetadata("s2", type="JUPITER_SWAP")))
        self.assertTrue(self.registry.looks_like_swap(TxMetadata("s3", source="RAYDIUM")))
        self.assertTrue(self.registry.looks_like_swap(TxMetadata("s4", description="X swapped 1 SOL for 150 USDC")))
        self.assertTrue(self.registry.looks_like_swap(TxMetadata("s5", type="UNKNOWN", accounts=(UNKNOWN, JUPITER))))

    def test_plain_transfer_is_not_a_swap(self) -> None:
        meta = TxMetadata("s6", type="TRANSFER", source="SYSTEM_PROGRAM", description="A transferred 1 SOL to B", accounts=(UNKNOWN,))
        self.assertFalse(self.registry.looks_like_swap(meta))
        self.assertFalse(self.registry.looks_like_swap(None))

    def test_infer_swap_is_labelled_and_only_for_unregistered(self) -> None:
        guess = self.registry.infer_swap(UNKNOWN, is_swap_hint=True)
        self.assertEqual(guess.name, INFERRED_SWAP_NAME)
        self.assertEqual(guess.category, EntityCategory.SWAP_VENUE)
        self.assertTrue(guess.inferred)

        self.assertIsNone(self.registry.infer_swap(UNKNOWN, is_swap_hint=False))
        self.assertIsNone(self.registry.infer_swap(BINANCE, is_swap_hint=True))

    def test_resolve_prefers_registry_hit(self) -> None:
        self.assertEqual(self.registry.resolve(BINANCE, is_swap_hint=True).name, "Binance")
        self.assertTrue(self.registry.resolve(UNKNOWN, is_swap_hint=True).inferred)
        self.assertIsNone(self.registry.resolve(UNKNOWN))

    def test_custom_tables(self) -> None:
        registry = EntityRegistry(
            entities={UNKNOWN: ("Test Exchange", EntityCategory.EXCHANGE)},
            swap_programs={"Prog111111111111111111111111111111"},
        )
        self.assertEqual(registry.classify(UNKNOWN).name, "Test Exchange")
        self.assertIsNone(registry.classify(BINANCE))
        self.assertTrue(registry.looks_like_swap(TxMetadata("s7", accounts=("Prog111111111111111111111111111111",))))
        self.assertFalse(registry.looks_like_swap(TxMetadata("s8", accounts=(JUPITER,))))


if __name__ == "__main__":
    unittest.main()

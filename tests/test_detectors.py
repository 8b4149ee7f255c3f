import unittest
from decimal import Decimal

from lineage.adapters.ledger.static_ledger_adapter import StaticLedgerAdapter
from lineage.core.enums import PatternType, Severity, TouchDirection
from lineage.core.models import AddressChainEntry, AddressTouch, LineageConfig
from lineage.detectors.layering import LayeringDetector
from lineage.detectors.loop import LoopDetector
from lineage.detectors.mixer import MixerDetector, bucket_value
from lineage.detectors.peeling import PeelingChainDetector
from lineage.detectors.succession import FastSuccessionDetector
from lineage.detectors.time_anomaly import TimeAnomalyDetector, in_window
from lineage.services.graph_builder import GraphBuilder

from ledger_fixtures import BASE_TS, MIDNIGHT_TS, chain_graph, h, tx


CFG = LineageConfig()


def _peel(n: int, ts: int = BASE_TS):
    return tx(n, ts, inputs=[("in", "10")], outputs=[("change", "9"), ("peel", "1")])


class MixerDetectorTests(unittest.TestCase):
    def _mix_tx(self, n_inputs: int, values):
        return tx(
            1,
            inputs=[(f"in{i}", "1") for i in range(n_inputs)],
            outputs=[(f"out{i}", v) for i, v in enumerate(values)],
        )

    def test_three_outputs_in_one_bucket_flag_a_mixer(self) -> None:
        graph = chain_graph([self._mix_tx(5, ["0.5", "0.501", "0.499", "1.2", "2.7"])])

        found = MixerDetector().detect(graph, CFG)

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].type, PatternType.MIXER)
        self.assertEqual(found[0].severity, Severity.HIGH)
        self.assertEqual(found[0].details["bucket_count"], 3)

    def test_few_inputs_never_flag(self) -> None:
        graph = chain_graph([self._mix_tx(3, ["0.5", "0.5", "0.5", "0.5", "0.5"])])

        self.assertEqual(MixerDetector().detect(graph, CFG), [])

    def test_distinct_values_do_not_flag(self) -> None:
        graph = chain_graph([self._mix_tx(5, ["0.1", "0.2", "0.3", "0.4", "0.5"])])

        self.assertEqual(MixerDetector().detect(graph, CFG), [])

    def test_majority_bucket_flags_with_lower_bucket_minimum(self) -> None:
        cfg = LineageConfig(mixer_min_bucket_count=4)
        graph = chain_graph([self._mix_tx(4, ["0.3", "0.3", "0.3", "0.7", "0.9", "1.1"])])

        found = MixerDetector().detect(graph, cfg)

        self.assertEqual(len(found), 1)

    def test_bucket_rounds_half_up(self) -> None:
        self.assertEqual(bucket_value(Decimal("0.005"), Decimal("0.01")), Decimal("0.01"))
        self.assertEqual(bucket_value(Decimal("0.0149"), Decimal("0.01")), Decimal("0.01"))


class PeelingChainDetectorTests(unittest.TestCase):
    def test_four_peels_form_one_chain(self) -> None:
        graph = chain_graph([_peel(n, BASE_TS + n * 3600) for n in range(1, 5)])

        found = PeelingChainDetector().detect(graph, CFG)

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].type, PatternType.PEELING_CHAIN)
        self.assertEqual(found[0].severity, Severity.MEDIUM)
        self.assertEqual(found[0].evidence, tuple(h(n) for n in range(1, 5)))

    def test_two_peels_are_below_minimum(self) -> None:
        graph = chain_graph([_peel(1), _peel(2, BASE_TS + 3600)])

        self.assertEqual(PeelingChainDetector().detect(graph, CFG), [])

    def test_even_split_breaks_the_chain(self) -> None:
        even = tx(3, BASE_TS + 7200, outputs=[("a", "5"), ("b", "4")])
        graph = chain_graph([_peel(1), _peel(2, BASE_TS + 3600), even, _peel(4, BASE_TS + 9000)])

        self.assertEqual(PeelingChainDetector().detect(graph, CFG), [])


class FastSuccessionDetectorTests(unittest.TestCase):
    def test_300_seconds_is_fast(self) -> None:
        graph = chain_graph([tx(1, BASE_TS), tx(2, BASE_TS + 300)])

        found = FastSuccessionDetector().detect(graph, CFG)

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].evidence, (h(1), h(2)))
        self.assertEqual(found[0].severity, Severity.MEDIUM)

    def test_900_seconds_is_not(self) -> None:
        graph = chain_graph([tx(1, BASE_TS), tx(2, BASE_TS + 900)])

        self.assertEqual(FastSuccessionDetector().detect(graph, CFG), [])

    def test_window_boundary_is_exclusive(self) -> None:
        graph = chain_graph([tx(1, BASE_TS), tx(2, BASE_TS + 600)])

        self.assertEqual(FastSuccessionDetector().detect(graph, CFG), [])

    def test_unknown_timestamp_is_skipped(self) -> None:
        graph = chain_graph([tx(1, BASE_TS), tx(2, None)])

        self.assertEqual(FastSuccessionDetector().detect(graph, CFG), [])


class TimeAnomalyDetectorTests(unittest.TestCase):
    def test_root_at_two_am_is_flagged(self) -> None:
        graph = chain_graph([tx(1, MIDNIGHT_TS + 2 * 3600 + 5 * 60)])

        found = TimeAnomalyDetector().detect(graph, CFG)

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].severity, Severity.LOW)
        self.assertIn("02:05", found[0].description)

    def test_evening_root_is_not_flagged(self) -> None:
        graph = chain_graph([tx(1, BASE_TS)])

        self.assertEqual(TimeAnomalyDetector().detect(graph, CFG), [])

    def test_descendants_are_ignored(self) -> None:
        graph = chain_graph([tx(1, BASE_TS), tx(2, MIDNIGHT_TS + 3600)])

        self.assertEqual(TimeAnomalyDetector().detect(graph, CFG), [])

    def test_window_may_wrap_midnight(self) -> None:
        self.assertTrue(in_window(23, 22, 4))
        self.assertTrue(in_window(3, 22, 4))
        self.assertFalse(in_window(12, 22, 4))


class LayeringDetectorTests(unittest.TestCase):
    def test_paths_converging_on_one_address(self) -> None:
        txs = [
            tx(1, outputs=[("b", "2", 2), ("c", "1", 3)]),
            tx(2, BASE_TS + 3600, inputs=[("b", "2")], outputs=[("merge", "1.9")]),
            tx(3, BASE_TS + 3600, inputs=[("c", "1")], outputs=[("merge", "0.9")]),
        ]
        graph = GraphBuilder(StaticLedgerAdapter(transactions=txs)).build_lineage(h(1))

        found = LayeringDetector().detect(graph, CFG)

        self.assertEqual([p.evidence[0] for p in found], [h(2), h(3)])
        self.assertTrue(all(p.severity is Severity.HIGH for p in found))
        self.assertEqual(found[0].details["path_length"], 2)
        self.assertEqual(found[0].evidence, (h(2), h(3)))

    def test_single_source_is_not_layering(self) -> None:
        txs = [
            tx(1, outputs=[("b", "2", 2)]),
            tx(2, BASE_TS + 3600, inputs=[("b", "2")], outputs=[("end", "1.9")]),
        ]
        graph = GraphBuilder(StaticLedgerAdapter(transactions=txs)).build_lineage(h(1))

        self.assertEqual(LayeringDetector().detect(graph, CFG), [])


class LoopDetectorTests(unittest.TestCase):
    def test_direct_cycle_from_builder(self) -> None:
        txs = [
            tx(1, outputs=[("b", "1", 2)]),
            tx(2, BASE_TS + 60, inputs=[("b", "1")], outputs=[("c", "1", 1)]),
        ]
        graph = GraphBuilder(StaticLedgerAdapter(transactions=txs)).build_lineage(h(1))

        found = [p for p in LoopDetector().detect(graph, CFG) if p.details["kind"] == "direct"]

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].evidence, (h(1), h(2), h(1)))
        self.assertEqual(found[0].severity, Severity.HIGH)

    def test_address_sending_then_receiving_again(self) -> None:
        graph = chain_graph([tx(1)])
        graph.address_chains["a"] = AddressChainEntry(
            address="a",
            touches=[
                AddressTouch(h(5), TouchDirection.RECEIVED, Decimal("1"), BASE_TS - 10),
                AddressTouch(h(6), TouchDirection.SENT, Decimal("1"), BASE_TS),
                AddressTouch(h(7), TouchDirection.RECEIVED, Decimal("0.9"), BASE_TS + 10),
            ],
        )

        found = LoopDetector().detect(graph, CFG)

        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].details, {"kind": "multi_hop", "address": "a"})
        self.assertEqual(found[0].evidence, (h(6), h(7)))

    def test_receive_then_spend_is_ordinary(self) -> None:
        graph = chain_graph([tx(1)])
        graph.address_chains["a"] = AddressChainEntry(
            address="a",
            touches=[
                AddressTouch(h(5), TouchDirection.RECEIVED, Decimal("1"), BASE_TS),
                AddressTouch(h(6), TouchDirection.SENT, Decimal("1"), BASE_TS + 10),
            ],
        )

        self.assertEqual(LoopDetector().detect(graph, CFG), [])


if __name__ == "__main__":
    unittest.main()

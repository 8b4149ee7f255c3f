from __future__ import annotations

from typing import List, Set, FrozenSet, Tuple

from lineage.core.enums import NodeStatus, PatternType, Severity, TouchDirection
from lineage.core.models import LineageConfig, LineageGraph, Pattern, TransactionNode
from lineage.detectors.base import PatternDetector, short


class LoopDetector(PatternDetector):
    """
    Finds funds coming back around.

    Direct loops are transactions that re-enter their own ancestry (the
    builder marks them `loop-detected`). Multi-hop loops are addresses that
    sent funds and later received funds again in another transaction.
    """

    pattern_type = PatternType.LOOP

    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        return self._direct(graph) + self._multi_hop(graph)

    def _direct(self, graph: LineageGraph) -> List[Pattern]:
        out: List[Pattern] = []
        seen: Set[FrozenSet[str]] = set()
        stack: List[Tuple[TransactionNode, Tuple[str, ...]]] = [(graph.root, ())]

        while stack:
            node, path = stack.pop()
            if node.status is NodeStatus.LOOP_DETECTED and node.tx_hash in path:
                cycle = path[path.index(node.tx_hash):] + (node.tx_hash,)
                key = frozenset(cycle)
                if key not in seen:
                    seen.add(key)
                    hops = len(cycle) - 1
                    out.append(
                        Pattern(
                            type=PatternType.LOOP,
                            severity=Severity.HIGH,
                            description=(
                                f"Transaction {short(node.tx_hash)} re-enters its own "
                                f"lineage after {hops} hop(s)"
                            ),
                            evidence=cycle,
                            details={"kind": "direct", "hops": hops},
                        )
                    )
            for child in reversed(node.children):
                stack.append((child, path + (node.tx_hash,)))
        return out

    @staticmethod
    def _multi_hop(graph: LineageGraph) -> List[Pattern]:
        out: List[Pattern] = []
        for address in sorted(graph.address_chains):
            touches = [t for t in graph.address_chains[address].touches if t.timestamp is not None]
            sent = [t for t in touches if t.direction is TouchDirection.SENT]
            if not sent:
                continue
            first_sent = min(sent, key=lambda t: (t.timestamp, t.tx_hash))
            # strictly later, so always a different transaction
            back = [
                t for t in touches
                if t.direction is TouchDirection.RECEIVED and t.timestamp > first_sent.timestamp
            ]
            if not back:
                continue
            first_back = min(back, key=lambda t: (t.timestamp, t.tx_hash))
            out.append(
                Pattern(
                    type=PatternType.LOOP,
                    severity=Severity.HIGH,
                    description=(
                        f"Address {address} sent funds in {short(first_sent.tx_hash)} "
                        f"and received funds again in {short(first_back.tx_hash)}"
                    ),
                    evidence=(first_sent.tx_hash, first_back.tx_hash),
                    details={"kind": "multi_hop", "address": address},
                )
            )
        return out

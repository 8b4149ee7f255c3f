from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, List

from lineage.core.enums import PatternType
from lineage.core.models import LineageConfig, LineageGraph, Pattern, TransactionNode


class PatternDetector(ABC):
    """
    Stateless analyzer over a completed lineage graph.

    Detectors never mutate the graph and never perform I/O, so they may run
    in any order or in parallel.
    """

    pattern_type: PatternType

    @abstractmethod
    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        raise NotImplementedError


def short(tx_hash: str) -> str:
    return tx_hash if len(tx_hash) <= 14 else f"{tx_hash[:10]}..."


def distinct_record_nodes(graph: LineageGraph) -> Iterator[TransactionNode]:
    """Nodes carrying ledger data, each transaction once (first occurrence wins)."""
    seen = set()
    for node in graph.iter_nodes():
        if not node.has_record or node.tx_hash in seen:
            continue
        seen.add(node.tx_hash)
        yield node

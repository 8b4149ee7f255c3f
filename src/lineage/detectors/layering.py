from __future__ import annotations

from typing import Dict, List, Set

from lineage.core.enums import PatternType, Severity
from lineage.core.models import LineageConfig, LineageGraph, Pattern
from lineage.detectors.base import PatternDetector, distinct_record_nodes, short


class LayeringDetector(PatternDetector):
    """
    Convergence of independent paths: addresses paid by several transactions
    in the explored graph ("merge points"), and every transaction feeding one.
    """

    pattern_type = PatternType.LAYERING

    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        merge = self._merge_sources(graph, config.layering_min_sources)
        if not merge:
            return []

        out: List[Pattern] = []
        for node in distinct_record_nodes(graph):
            targets = sorted({o.address for o in node.outputs if o.address in merge})
            if not targets:
                continue
            others = sorted({h for a in targets for h in merge[a]} - {node.tx_hash})
            out.append(
                Pattern(
                    type=PatternType.LAYERING,
                    severity=Severity.HIGH,
                    description=(
                        f"{short(node.tx_hash)} pays merge address(es) "
                        f"{', '.join(targets)} also funded by {len(others)} other transaction(s)"
                    ),
                    evidence=(node.tx_hash,) + tuple(others),
                    details={"merge_addresses": targets, "path_length": node.depth + 1},
                )
            )
        return out

    @staticmethod
    def _merge_sources(graph: LineageGraph, min_sources: int) -> Dict[str, Set[str]]:
        merge: Dict[str, Set[str]] = {}
        for address, entry in graph.address_chains.items():
            sources = {t.tx_hash for t in entry.received()}
            if len(sources) >= min_sources:
                merge[address] = sources
        return merge

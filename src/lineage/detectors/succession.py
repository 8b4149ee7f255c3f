from __future__ import annotations

from typing import List, Set, Tuple

from lineage.core.enums import NodeStatus, PatternType, Severity, TraversalDirection
from lineage.core.models import LineageConfig, LineageGraph, Pattern
from lineage.detectors.base import PatternDetector, short


class FastSuccessionDetector(PatternDetector):
    pattern_type = PatternType.FAST_SUCCESSION

    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        out: List[Pattern] = []
        seen: Set[Tuple[str, str]] = set()

        for parent, child in graph.iter_edges():
            if child.status is NodeStatus.LOOP_DETECTED:
                continue
            if parent.timestamp is None or child.timestamp is None:
                continue
            key = (parent.tx_hash, child.tx_hash)
            if key in seen:
                continue

            # elapsed time in the direction funds flowed
            if graph.direction is TraversalDirection.FORWARD:
                elapsed = child.timestamp - parent.timestamp
            else:
                elapsed = parent.timestamp - child.timestamp
            if elapsed < 0 or elapsed >= config.fast_window_seconds:
                continue

            seen.add(key)
            out.append(
                Pattern(
                    type=PatternType.FAST_SUCCESSION,
                    severity=Severity.MEDIUM,
                    description=(
                        f"{short(child.tx_hash)} followed {short(parent.tx_hash)} "
                        f"within {elapsed}s"
                    ),
                    evidence=key,
                    details={"elapsed_seconds": elapsed},
                )
            )
        return out

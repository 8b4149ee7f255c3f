from __future__ import annotations

from typing import List, Set, Tuple

from lineage.core.enums import PatternType, Severity
from lineage.core.models import LineageConfig, LineageGraph, Pattern, TransactionNode
from lineage.detectors.base import PatternDetector, short


def is_peel(node: TransactionNode, ratio) -> bool:
    # one dominant change output and at least one smaller "peel"
    if not node.has_record or len(node.outputs) < 2:
        return False
    values = sorted((o.value for o in node.outputs), reverse=True)
    return values[0] > values[1] * ratio


class PeelingChainDetector(PatternDetector):
    pattern_type = PatternType.PEELING_CHAIN

    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        out: List[Pattern] = []
        seen: Set[Tuple[str, ...]] = set()
        stack: List[Tuple[TransactionNode, Tuple[str, ...]]] = [(graph.root, ())]

        while stack:
            node, run = stack.pop()
            if is_peel(node, config.peel_ratio):
                run = run + (node.tx_hash,)
                # report the longest run only, at its last peel
                ends_here = not any(is_peel(c, config.peel_ratio) for c in node.children)
                if ends_here and len(run) >= config.peel_min_chain_length and run not in seen:
                    seen.add(run)
                    out.append(
                        Pattern(
                            type=PatternType.PEELING_CHAIN,
                            severity=Severity.MEDIUM,
                            description=(
                                f"Peeling chain of {len(run)} transactions "
                                f"from {short(run[0])} to {short(run[-1])}"
                            ),
                            evidence=run,
                            details={"length": len(run)},
                        )
                    )
            else:
                run = ()
            for child in reversed(node.children):
                stack.append((child, run))
        return out

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from lineage.core.dto import TxInput, TxOutput
from lineage.core.enums import (
    ActionType,
    NodeStatus,
    PatternType,
    Priority,
    RiskLevel,
    Severity,
    TouchDirection,
    TraversalDirection,
    Urgency,
)
from lineage.core.errors import InvalidInputError
from lineage.core.validation import resolve_zone


def _default_severity_weights() -> Dict[Severity, int]:
    return {
        Severity.CRITICAL: 40,
        Severity.HIGH: 30,
        Severity.MEDIUM: 15,
        Severity.LOW: 5,
    }



# Configuration model

@dataclass(frozen=True)
class LineageConfig:
    """
    Every tunable of one analysis run: traversal bounds, detector thresholds
    and the scoring table. Passed explicitly to the builder and each detector.
    """

    # traversal
    max_depth: int = 3
    max_children_per_node: int = 3
    direction: TraversalDirection = TraversalDirection.FORWARD
    max_in_flight: int = 8
    provider_timeout_sec: float = 10.0
    address_history_limit: int = 10

    # mixer
    mixer_min_inputs: int = 3             # strictly greater than
    mixer_min_outputs: int = 3            # strictly greater than
    mixer_bucket_size: Decimal = Decimal("0.01")
    mixer_min_bucket_count: int = 3
    mixer_majority_ratio: Decimal = Decimal("0.5")
    mixer_majority_min_outputs: int = 5

    # peeling chain
    peel_ratio: Decimal = Decimal("2")
    peel_min_chain_length: int = 3

    # timing
    fast_window_seconds: int = 600
    unusual_hours_start: int = 0
    unusual_hours_end: int = 5            # exclusive
    timezone: str = "UTC"

    # layering
    layering_min_sources: int = 2

    # scoring
    severity_weights: Mapping[Severity, int] = field(default_factory=_default_severity_weights)
    level_medium: int = 25
    level_high: int = 50
    level_critical: int = 70

    def __post_init__(self) -> None:
        if int(self.max_depth) < 1:
            raise InvalidInputError(f"max_depth must be >= 1, got {self.max_depth}")
        if int(self.max_children_per_node) < 1:
            raise InvalidInputError(
                f"max_children_per_node must be >= 1, got {self.max_children_per_node}"
            )
        if int(self.max_in_flight) < 1:
            raise InvalidInputError(f"max_in_flight must be >= 1, got {self.max_in_flight}")
        if not (0 <= self.level_medium <= self.level_high <= self.level_critical):
            raise InvalidInputError("risk level thresholds must be ascending")
        if not (0 <= self.unusual_hours_start <= 23 and 0 <= self.unusual_hours_end <= 24):
            raise InvalidInputError("unusual hours must lie within 0..24")
        resolve_zone(self.timezone)



# Graph models

@dataclass
class TransactionNode:

    tx_hash: str
    depth: int
    status: NodeStatus

    timestamp: Optional[int] = None
    inputs: Tuple[TxInput, ...] = ()
    outputs: Tuple[TxOutput, ...] = ()
    fee: Decimal = Decimal("0")
    confirmations: int = 0

    children: List["TransactionNode"] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_record(self) -> bool:
        # error nodes carry no ledger data; loop nodes mirror their ancestor
        return self.status in (NodeStatus.LOADED, NodeStatus.MAX_DEPTH)


@dataclass(frozen=True)
class AddressTouch:
    tx_hash: str
    direction: TouchDirection
    value: Decimal
    timestamp: Optional[int]


@dataclass
class AddressChainEntry:

    address: str
    touches: List[AddressTouch] = field(default_factory=list)

    def append(self, touch: AddressTouch) -> bool:
        if touch in self.touches:
            return False
        self.touches.append(touch)
        return True

    def received(self) -> List[AddressTouch]:
        return [t for t in self.touches if t.direction is TouchDirection.RECEIVED]

    def sent(self) -> List[AddressTouch]:
        return [t for t in self.touches if t.direction is TouchDirection.SENT]


@dataclass
class LineageGraph:

    root: TransactionNode
    direction: TraversalDirection
    max_depth: int
    max_children_per_node: int
    address_chains: Dict[str, AddressChainEntry] = field(default_factory=dict)
    provider_calls: int = 0

    def iter_nodes(self) -> Iterator[TransactionNode]:
        """Pre-order walk; children in the order the builder selected them."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_edges(self) -> Iterator[Tuple[TransactionNode, TransactionNode]]:
        for node in self.iter_nodes():
            for child in node.children:
                yield node, child

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def depth_reached(self) -> int:
        return max(n.depth for n in self.iter_nodes())

    def status_counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in NodeStatus}
        for n in self.iter_nodes():
            counts[n.status.value] += 1
        return counts



# Findings / outputs

@dataclass(frozen=True)
class Pattern:

    type: PatternType
    severity: Severity
    description: str
    evidence: Tuple[str, ...] = ()
    details: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskAssessment:

    score: int
    level: RiskLevel
    patterns: Tuple[Pattern, ...] = ()

    def has_pattern(self, *types: PatternType) -> bool:
        return any(p.type in types for p in self.patterns)


@dataclass(frozen=True)
class ActionRecommendation:

    priority: Priority
    action: ActionType
    description: str
    urgency: Urgency
    legal_basis: Optional[str] = None
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class LineageReport:

    seed: str
    seed_tx_hash: str
    graph_depth_reached: int
    node_count: int
    error_count: int
    status_counts: Mapping[str, int]
    risk_assessment: RiskAssessment
    recommendations: Tuple[ActionRecommendation, ...] = ()
    provider_calls: int = 0

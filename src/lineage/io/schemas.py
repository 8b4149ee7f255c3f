from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from lineage.core.models import (
    ActionRecommendation,
    LineageGraph,
    LineageReport,
    Pattern,
    TransactionNode,
)


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return _dec_to_str(value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def pattern_to_dict(p: Pattern) -> Dict[str, Any]:
    return {
        "type": p.type.value,
        "severity": p.severity.value,
        "description": p.description,
        "evidence": list(p.evidence),
        "details": _plain(dict(p.details)),
    }


def recommendation_to_dict(r: ActionRecommendation) -> Dict[str, Any]:
    return {
        "priority": r.priority.value,
        "action": r.action.value,
        "description": r.description,
        "urgency": r.urgency.value,
        "legalBasis": r.legal_basis,
        "recommendation": r.recommendation,
    }


def report_to_dict(r: LineageReport) -> Dict[str, Any]:
    return {
        "seed": r.seed,
        "seedTxHash": r.seed_tx_hash,
        "graphDepthReached": r.graph_depth_reached,
        "nodeCount": r.node_count,
        "errorCount": r.error_count,
        "statusCounts": dict(r.status_counts),
        "providerCalls": r.provider_calls,
        "riskAssessment": {
            "score": r.risk_assessment.score,
            "level": r.risk_assessment.level.value,
            "patterns": [pattern_to_dict(p) for p in r.risk_assessment.patterns],
        },
        "recommendations": [recommendation_to_dict(a) for a in r.recommendations],
    }


def node_to_dict(n: TransactionNode) -> Dict[str, Any]:
    return {
        "hash": n.tx_hash,
        "depth": n.depth,
        "status": n.status.value,
        "timestamp": n.timestamp,
        "fee": _dec_to_str(n.fee),
        "confirmations": n.confirmations,
        "inputs": [{"address": i.address, "value": _dec_to_str(i.value)} for i in n.inputs],
        "outputs": [{"address": o.address, "value": _dec_to_str(o.value)} for o in n.outputs],
        "error": n.error,
        "children": [node_to_dict(c) for c in n.children],
    }


def graph_to_dict(g: LineageGraph) -> Dict[str, Any]:
    return {
        "direction": g.direction.value,
        "maxDepth": g.max_depth,
        "maxChildrenPerNode": g.max_children_per_node,
        "root": node_to_dict(g.root),
        "addressChains": {
            addr: [
                {
                    "txHash": t.tx_hash,
                    "direction": t.direction.value,
                    "value": _dec_to_str(t.value),
                    "timestamp": t.timestamp,
                }
                for t in entry.touches
            ]
            for addr, entry in sorted(g.address_chains.items())
        },
    }

from __future__ import annotations

from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from lineage.core.enums import PatternType, Severity
from lineage.core.models import LineageConfig, LineageGraph, Pattern
from lineage.detectors.base import PatternDetector, distinct_record_nodes


def bucket_value(value: Decimal, size: Decimal) -> Decimal:
    """Round `value` to the nearest multiple of `size` (half-up)."""
    steps = (value / size).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return steps * size


class MixerDetector(PatternDetector):
    """Many-in/many-out transactions whose outputs cluster on a few denominations."""

    pattern_type = PatternType.MIXER

    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        out: List[Pattern] = []
        for node in distinct_record_nodes(graph):
            n_in = len(node.inputs)
            n_out = len(node.outputs)
            if n_in <= config.mixer_min_inputs or n_out <= config.mixer_min_outputs:
                continue

            buckets = Counter(bucket_value(o.value, config.mixer_bucket_size) for o in node.outputs)
            value, count = sorted(buckets.items(), key=lambda kv: (-kv[1], kv[0]))[0]

            clustered = count >= config.mixer_min_bucket_count
            majority = (
                n_out >= config.mixer_majority_min_outputs
                and Decimal(count) >= config.mixer_majority_ratio * n_out
            )
            if not (clustered or majority):
                continue

            out.append(
                Pattern(
                    type=PatternType.MIXER,
                    severity=Severity.HIGH,
                    description=(
                        f"Potential mixing pattern: {n_in} inputs, {n_out} outputs, "
                        f"{count} outputs of ~{value}"
                    ),
                    evidence=(node.tx_hash,),
                    details={
                        "bucket_value": str(value),
                        "bucket_count": count,
                        "inputs": n_in,
                        "outputs": n_out,
                    },
                )
            )
        return out

from __future__ import annotations

import datetime as dt
from typing import List

from lineage.core.enums import PatternType, Severity
from lineage.core.models import LineageConfig, LineageGraph, Pattern
from lineage.core.validation import resolve_zone
from lineage.detectors.base import PatternDetector


def in_window(hour: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= hour < end
    # window wraps midnight, e.g. 22 -> 4
    return hour >= start or hour < end


class TimeAnomalyDetector(PatternDetector):
    """Advisory flag when the seed transaction happened at an unusual hour."""

    pattern_type = PatternType.TIME_ANOMALY

    def detect(self, graph: LineageGraph, config: LineageConfig) -> List[Pattern]:
        root = graph.root
        if not root.has_record or root.timestamp is None:
            return []

        when = dt.datetime.fromtimestamp(root.timestamp, tz=resolve_zone(config.timezone))
        if not in_window(when.hour, config.unusual_hours_start, config.unusual_hours_end):
            return []

        return [
            Pattern(
                type=PatternType.TIME_ANOMALY,
                severity=Severity.LOW,
                description=(
                    f"Transaction occurred during unusual hours "
                    f"({when.hour:02d}:{when.minute:02d} {config.timezone})"
                ),
                evidence=(root.tx_hash,),
                details={"hour": when.hour, "timezone": config.timezone},
            )
        ]

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from lineage.core.models import LineageConfig, LineageGraph, Pattern
from lineage.detectors.base import PatternDetector
from lineage.detectors.layering import LayeringDetector
from lineage.detectors.loop import LoopDetector
from lineage.detectors.mixer import MixerDetector
from lineage.detectors.peeling import PeelingChainDetector
from lineage.detectors.succession import FastSuccessionDetector
from lineage.detectors.time_anomaly import TimeAnomalyDetector

logger = logging.getLogger(__name__)


def default_detectors() -> List[PatternDetector]:
    return [
        LoopDetector(),
        MixerDetector(),
        PeelingChainDetector(),
        FastSuccessionDetector(),
        TimeAnomalyDetector(),
        LayeringDetector(),
    ]


def run_detectors(
    graph: LineageGraph,
    config: LineageConfig,
    detectors: Optional[Sequence[PatternDetector]] = None,
) -> List[Pattern]:
    """Run each detector over the graph; findings keep detector order."""
    patterns: List[Pattern] = []
    for detector in detectors if detectors is not None else default_detectors():
        found = detector.detect(graph, config)
        logger.debug("%s: %d finding(s)", detector.__class__.__name__, len(found))
        patterns.extend(found)
    return patterns

from __future__ import annotations

from typing import Iterable, Optional

from lineage.core.enums import RiskLevel
from lineage.core.models import LineageConfig, Pattern, RiskAssessment


class RiskAggregator:
    """
    Additive score over every finding, clamped to 0..100.

    The score depends only on the patterns handed in; no clock, no randomness.
    """

    def __init__(self, config: Optional[LineageConfig] = None) -> None:
        self.config = config or LineageConfig()

    def aggregate(self, patterns: Iterable[Pattern]) -> RiskAssessment:
        found = tuple(patterns)
        score = self._score(found)
        return RiskAssessment(score=score, level=self.level_for(score), patterns=found)

    def _score(self, patterns) -> int:
        weights = self.config.severity_weights
        total = 0
        for p in patterns:
            total += int(weights.get(p.severity, 0))
        return max(0, min(100, total))

    def level_for(self, score: int) -> RiskLevel:
        cfg = self.config
        if score >= cfg.level_critical:
            return RiskLevel.CRITICAL
        if score >= cfg.level_high:
            return RiskLevel.HIGH
        if score >= cfg.level_medium:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW


__all__ = ["RiskAggregator"]

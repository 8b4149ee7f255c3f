from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from lineage.core.dto import AddressLabel
from lineage.core.enums import (
    ActionType,
    AddressCategory,
    PatternType,
    Priority,
    RiskLevel,
    Urgency,
)
from lineage.core.models import ActionRecommendation, RiskAssessment
from lineage.ports.address_label_port import AddressLabelPort

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = {Priority.CRITICAL: 0, Priority.HIGH: 1, Priority.STANDARD: 2}


class ActionRecommender:
    """
    Maps a risk assessment (and, when a label directory is available, the
    addresses the lineage touched) to investigative actions.

    Every matching rule fires; the result holds each action once, most
    urgent first.
    """

    def __init__(self, labels: Optional[AddressLabelPort] = None) -> None:
        self._labels = labels

    def recommend(
        self,
        assessment: RiskAssessment,
        addresses: Iterable[str] = (),
    ) -> List[ActionRecommendation]:
        found = self._identify(addresses)
        out: List[ActionRecommendation] = []

        mixers = found.get(AddressCategory.MIXER, [])
        if assessment.has_pattern(PatternType.MIXER) or mixers:
            note = ""
            if mixers:
                note = f" (known mixer: {', '.join(self._names(mixers))})"
            out.append(
                ActionRecommendation(
                    priority=Priority.CRITICAL,
                    action=ActionType.MIXER_INVESTIGATION,
                    description=(
                        "Funds passed through privacy mixers - advanced blockchain "
                        f"analysis required{note}"
                    ),
                    urgency=Urgency.IMMEDIATE,
                    recommendation="Engage specialized blockchain forensics team",
                )
            )

        if assessment.has_pattern(PatternType.LOOP, PatternType.LAYERING):
            out.append(
                ActionRecommendation(
                    priority=Priority.HIGH,
                    action=ActionType.LAYERING_INVESTIGATION,
                    description=(
                        "Circular or converging fund flows detected - map the full "
                        "layering structure"
                    ),
                    urgency=Urgency.STANDARD,
                    recommendation="Trace merge addresses and round-trip counterparties",
                )
            )

        if assessment.level is RiskLevel.CRITICAL:
            out.append(
                ActionRecommendation(
                    priority=Priority.CRITICAL,
                    action=ActionType.FREEZE_ASSETS,
                    description="High-risk transaction pattern detected - consider asset freezing",
                    urgency=Urgency.IMMEDIATE,
                    legal_basis="Suspicious transaction activity",
                )
            )

        exchanges = found.get(AddressCategory.EXCHANGE, [])
        if exchanges:
            out.append(
                ActionRecommendation(
                    priority=Priority.HIGH,
                    action=ActionType.SUBPOENA_EXCHANGE,
                    description=f"Subpoena KYC records from: {', '.join(self._names(exchanges))}",
                    urgency=Urgency.STANDARD,
                    legal_basis="Financial transaction investigation",
                )
            )

        darknet = found.get(AddressCategory.DARKNET, [])
        if darknet:
            out.append(
                ActionRecommendation(
                    priority=Priority.CRITICAL,
                    action=ActionType.DARKNET_INVESTIGATION,
                    description=(
                        "Funds linked to darknet markets - coordinate with cybercrime unit "
                        f"({', '.join(self._names(darknet))})"
                    ),
                    urgency=Urgency.IMMEDIATE,
                    recommendation="Cross-reference with ongoing darknet investigations",
                )
            )

        # sorted() is stable: rule order breaks priority ties
        return sorted(out, key=lambda r: _PRIORITY_ORDER[r.priority])

    def _identify(self, addresses: Iterable[str]) -> Dict[AddressCategory, List[AddressLabel]]:
        found: Dict[AddressCategory, List[AddressLabel]] = {}
        if self._labels is None:
            return found
        for addr in sorted(set(addresses)):
            label = self._labels.identify(addr)
            if label is None:
                continue
            logger.debug("Address %s identified as %s (%s)", addr, label.category.value, label.name)
            found.setdefault(label.category, []).append(label)
        return found

    @staticmethod
    def _names(labels: List[AddressLabel]) -> List[str]:
        return sorted({l.name for l in labels})


__all__ = ["ActionRecommender"]

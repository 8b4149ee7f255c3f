from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from lineage.core.dto import AddressLabel
from lineage.core.enums import AddressCategory
from lineage.ports.address_label_port import AddressLabelPort

logger = logging.getLogger(__name__)

# directory section -> category
_SECTIONS = {
    "exchanges": AddressCategory.EXCHANGE,
    "mixers": AddressCategory.MIXER,
    "darknet": AddressCategory.DARKNET,
    "gambling": AddressCategory.GAMBLING,
}


class StaticAddressLabelAdapter(AddressLabelPort):
    """
    In-memory directory of known service addresses.

    The JSON layout groups services by section, each service listing its addresses:

        {"exchanges": {"binance": {"name": "Binance", "country": "MT",
                                   "riskLevel": "low", "addresses": ["1..."]}},
         "mixers": {...}, "darknet": {...}, "gambling": {...}}
    """

    def __init__(self, labels: Optional[Iterable[AddressLabel]] = None) -> None:
        self._labels: Dict[str, AddressLabel] = {}
        for label in labels or []:
            self._labels[label.address] = label

    def identify(self, address: str) -> Optional[AddressLabel]:
        return self._labels.get(address)

    def __len__(self) -> int:
        return len(self._labels)

    @classmethod
    def from_directory(cls, directory: Dict[str, Any]) -> "StaticAddressLabelAdapter":
        labels = []
        for section, category in _SECTIONS.items():
            for key, service in (directory.get(section) or {}).items():
                name = str(service.get("name") or key)
                for addr in service.get("addresses") or []:
                    labels.append(
                        AddressLabel(
                            address=str(addr),
                            category=category,
                            name=name,
                            risk_level=service.get("riskLevel"),
                            country=service.get("country"),
                        )
                    )
        return cls(labels)

    @classmethod
    def from_json(cls, path: str) -> "StaticAddressLabelAdapter":
        p = Path(path)
        if not p.exists():
            logger.info("No address label file at %s; label lookups disabled", path)
            return cls()
        with p.open(encoding="utf-8") as f:
            return cls.from_directory(json.load(f))

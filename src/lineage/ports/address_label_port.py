from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from lineage.core.dto import AddressLabel


class AddressLabelPort(ABC):
    @abstractmethod
    def identify(self, address: str) -> Optional[AddressLabel]:
        raise NotImplementedError

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from lineage.core.dto import TransactionRecord


class LedgerDataPort(ABC):
    """
    Abstract Class for fetching normalized ledger facts for lineage building.

    Implementations raise DataSourceError (or a subclass) on failure. Calls
    must be idempotent; any retry policy belongs to the implementation.
    """

    # --- single transaction ---

    @abstractmethod
    def fetch_transaction(self, tx_hash: str) -> TransactionRecord:
        raise NotImplementedError

    # --- address history (most recent first) ---

    @abstractmethod
    def fetch_address_history(self, address: str, limit: int) -> List[TransactionRecord]:
        raise NotImplementedError

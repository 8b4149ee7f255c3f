import json
import threading
import time
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from lineage.core.dto import TransactionRecord, TxInput, TxOutput
from lineage.core.errors import DataSourceError, ProviderUnavailableError
from lineage.ports.ledger_data_port import LedgerDataPort


class StaticLedgerAdapter(LedgerDataPort):
    def __init__(self,
                 transactions: Optional[Iterable[TransactionRecord]] = None,
                 failing_hashes: Optional[Iterable[str]] = None,
                 failing_addresses: Optional[Iterable[str]] = None,
                 delays: Optional[Dict[str, float]] = None,
                 ):
        self._txs: Dict[str, TransactionRecord] = {t.tx_hash: t for t in (transactions or [])}
        self._failing = set(failing_hashes or [])
        self._failing_addr = set(failing_addresses or [])
        self._delays = delays or {}
        self._lock = threading.Lock()
        self.calls: List[str] = []

    def _count(self, key: str) -> None:
        with self._lock:
            self.calls.append(key)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def fetch_transaction(self, tx_hash):
        self._count(tx_hash)
        if tx_hash in self._delays:
            time.sleep(self._delays[tx_hash])
        if tx_hash in self._failing:
            raise ProviderUnavailableError(f"static failure for {tx_hash}")
        tx = self._txs.get(tx_hash)
        if tx is None:
            raise DataSourceError(f"Transaction not found: {tx_hash}")
        return tx

    def fetch_address_history(self, address, limit):
        self._count(f"addr:{address}")
        if address in self._failing_addr:
            raise ProviderUnavailableError(f"static failure for {address}")
        items = [t for t in self._txs.values() if t.touches_address(address)]
        # most recent first, like the live explorers
        items.sort(key=lambda t: (t.timestamp or 0, t.tx_hash), reverse=True)
        return items[: max(0, int(limit))]

    # --- fixtures ---

    @classmethod
    def from_json(cls, path: str) -> "StaticLedgerAdapter":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        rows = data.get("transactions", []) if isinstance(data, dict) else data
        return cls(transactions=[record_from_dict(r) for r in rows])


def _dec(val) -> Decimal:
    return Decimal(str(val)) if val is not None else Decimal("0")


def record_from_dict(r: dict) -> TransactionRecord:
    return TransactionRecord(
        tx_hash=r["hash"],
        timestamp=int(r["timestamp"]) if r.get("timestamp") is not None else None,
        inputs=tuple(
            TxInput(
                address=i.get("address") or "",
                value=_dec(i.get("value")),
                prev_tx_hash=i.get("prev_tx_hash"),
            )
            for i in r.get("inputs", [])
        ),
        outputs=tuple(
            TxOutput(
                address=o.get("address") or "",
                value=_dec(o.get("value")),
                spent=bool(o.get("spent") or o.get("spending_tx_hash")),
                spending_tx_hash=o.get("spending_tx_hash"),
            )
            for o in r.get("outputs", [])
        ),
        fee=_dec(r.get("fee")),
        confirmations=int(r.get("confirmations", 0)),
        block_height=r.get("block_height"),
    )

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from lineage.core.enums import AddressCategory


@dataclass(frozen=True)
class TxInput:
    address: str
    value: Decimal                       # coin units (BTC), not satoshi
    prev_tx_hash: Optional[str] = None   # originating tx, when the provider knows it


@dataclass(frozen=True)
class TxOutput:
    address: str
    value: Decimal
    spent: bool = False
    spending_tx_hash: Optional[str] = None


@dataclass(frozen=True)
class TransactionRecord:
    tx_hash: str
    timestamp: Optional[int]             # unix seconds, None while unknown
    inputs: Tuple[TxInput, ...] = ()
    outputs: Tuple[TxOutput, ...] = ()
    fee: Decimal = Decimal("0")
    confirmations: int = 0
    block_height: Optional[int] = None

    def total_output_value(self) -> Decimal:
        return sum((o.value for o in self.outputs), Decimal("0"))

    def touches_address(self, address: str) -> bool:
        return any(i.address == address for i in self.inputs) or any(
            o.address == address for o in self.outputs
        )


@dataclass(frozen=True)
class AddressLabel:
    address: str
    category: AddressCategory
    name: str
    risk_level: Optional[str] = None
    country: Optional[str] = None

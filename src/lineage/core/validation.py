from __future__ import annotations

import datetime as dt
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lineage.core.errors import InvalidInputError

_TX_HASH_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

# legacy base58 (P2PKH / P2SH), bech32 segwit, and EVM hex addresses
_BASE58_RE = re.compile(r"^[13][1-9A-HJ-NP-Za-km-z]{25,34}$")
_BECH32_RE = re.compile(r"^(bc1|tb1)[02-9ac-hj-np-z]{11,71}$")
_EVM_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_tx_hash(value: str) -> bool:
    return bool(value) and bool(_TX_HASH_RE.match(value.strip()))


def is_address(value: str) -> bool:
    if not value:
        return False
    v = value.strip()
    return bool(
        _BASE58_RE.match(v) or _BECH32_RE.match(v.lower()) or _EVM_RE.match(v)
    )


def require_tx_hash(value: str) -> str:
    if not isinstance(value, str) or not is_tx_hash(value):
        raise InvalidInputError(f"Malformed transaction hash: {value!r}")
    return value.strip()


def resolve_zone(name: str) -> dt.tzinfo:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError(f"Unknown time zone: {name!r}")
    if name.strip().upper() == "UTC":
        return dt.timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInputError(f"Unknown time zone: {name!r}") from e

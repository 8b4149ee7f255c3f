import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests

from lineage.config.settings import (
    BLOCKCYPHER_TOKEN,
    BLOCKCYPHER_BASE_URL,
    BLOCKCYPHER_REQUESTS_PER_SEC,
    BLOCKCYPHER_TIMEOUT_SEC,
    BLOCKCYPHER_MAX_RETRIES,
    SATOSHI_PER_BTC,
)

from lineage.adapters.ledger.rate_limiter import SimpleRateLimiter, backoff_sleep
from lineage.core.errors import DataSourceError, ProviderUnavailableError, RateLimitError
from lineage.ports.ledger_data_port import LedgerDataPort
from lineage.core.dto import TransactionRecord, TxInput, TxOutput

logger = logging.getLogger(__name__)

# the tx endpoint pages inputs/outputs; one page is enough for lineage heuristics
_IO_PAGE_LIMIT = 50


class BlockCypherLedgerAdapter(LedgerDataPort):

    def __init__(
        self,
        token: Optional[str] = BLOCKCYPHER_TOKEN,
        base_url: str = BLOCKCYPHER_BASE_URL,
        requests_per_sec: float = BLOCKCYPHER_REQUESTS_PER_SEC,
        timeout_sec: float = BLOCKCYPHER_TIMEOUT_SEC,
        max_retries: int = BLOCKCYPHER_MAX_RETRIES,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_sec
        self._max_retries = max_retries

        self._rl = SimpleRateLimiter(requests_per_sec)
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _call(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        req = dict(params or {})
        if self._token:
            req["token"] = self._token
        url = f"{self._base_url}/{path.lstrip('/')}"

        last_err: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                self._rl.wait()
                resp = self._session.get(url, params=req, timeout=self._timeout)

                if resp.status_code == 429:
                    last_err = RateLimitError(f"rate limited on {path}")
                    backoff_sleep(attempt)
                    continue
                if resp.status_code == 404:
                    # not transient, do not burn retries on it
                    raise DataSourceError(f"BlockCypher: not found: {path}")

                resp.raise_for_status()
                data = resp.json()
                if not isinstance(data, dict):
                    raise DataSourceError(f"Invalid BlockCypher response: {data}")
                if data.get("error"):
                    raise DataSourceError(f"BlockCypher error: {data['error']}")
                return data

            except DataSourceError:
                raise
            except (requests.RequestException, ValueError) as e:
                last_err = e
                logger.debug("BlockCypher call %s failed (attempt %d): %s", path, attempt + 1, e)
                backoff_sleep(attempt)

        raise ProviderUnavailableError(f"BlockCypher failed after retries: {last_err}")

    @staticmethod
    def _btc(satoshi: Any) -> Decimal:
        try:
            return Decimal(int(satoshi or 0)) / Decimal(SATOSHI_PER_BTC)
        except (TypeError, ValueError):
            return Decimal("0")

    @staticmethod
    def _unix(iso: Optional[str]) -> Optional[int]:
        if not iso:
            return None
        try:
            return int(dt.datetime.fromisoformat(iso.replace("Z", "+00:00")).timestamp())
        except ValueError:
            return None

    @staticmethod
    def _first_address(row: Dict[str, Any]) -> str:
        addrs = row.get("addresses") or []
        return str(addrs[0]) if addrs else ""

    def _to_record(self, r: Dict[str, Any]) -> TransactionRecord:
        inputs = tuple(
            TxInput(
                address=self._first_address(i),
                value=self._btc(i.get("output_value")),
                prev_tx_hash=i.get("prev_hash") or None,
            )
            for i in (r.get("inputs") or [])
        )
        outputs = tuple(
            TxOutput(
                address=self._first_address(o),
                value=self._btc(o.get("value")),
                spent=bool(o.get("spent_by")),
                spending_tx_hash=o.get("spent_by") or None,
            )
            for o in (r.get("outputs") or [])
        )
        height = r.get("block_height")
        return TransactionRecord(
            tx_hash=str(r.get("hash", "")),
            timestamp=self._unix(r.get("confirmed")) or self._unix(r.get("received")),
            inputs=inputs,
            outputs=outputs,
            fee=self._btc(r.get("fees")),
            confirmations=int(r.get("confirmations", 0) or 0),
            block_height=int(height) if height is not None and int(height) >= 0 else None,
        )

    # ---------- port methods ----------

    def fetch_transaction(self, tx_hash: str) -> TransactionRecord:
        data = self._call(f"txs/{tx_hash}", {"limit": _IO_PAGE_LIMIT})
        if not data.get("hash"):
            raise DataSourceError(f"Transaction not found: {tx_hash}")
        return self._to_record(data)

    def fetch_address_history(self, address: str, limit: int) -> List[TransactionRecord]:
        data = self._call(f"addrs/{address}/full", {"limit": int(limit)})
        rows = data.get("txs")
        if not isinstance(rows, list):
            return []
        return [self._to_record(r) for r in rows if isinstance(r, dict) and r.get("hash")]

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from lineage.core.dto import TransactionRecord
from lineage.core.enums import NodeStatus, TouchDirection, TraversalDirection
from lineage.core.errors import InvalidInputError, LineageError, ProviderUnavailableError
from lineage.core.models import (
    AddressChainEntry,
    AddressTouch,
    LineageConfig,
    LineageGraph,
    TransactionNode,
)
from lineage.core.validation import require_tx_hash
from lineage.ports.ledger_data_port import LedgerDataPort

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class _Pending:
    tx_hash: str
    depth: int
    path: Tuple[str, ...]                  # ancestors of this branch, root first
    parent: Optional[TransactionNode]


@dataclass(frozen=True)
class _Candidate:
    tx_hash: str
    value: Decimal
    timestamp: Optional[int]


def _noop(event: str, data: Dict[str, Any]) -> None:
    return None


class GraphBuilder:
    """
    Builds a bounded lineage tree from a seed transaction.

    - Traversal: level by level from an explicit worklist, `forward` through
      spending transactions or `backward` through originating ones
    - Fetches: fanned out in batches of at most `max_in_flight` provider calls,
      each waited on for at most `provider_timeout_sec` from the moment it starts
    - Failures: a failed or timed-out fetch turns that node into an `error`
      leaf; the rest of the tree is still built
    """

    def __init__(self, ledger: LedgerDataPort, config: Optional[LineageConfig] = None) -> None:
        self.ledger = ledger
        self.config = config or LineageConfig()

    def build_lineage(
        self,
        seed_hash: str,
        max_depth: Optional[int] = None,
        max_children_per_node: Optional[int] = None,
        direction: Union[TraversalDirection, str, None] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> LineageGraph:
        seed = require_tx_hash(seed_hash)
        depth_cap = int(max_depth if max_depth is not None else self.config.max_depth)
        width_cap = int(
            max_children_per_node
            if max_children_per_node is not None
            else self.config.max_children_per_node
        )
        if depth_cap < 1:
            raise InvalidInputError(f"max_depth must be >= 1, got {depth_cap}")
        if width_cap < 1:
            raise InvalidInputError(f"max_children_per_node must be >= 1, got {width_cap}")
        way = self._direction(direction if direction is not None else self.config.direction)
        emit = on_progress or _noop

        book: Dict[str, AddressChainEntry] = {}
        records: Dict[str, TransactionRecord] = {}
        root: Optional[TransactionNode] = None
        calls = 0
        errors = 0

        emit("start", {"seed": seed, "max_depth": depth_cap, "direction": way.value})
        logger.debug("Building %s lineage for %s (depth %d, width %d)", way.value, seed, depth_cap, width_cap)

        level: List[_Pending] = [_Pending(seed, 0, (), None)]
        while level:
            depth = level[0].depth
            emit("level", {"depth": depth, "pending": len(level)})

            # one call per distinct hash on this level; loops are never refetched
            to_fetch = self._unique(p.tx_hash for p in level if p.tx_hash not in p.path)
            fetched = self._run_bounded([(h, self.ledger.fetch_transaction, (h,)) for h in to_fetch])
            calls += len(to_fetch)

            expandable: List[Tuple[_Pending, TransactionNode, TransactionRecord]] = []
            for item in level:
                node, record = self._make_node(item, depth_cap, fetched, records)
                if node.status is NodeStatus.ERROR:
                    errors += 1
                    emit("fetch_error", {"tx_hash": item.tx_hash, "message": node.error})
                if record is not None and node.status is not NodeStatus.LOOP_DETECTED:
                    records[record.tx_hash] = record
                    self._record_touches(book, record)

                if item.parent is None:
                    root = node
                else:
                    item.parent.children.append(node)

                if node.status is NodeStatus.LOADED and record is not None:
                    expandable.append((item, node, record))

            level, history_calls = self._next_level(expandable, way, width_cap)
            calls += history_calls

        if root is None:
            raise LineageError(f"No root node built for {seed}")
        graph = LineageGraph(
            root=root,
            direction=way,
            max_depth=depth_cap,
            max_children_per_node=width_cap,
            address_chains=book,
            provider_calls=calls,
        )
        emit("done", {"nodes": graph.node_count, "errors": errors, "calls": calls})
        logger.debug("Lineage for %s: %d nodes, %d errors, %d provider calls", seed, graph.node_count, errors, calls)
        return graph

    # -------------------------
    # Levels
    # -------------------------

    def _make_node(
        self,
        item: _Pending,
        depth_cap: int,
        fetched: Dict[str, Any],
        records: Dict[str, TransactionRecord],
    ) -> Tuple[TransactionNode, Optional[TransactionRecord]]:
        if item.tx_hash in item.path:
            # ancestors are always loaded, so the record is known
            record = records.get(item.tx_hash)
            return self._node_from_record(item.tx_hash, item.depth, NodeStatus.LOOP_DETECTED, record), record

        result = fetched.get(item.tx_hash)
        if not isinstance(result, TransactionRecord):
            message = f"{result.__class__.__name__}: {result}"
            logger.warning("Fetching %s failed at depth %d: %s", item.tx_hash, item.depth, message)
            node = TransactionNode(tx_hash=item.tx_hash, depth=item.depth, status=NodeStatus.ERROR, error=message)
            return node, None

        status = NodeStatus.MAX_DEPTH if item.depth >= depth_cap else NodeStatus.LOADED
        return self._node_from_record(item.tx_hash, item.depth, status, result), result

    def _next_level(
        self,
        expandable: List[Tuple[_Pending, TransactionNode, TransactionRecord]],
        way: TraversalDirection,
        width_cap: int,
    ) -> Tuple[List[_Pending], int]:
        direct: Dict[str, List[_Candidate]] = {}
        lookups: Dict[str, List[str]] = {}
        for item, _node, record in expandable:
            cands, unresolved = self._direct_refs(record, way)
            direct[record.tx_hash] = cands
            # address history only fills the gap the direct references leave
            room = width_cap - len(cands)
            lookups[record.tx_hash] = unresolved[: max(0, room)]

        addresses = self._unique(a for addrs in lookups.values() for a in addrs)
        limit = self.config.address_history_limit
        histories = self._run_bounded(
            [(a, self.ledger.fetch_address_history, (a, limit)) for a in addresses]
        )

        nxt: List[_Pending] = []
        for item, node, record in expandable:
            cands = list(direct[record.tx_hash])
            for addr in lookups[record.tx_hash]:
                history = histories.get(addr)
                if not isinstance(history, list):
                    logger.warning("Address history for %s unavailable: %s", addr, history)
                    continue
                cands.extend(self._history_refs(record, addr, history, way))

            for cand in self._select(cands, width_cap):
                nxt.append(_Pending(cand.tx_hash, item.depth + 1, item.path + (item.tx_hash,), node))
        return nxt, len(addresses)

    def _run_bounded(
        self,
        calls: Sequence[Tuple[str, Callable[..., Any], Tuple[Any, ...]]],
    ) -> Dict[str, Any]:
        """Run provider calls in batches of `max_in_flight`; failures come back as values."""
        results: Dict[str, Any] = {}
        width = self.config.max_in_flight
        for start in range(0, len(calls), width):
            results.update(self._run_batch(calls[start:start + width]))
        return results

    def _run_batch(
        self,
        batch: Sequence[Tuple[str, Callable[..., Any], Tuple[Any, ...]]],
    ) -> Dict[str, Any]:
        timeout = self.config.provider_timeout_sec
        started: Dict[str, float] = {}
        results: Dict[str, Any] = {}

        def timed(key: str, fn: Callable[..., Any], args: Tuple[Any, ...]) -> Any:
            started[key] = time.monotonic()
            return fn(*args)

        # fresh workers per batch: a call still hung from an earlier batch
        # never delays the start of this one
        pool = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="lineage")
        try:
            futures = {pool.submit(timed, key, fn, args): key for key, fn, args in batch}
            pending = set(futures)
            while pending:
                now = time.monotonic()
                # each call's clock starts when a worker picks it up
                expired = {
                    f for f in pending
                    if not f.done() and futures[f] in started and now - started[futures[f]] >= timeout
                }
                for fut in expired:
                    fut.cancel()
                    results[futures[fut]] = ProviderUnavailableError(f"timed out after {timeout}s")
                pending -= expired
                if not pending:
                    break

                next_deadline = min(started.get(futures[f], now) + timeout for f in pending)
                done, pending = wait(pending, timeout=max(0.0, next_deadline - now), return_when=FIRST_COMPLETED)
                for fut in done:
                    try:
                        results[futures[fut]] = fut.result()
                    except Exception as exc:
                        # absorbed here, surfaced as node status by the caller
                        results[futures[fut]] = exc
        finally:
            # a hung provider call must not hold the run open
            pool.shutdown(wait=False, cancel_futures=True)
        return results

    # -------------------------
    # Candidate children
    # -------------------------

    @staticmethod
    def _direct_refs(
        record: TransactionRecord, way: TraversalDirection
    ) -> Tuple[List[_Candidate], List[str]]:
        cands: List[_Candidate] = []
        unresolved: List[str] = []

        if way is TraversalDirection.FORWARD:
            for o in sorted(record.outputs, key=lambda x: x.value, reverse=True):
                if o.spending_tx_hash:
                    cands.append(_Candidate(o.spending_tx_hash, o.value, None))
                elif o.spent and o.address and o.address not in unresolved:
                    unresolved.append(o.address)
        else:
            for i in sorted(record.inputs, key=lambda x: x.value, reverse=True):
                if i.prev_tx_hash:
                    cands.append(_Candidate(i.prev_tx_hash, i.value, None))
                elif i.address and i.address not in unresolved:
                    unresolved.append(i.address)
        return cands, unresolved

    @staticmethod
    def _history_refs(
        record: TransactionRecord,
        address: str,
        history: List[TransactionRecord],
        way: TraversalDirection,
    ) -> List[_Candidate]:
        out: List[_Candidate] = []
        for tx in history:
            if tx.tx_hash == record.tx_hash:
                continue
            known = record.timestamp is not None and tx.timestamp is not None

            if way is TraversalDirection.FORWARD:
                # a later tx spending from the address we paid
                if known and tx.timestamp <= record.timestamp:
                    continue
                moved = [i.value for i in tx.inputs if i.address == address]
            else:
                # an earlier tx paying the address we spent from
                if known and tx.timestamp >= record.timestamp:
                    continue
                moved = [o.value for o in tx.outputs if o.address == address]

            if moved:
                out.append(_Candidate(tx.tx_hash, sum(moved, Decimal("0")), tx.timestamp))
        return out

    @staticmethod
    def _select(cands: List[_Candidate], width_cap: int) -> List[_Candidate]:
        best: Dict[str, _Candidate] = {}
        for c in cands:
            cur = best.get(c.tx_hash)
            if cur is None or c.value > cur.value:
                best[c.tx_hash] = c
        # highest value first; timestamp then hash keep ties deterministic
        ordered = sorted(
            best.values(),
            key=lambda c: (-c.value, c.timestamp if c.timestamp is not None else -1, c.tx_hash),
        )
        return ordered[:width_cap]

    # -------------------------
    # Helpers
    # -------------------------

    @staticmethod
    def _node_from_record(
        tx_hash: str, depth: int, status: NodeStatus, record: Optional[TransactionRecord]
    ) -> TransactionNode:
        if record is None:
            return TransactionNode(tx_hash=tx_hash, depth=depth, status=status)
        return TransactionNode(
            tx_hash=tx_hash,
            depth=depth,
            status=status,
            timestamp=record.timestamp,
            inputs=record.inputs,
            outputs=record.outputs,
            fee=record.fee,
            confirmations=record.confirmations,
        )

    @staticmethod
    def _record_touches(book: Dict[str, AddressChainEntry], record: TransactionRecord) -> None:
        # only the coordinating thread writes here, in level order
        for o in record.outputs:
            if not o.address:
                continue
            entry = book.setdefault(o.address, AddressChainEntry(address=o.address))
            entry.append(AddressTouch(record.tx_hash, TouchDirection.RECEIVED, o.value, record.timestamp))
        for i in record.inputs:
            if not i.address:
                continue
            entry = book.setdefault(i.address, AddressChainEntry(address=i.address))
            entry.append(AddressTouch(record.tx_hash, TouchDirection.SENT, i.value, record.timestamp))

    @staticmethod
    def _direction(direction: Union[TraversalDirection, str]) -> TraversalDirection:
        if isinstance(direction, TraversalDirection):
            return direction
        try:
            return TraversalDirection(str(direction).lower())
        except ValueError as e:
            raise InvalidInputError(f"Unknown traversal direction: {direction!r}") from e

    @staticmethod
    def _unique(items) -> List[str]:
        seen: Dict[str, None] = {}
        for i in items:
            seen.setdefault(i, None)
        return list(seen)

from __future__ import annotations

import logging
from typing import Optional, Sequence

from lineage.core.errors import DataSourceError, InvalidInputError, ProviderUnavailableError
from lineage.core.models import LineageConfig, LineageGraph, LineageReport
from lineage.core.validation import is_address, is_tx_hash
from lineage.detectors.base import PatternDetector
from lineage.detectors.suite import run_detectors
from lineage.ports.address_label_port import AddressLabelPort
from lineage.ports.ledger_data_port import LedgerDataPort
from lineage.services.action_recommender import ActionRecommender
from lineage.services.graph_builder import GraphBuilder, ProgressFn
from lineage.services.risk_aggregator import RiskAggregator

logger = logging.getLogger(__name__)


class LineageService:
    """
    One full investigation run: seed -> lineage graph -> findings -> score -> actions.

    Holds no state between runs; the same seed over the same ledger answers
    always yields the same report.
    """

    def __init__(
        self,
        ledger: LedgerDataPort,
        labels: Optional[AddressLabelPort] = None,
        config: Optional[LineageConfig] = None,
        detectors: Optional[Sequence[PatternDetector]] = None,
    ) -> None:
        self.ledger = ledger
        self.config = config or LineageConfig()
        self.builder = GraphBuilder(ledger, self.config)
        self.aggregator = RiskAggregator(self.config)
        self.recommender = ActionRecommender(labels)
        self.detectors = detectors

    def analyze(self, seed: str, on_progress: Optional[ProgressFn] = None) -> LineageReport:
        seed = (seed or "").strip()
        tx_hash = self.resolve_seed(seed)
        graph = self.builder.build_lineage(tx_hash, on_progress=on_progress)
        return self.report_for(seed, graph)

    def resolve_seed(self, seed: str) -> str:
        """Transaction hashes pass through; an address resolves to its largest transaction."""
        if is_tx_hash(seed):
            return seed
        if not is_address(seed):
            raise InvalidInputError(f"Seed is neither a transaction hash nor an address: {seed!r}")

        try:
            history = self.ledger.fetch_address_history(seed, self.config.address_history_limit)
        except DataSourceError as e:
            raise ProviderUnavailableError(f"Cannot resolve address seed {seed}: {e}") from e
        if not history:
            raise InvalidInputError(f"No transactions found for address {seed}")

        best = max(
            history,
            key=lambda tx: (tx.total_output_value(), tx.timestamp or 0, tx.tx_hash),
        )
        logger.info("Address %s resolved to seed transaction %s", seed, best.tx_hash)
        return best.tx_hash

    def report_for(self, seed: str, graph: LineageGraph) -> LineageReport:
        patterns = run_detectors(graph, self.config, self.detectors)
        assessment = self.aggregator.aggregate(patterns)
        recommendations = self.recommender.recommend(assessment, graph.address_chains.keys())
        counts = graph.status_counts()

        return LineageReport(
            seed=seed,
            seed_tx_hash=graph.root.tx_hash,
            graph_depth_reached=graph.depth_reached,
            node_count=graph.node_count,
            error_count=counts["error"],
            status_counts=counts,
            risk_assessment=assessment,
            recommendations=tuple(recommendations),
            provider_calls=graph.provider_calls,
        )

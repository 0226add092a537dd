# src/graphmend/validation/validator.py
"""GraphValidator: runs every check over one graph and builds the report.

Validation is total: semantic problems are collected, never raised, so a
single pass reports every defect. Only input errors (raised while the
graph is being built) stop a validation, and those happen before this
module is reached.
"""

from __future__ import annotations

from collections import Counter

from graphmend.contracts.report import Issue, ValidationReport
from graphmend.core.canonical import compute_graph_hash
from graphmend.core.catalog import NodeCatalog
from graphmend.core.config import GraphmendSettings
from graphmend.core.graph import WorkflowGraph
from graphmend.core.logging import get_logger, graph_context
from graphmend.validation.channels import check_channels
from graphmend.validation.classifier import Classification, classify
from graphmend.validation.connectivity import analyze_connectivity, find_cycles
from graphmend.validation.schema import check_parameters

logger = get_logger(__name__)


class GraphValidator:
    """Validates graphs against one catalog and one set of settings.

    Holds no per-graph state; one instance can validate many graphs,
    concurrently if needed.
    """

    def __init__(self, catalog: NodeCatalog, settings: GraphmendSettings | None = None) -> None:
        self._catalog = catalog
        self._settings = settings or GraphmendSettings()

    @property
    def catalog(self) -> NodeCatalog:
        return self._catalog

    @property
    def settings(self) -> GraphmendSettings:
        return self._settings

    def classify(self, graph: WorkflowGraph) -> Classification:
        return classify(graph, self._catalog, strict=self._settings.strict_catalog)

    def validate(self, graph: WorkflowGraph) -> ValidationReport:
        """Run classification, connectivity, schema and channel checks.

        Issue order: unknown types, connectivity, parameter shapes,
        channels, then cycles (only with detect_cycles).
        """
        graph_hash = compute_graph_hash(graph)
        with graph_context(graph_hash):
            classification = self.classify(graph)

            issues: list[Issue] = list(classification.issues)
            issues.extend(analyze_connectivity(graph, classification, self._catalog))
            issues.extend(check_parameters(graph, classification, self._settings))
            issues.extend(check_channels(graph, classification, self._catalog))
            if self._settings.detect_cycles:
                issues.extend(find_cycles(graph, self._catalog))

            report = ValidationReport(issues=tuple(issues), graph_hash=graph_hash)

            severities = Counter(str(issue.severity) for issue in issues)
            logger.info(
                "graph_validated",
                nodes=graph.node_count,
                connections=graph.edge_count,
                issues=len(issues),
                executable=report.is_executable,
                **{f"{severity}_count": count for severity, count in sorted(severities.items())},
            )
        return report

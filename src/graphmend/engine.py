# src/graphmend/engine.py
"""Public operations: validate, repair, validate_and_repair, validate_batch.

Every operation accepts a WorkflowGraph, a decoded document mapping or raw
JSON text. Documents are parsed first; input errors (MalformedGraphError
and subclasses) are raised before any validation starts.

The module-level functions use the packaged catalog and default settings
unless told otherwise. Build an Engine to reuse one catalog and settings
across many calls.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, TypeAlias

from graphmend.contracts.errors import MalformedGraphError
from graphmend.contracts.report import ValidationReport
from graphmend.contracts.results import RepairResult, ValidateAndRepairResult
from graphmend.core.catalog import NodeCatalog, default_catalog, load_catalog
from graphmend.core.config import GraphmendSettings
from graphmend.core.graph import WorkflowGraph, extract_document, parse_graph
from graphmend.core.logging import get_logger
from graphmend.repair.synthesizer import RepairSynthesizer
from graphmend.validation.validator import GraphValidator

logger = get_logger(__name__)

GraphInput: TypeAlias = WorkflowGraph | Mapping[str, Any] | str | bytes


@functools.lru_cache(maxsize=8)
def _catalog_at(path: Path) -> NodeCatalog:
    return load_catalog(path)


def resolve_catalog(settings: GraphmendSettings) -> NodeCatalog:
    """Catalog named by the settings, or the packaged default."""
    if settings.catalog_path is None:
        return default_catalog()
    return _catalog_at(settings.catalog_path.resolve())


class Engine:
    """Validator and repair synthesizer sharing one catalog and settings.

    Stateless between calls; safe to share across threads.
    """

    def __init__(self, settings: GraphmendSettings | None = None, catalog: NodeCatalog | None = None) -> None:
        self.settings = settings or GraphmendSettings()
        self.catalog = catalog or resolve_catalog(self.settings)
        self._validator = GraphValidator(self.catalog, self.settings)
        self._synthesizer = RepairSynthesizer(self.catalog, self.settings)

    def load_graph(self, source: GraphInput, *, extract: bool = False) -> WorkflowGraph:
        """Parse ``source`` into a WorkflowGraph (graphs pass through unchanged).

        Args:
            source: Graph, decoded document, or JSON text
            extract: Unwrap the JSON object from surrounding text first
                (markdown fences, prose around a generated document)

        Raises:
            MalformedGraphError: If the input is not a well-formed graph document
        """
        if isinstance(source, WorkflowGraph):
            return source
        if extract:
            if isinstance(source, bytes):
                try:
                    source = source.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise MalformedGraphError(f"Invalid JSON encoding: {e}") from e
            if not isinstance(source, str):
                raise MalformedGraphError("extract=True requires JSON text, not a decoded document")
            source = extract_document(source)
        return parse_graph(source, limits=self.settings.limits)

    def validate(self, graph: GraphInput) -> ValidationReport:
        return self._validator.validate(self.load_graph(graph))

    def repair(self, graph: GraphInput, report: ValidationReport) -> RepairResult:
        return self._synthesizer.repair(self.load_graph(graph), report)

    def validate_and_repair(self, graph: GraphInput) -> ValidateAndRepairResult:
        parsed = self.load_graph(graph)
        report = self._validator.validate(parsed)
        repaired, change_log = self._synthesizer.repair(parsed, report)
        return ValidateAndRepairResult(graph=repaired, report=report, change_log=change_log)

    def validate_batch(
        self,
        graphs: Iterable[GraphInput],
        *,
        max_workers: int | None = None,
    ) -> list[ValidationReport | MalformedGraphError]:
        """Validate several graphs in parallel, one task per graph.

        Results are in input order. A malformed document yields its input
        error in its slot instead of failing the whole batch.
        """
        items = list(graphs)
        workers = max_workers or self.settings.batch_workers
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._validate_one, item) for item in items]
            results = [future.result() for future in futures]

        failed = sum(1 for result in results if isinstance(result, MalformedGraphError))
        logger.info("batch_validated", graphs=len(results), malformed=failed)
        return results

    def _validate_one(self, graph: GraphInput) -> ValidationReport | MalformedGraphError:
        try:
            return self.validate(graph)
        except MalformedGraphError as e:
            return e


def _engine(settings: GraphmendSettings | None, catalog: NodeCatalog | None) -> Engine:
    return Engine(settings=settings, catalog=catalog)


def load_graph(
    source: GraphInput,
    *,
    extract: bool = False,
    settings: GraphmendSettings | None = None,
) -> WorkflowGraph:
    """Parse a graph document. See Engine.load_graph."""
    return _engine(settings, None).load_graph(source, extract=extract)


def validate(
    graph: GraphInput,
    *,
    settings: GraphmendSettings | None = None,
    catalog: NodeCatalog | None = None,
) -> ValidationReport:
    """Validate one graph and return every issue found.

    Never raises for semantic problems; only malformed input raises.
    """
    return _engine(settings, catalog).validate(graph)


def repair(
    graph: GraphInput,
    report: ValidationReport,
    *,
    settings: GraphmendSettings | None = None,
    catalog: NodeCatalog | None = None,
) -> RepairResult:
    """Apply the repair policy for ``report`` to ``graph``.

    Raises:
        UnrepairableReportError: If the report was not computed from ``graph``
    """
    return _engine(settings, catalog).repair(graph, report)


def validate_and_repair(
    graph: GraphInput,
    *,
    settings: GraphmendSettings | None = None,
    catalog: NodeCatalog | None = None,
) -> ValidateAndRepairResult:
    """validate() then repair(); the report describes the graph before repair."""
    return _engine(settings, catalog).validate_and_repair(graph)


def validate_batch(
    graphs: Iterable[GraphInput],
    *,
    max_workers: int | None = None,
    settings: GraphmendSettings | None = None,
    catalog: NodeCatalog | None = None,
) -> list[ValidationReport | MalformedGraphError]:
    """Validate graphs in parallel. See Engine.validate_batch."""
    return _engine(settings, catalog).validate_batch(graphs, max_workers=max_workers)

# tests/engine/test_engine.py
"""Tests for the public operations and the Engine facade."""

import json
from pathlib import Path

import pytest

import graphmend
from graphmend.contracts import (
    DanglingConnectionReferenceError,
    IssueKind,
    MalformedGraphError,
    RepairResult,
    ValidateAndRepairResult,
    ValidationReport,
)
from graphmend.core.catalog import default_catalog
from graphmend.core.config import GraphmendSettings, InputLimits
from graphmend.core.graph import WorkflowGraph, parse_graph
from graphmend.engine import Engine, resolve_catalog
from tests.helpers.graphs import (
    clean_linear,
    document,
    link,
    scenario_dead_end_orchestrator,
    scenario_provider_on_main,
    scenario_unconnected_branch,
    scenario_unmerged_branches,
    sink,
    start,
)


class TestModuleFunctions:
    def test_validate_accepts_every_input_form(self) -> None:
        doc = scenario_dead_end_orchestrator()
        reports = [
            graphmend.validate(doc),
            graphmend.validate(json.dumps(doc)),
            graphmend.validate(json.dumps(doc).encode("utf-8")),
            graphmend.validate(parse_graph(doc)),
        ]
        assert all(report == reports[0] for report in reports)
        assert reports[0].kinds() == {IssueKind.DEAD_END}

    def test_validate_raises_only_for_malformed_input(self) -> None:
        with pytest.raises(DanglingConnectionReferenceError):
            graphmend.validate(document([start()], [link("Start", "Ghost")]))

    def test_repair_returns_named_result(self) -> None:
        doc = scenario_provider_on_main()
        result = graphmend.repair(doc, graphmend.validate(doc))
        assert isinstance(result, RepairResult)
        assert isinstance(result.graph, WorkflowGraph)
        assert len(result.change_log) == 1

    def test_validate_and_repair(self) -> None:
        result = graphmend.validate_and_repair(scenario_unmerged_branches())
        assert isinstance(result, ValidateAndRepairResult)
        assert result.report.kinds() == {IssueKind.UNMERGED_BRANCHES}
        assert len(result.change_log) == 1
        assert graphmend.validate(result.graph).is_clean

    def test_validate_and_repair_report_describes_input(self) -> None:
        doc = scenario_dead_end_orchestrator()
        result = graphmend.validate_and_repair(doc)
        assert result.report == graphmend.validate(doc)

    def test_load_graph(self) -> None:
        g = graphmend.load_graph(clean_linear())
        assert g.node_count == 3

    def test_load_graph_extracts_from_prose(self) -> None:
        text = "Sure! Here is the workflow:\n```json\n" + json.dumps(clean_linear()) + "\n```"
        assert graphmend.load_graph(text, extract=True) == parse_graph(clean_linear())

    def test_integers_beyond_double_precision(self) -> None:
        doc = scenario_dead_end_orchestrator()
        doc["nodes"][1]["parameters"]["documentId"] = 2**60
        text = json.dumps(doc)

        report = graphmend.validate(text)
        assert report.kinds() == {IssueKind.DEAD_END}
        assert report.graph_hash is not None

        result = graphmend.validate_and_repair(text)
        assert result.change_log
        assert result.graph.node("Check").parameters["documentId"] == 2**60

    def test_settings_flow_through(self) -> None:
        text = json.dumps(clean_linear())
        with pytest.raises(MalformedGraphError, match="too large"):
            graphmend.validate(text, settings=GraphmendSettings(limits=InputLimits(max_document_bytes=10)))


class TestEngine:
    def test_extract_requires_text(self, engine: Engine) -> None:
        with pytest.raises(MalformedGraphError, match="requires JSON text"):
            engine.load_graph(clean_linear(), extract=True)

    def test_extract_accepts_bytes(self, engine: Engine) -> None:
        raw = ("noise " + json.dumps(clean_linear()) + " noise").encode("utf-8")
        assert engine.load_graph(raw, extract=True).node_count == 3

    def test_extract_rejects_undecodable_bytes(self, engine: Engine) -> None:
        with pytest.raises(MalformedGraphError, match="encoding"):
            engine.load_graph(b"noise {\"nodes\": [\xff\xfe]}", extract=True)

    def test_graph_passes_through(self, engine: Engine) -> None:
        g = parse_graph(clean_linear())
        assert engine.load_graph(g) is g

    def test_default_catalog(self) -> None:
        assert Engine().catalog is default_catalog()

    def test_custom_catalog_path(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text(
            """
channels:
  main: {}
repair:
  placeholder_sink: end
  convergence: end
kinds:
  begin: {role: source}
  end: {role: sink}
"""
        )
        engine = Engine(settings=GraphmendSettings(catalog_path=path))
        report = engine.validate(document([{"name": "B", "type": "begin"}, {"name": "E", "type": "end"}], [link("B", "E")]))
        assert report.is_clean
        assert resolve_catalog(GraphmendSettings(catalog_path=path)) is resolve_catalog(GraphmendSettings(catalog_path=path))

    def test_repair_with_hand_built_report(self, engine: Engine) -> None:
        result = engine.repair(scenario_dead_end_orchestrator(), ValidationReport())
        assert result.change_log == ()


class TestValidateBatch:
    def test_results_in_input_order(self, engine: Engine) -> None:
        docs = [clean_linear(), scenario_dead_end_orchestrator(), scenario_unconnected_branch(), scenario_unmerged_branches()]
        results = engine.validate_batch(docs, max_workers=4)
        assert [r.kinds() for r in results if isinstance(r, ValidationReport)] == [
            set(),
            {IssueKind.DEAD_END},
            {IssueKind.UNCONNECTED_BRANCH},
            {IssueKind.UNMERGED_BRANCHES},
        ]

    def test_matches_sequential_validation(self, engine: Engine) -> None:
        docs = [scenario_provider_on_main() for _ in range(8)]
        assert engine.validate_batch(docs) == [engine.validate(doc) for doc in docs]

    def test_malformed_graph_fills_its_slot(self, engine: Engine) -> None:
        results = engine.validate_batch([clean_linear(), "{not json", document([sink("Done")])])
        assert isinstance(results[0], ValidationReport)
        assert isinstance(results[1], MalformedGraphError)
        assert isinstance(results[2], ValidationReport)
        assert results[2].kinds() == {IssueKind.MISSING_SOURCE}

    def test_undecodable_and_overnested_inputs_fill_their_slots(self, engine: Engine) -> None:
        overnested = '{"nodes": [], "x": ' + "[" * 200_000 + "]" * 200_000 + "}"
        results = engine.validate_batch([b'{"nodes": [\xff]}', overnested, clean_linear()])
        assert isinstance(results[0], MalformedGraphError)
        assert isinstance(results[1], MalformedGraphError)
        assert isinstance(results[2], ValidationReport)

    def test_empty_batch(self, engine: Engine) -> None:
        assert engine.validate_batch([]) == []

    def test_module_function(self) -> None:
        results = graphmend.validate_batch([clean_linear()], settings=GraphmendSettings(batch_workers=1))
        assert results[0].is_clean  # type: ignore[union-attr]

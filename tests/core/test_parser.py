# tests/core/test_parser.py
"""Tests for wire-format parsing and input guardrails."""

import json

import pytest

from graphmend.contracts.errors import DanglingConnectionReferenceError, MalformedGraphError
from graphmend.core.config import InputLimits
from graphmend.core.graph import extract_document, parse_graph
from tests.helpers.graphs import clean_linear, document, link, node, start


class TestParseGraph:
    def test_parses_mapping(self) -> None:
        g = parse_graph(clean_linear())
        assert [n.display_name for n in g.nodes] == ["Start", "Fetch", "Notify"]
        assert g.edge_count == 2

    def test_parses_json_text_and_bytes(self) -> None:
        text = json.dumps(clean_linear())
        assert parse_graph(text) == parse_graph(text.encode("utf-8"))

    def test_connections_may_be_missing_or_null(self) -> None:
        assert parse_graph({"nodes": [start()]}).edge_count == 0
        assert parse_graph({"nodes": [start()], "connections": None}).edge_count == 0

    def test_null_slots_are_skipped(self) -> None:
        doc = document([node("R", "n-way-router"), node("X", "no-op")])
        doc["connections"] = {"R": {"main": [None, [{"node": "X", "channel": "main", "index": 0}]]}}
        g = parse_graph(doc)
        assert list(g.outgoing("R", "main")) == [1]

    def test_missing_id_gets_stable_derived_id(self) -> None:
        raw = start()
        del raw["id"]
        first = parse_graph({"nodes": [raw]}).node("Start").id
        second = parse_graph({"nodes": [dict(raw)]}).node("Start").id
        assert first == second
        assert first.startswith("node-")

    def test_integer_id_is_stringified(self) -> None:
        g = parse_graph({"nodes": [node("A", "code", node_id="7")]})
        assert g.node("A").id == "7"
        g = parse_graph({"nodes": [{**node("A", "code"), "id": 7}]})
        assert g.node("A").id == "7"

    def test_defaults(self) -> None:
        g = parse_graph({"nodes": [{"name": "A", "type": "code"}]})
        a = g.node("A")
        assert a.schema_version == 1
        assert dict(a.parameters) == {}
        assert a.position == (0, 0)

    def test_extras_and_metadata_preserved(self) -> None:
        raw = node("A", "code", credentials={"x": {"id": "9"}}, notes="keep me")
        g = parse_graph({"nodes": [raw], "connections": {}, "name": "Flow", "active": False})
        assert dict(g.node("A").extras) == {"credentials": {"x": {"id": "9"}}, "notes": "keep me"}
        assert dict(g.metadata) == {"name": "Flow", "active": False}

    def test_type_descriptor_key_is_accepted_and_preserved(self) -> None:
        doc = document(
            [start(), node("B", "code")],
            [link("Start", "B")],
            channel_key="type",
        )
        g = parse_graph(doc)
        assert g.channel_key == "type"
        assert g.to_document()["connections"] == doc["connections"]

    def test_descriptor_without_channel_uses_source_channel(self) -> None:
        doc = {"nodes": [start(), node("B", "code")], "connections": {"Start": {"main": [[{"node": "B", "index": 0}]]}}}
        g = parse_graph(doc)
        assert g.connections[0].target_channel == "main"
        assert g.channel_key == "channel"

    def test_round_trip_through_document(self) -> None:
        g = parse_graph(clean_linear())
        assert parse_graph(g.to_document()) == g


class TestParseGraphErrors:
    @pytest.mark.parametrize(
        ("doc", "match"),
        [
            ({}, "nodes"),
            ({"nodes": {}}, "nodes"),
            ({"nodes": [], "connections": []}, "connections"),
            ({"nodes": ["x"]}, "index 0"),
            ({"nodes": [{"type": "code"}]}, "display name"),
            ({"nodes": [{"name": "A"}]}, "missing type"),
            ({"nodes": [{"name": "A", "type": "code", "typeVersion": "v1"}]}, "schema version"),
            ({"nodes": [{"name": "A", "type": "code", "parameters": []}]}, "parameters"),
            ({"nodes": [{"name": "A", "type": "code", "position": [1]}]}, "position"),
            ({"nodes": [{"name": "A", "type": "code", "id": True}]}, "id"),
            ({"nodes": [{"name": "A", "type": "code"}], "connections": {"A": []}}, "keyed by channel"),
            ({"nodes": [{"name": "A", "type": "code"}], "connections": {"A": {"main": {}}}}, "array of slots"),
            ({"nodes": [{"name": "A", "type": "code"}], "connections": {"A": {"main": [{}]}}}, "must be an array"),
            ({"nodes": [{"name": "A", "type": "code"}], "connections": {"A": {"main": [[{"index": 0}]]}}}, "missing 'node'"),
        ],
    )
    def test_malformed_documents(self, doc, match) -> None:
        with pytest.raises(MalformedGraphError, match=match):
            parse_graph(doc)

    def test_channel_mismatch_is_input_error(self) -> None:
        doc = {
            "nodes": [start(), node("B", "code")],
            "connections": {"Start": {"main": [[{"node": "B", "channel": "ai_tool", "index": 0}]]}},
        }
        with pytest.raises(MalformedGraphError, match="changes channel"):
            parse_graph(doc)

    def test_non_integer_index(self) -> None:
        doc = {
            "nodes": [start(), node("B", "code")],
            "connections": {"Start": {"main": [[{"node": "B", "channel": "main", "index": "0"}]]}},
        }
        with pytest.raises(MalformedGraphError, match="non-integer index"):
            parse_graph(doc)

    def test_dangling_reference(self) -> None:
        with pytest.raises(DanglingConnectionReferenceError):
            parse_graph(document([start()], [link("Start", "Nowhere")]))

    def test_invalid_json(self) -> None:
        with pytest.raises(MalformedGraphError, match="Invalid JSON"):
            parse_graph('{"nodes": [')

    def test_top_level_array(self) -> None:
        with pytest.raises(MalformedGraphError, match="JSON object"):
            parse_graph("[]")

    def test_invalid_utf8_bytes(self) -> None:
        with pytest.raises(MalformedGraphError, match="encoding"):
            parse_graph(b'{"nodes": [{"name": "Lin\xff\xfear", "type": "code"}]}')

    def test_nesting_beyond_the_decoder_stack(self) -> None:
        text = '{"nodes": [], "x": ' + "[" * 200_000 + "]" * 200_000 + "}"
        with pytest.raises(MalformedGraphError, match="deeply nested"):
            parse_graph(text)

    def test_lone_surrogate_rejected(self) -> None:
        text = '{"nodes": [{"name": "A", "type": "code", "parameters": {"note": "\\ud800"}}]}'
        with pytest.raises(MalformedGraphError, match="Invalid Unicode"):
            parse_graph(text)

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_constants_rejected(self, constant: str) -> None:
        text = '{"nodes": [{"name": "A", "type": "wait", "parameters": {"amount": %s}}]}' % constant
        with pytest.raises(MalformedGraphError, match="non-finite"):
            parse_graph(text)


class TestInputLimits:
    def test_document_size(self) -> None:
        text = json.dumps(clean_linear())
        with pytest.raises(MalformedGraphError, match="too large"):
            parse_graph(text, limits=InputLimits(max_document_bytes=len(text) - 1))

    def test_depth(self) -> None:
        nested: dict = {"leaf": 1}
        for _ in range(10):
            nested = {"inner": nested}
        doc = {"nodes": [node("A", "code", parameters=nested)]}
        with pytest.raises(MalformedGraphError, match="deeply nested"):
            parse_graph(doc, limits=InputLimits(max_depth=8))

    def test_array_length(self) -> None:
        doc = {"nodes": [node("A", "code", parameters={"items": list(range(11))})]}
        with pytest.raises(MalformedGraphError, match="11 items"):
            parse_graph(doc, limits=InputLimits(max_array_length=10))

    def test_non_json_value_in_mapping(self) -> None:
        doc = {"nodes": [node("A", "code", parameters={"when": object()})]}
        with pytest.raises(MalformedGraphError, match="no JSON representation"):
            parse_graph(doc)

    def test_nan_in_mapping(self) -> None:
        doc = {"nodes": [node("A", "wait", parameters={"amount": float("nan")})]}
        with pytest.raises(MalformedGraphError, match="Non-finite"):
            parse_graph(doc)

    def test_defaults_accept_ordinary_documents(self) -> None:
        parse_graph(clean_linear(), limits=InputLimits())


class TestExtractDocument:
    def test_strips_code_fence(self) -> None:
        text = '```json\n{"nodes": []}\n```'
        assert json.loads(extract_document(text)) == {"nodes": []}

    def test_takes_outermost_object_from_prose(self) -> None:
        text = 'Here is your workflow:\n{"nodes": [], "connections": {"a": {}}}\nEnjoy!'
        assert json.loads(extract_document(text)) == {"nodes": [], "connections": {"a": {}}}

    @pytest.mark.parametrize("text", ["no json here", "} backwards {", ""])
    def test_no_object(self, text: str) -> None:
        with pytest.raises(MalformedGraphError, match="No JSON object"):
            extract_document(text)

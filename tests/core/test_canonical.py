# tests/core/test_canonical.py
"""Tests for canonical JSON serialization and hashing."""

from types import MappingProxyType

import pytest

from tests.helpers.graphs import clean_linear, document, start


class TestNormalizeValue:
    """Test _normalize_value handles JSON primitives."""

    def test_primitives_pass_through(self) -> None:
        from graphmend.core.canonical import _normalize_value

        assert _normalize_value("hello") == "hello"
        assert _normalize_value(42) == 42
        assert _normalize_value(3.14) == 3.14
        assert _normalize_value(None) is None
        assert _normalize_value(True) is True

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_rejected(self, value: float) -> None:
        from graphmend.core.canonical import _normalize_value

        with pytest.raises(ValueError, match="non-finite"):
            _normalize_value(value)

    def test_unknown_type_rejected(self) -> None:
        from graphmend.core.canonical import _normalize_value

        with pytest.raises(TypeError, match="set"):
            _normalize_value({1, 2})


class TestCanonicalJson:
    def test_key_order_does_not_matter(self) -> None:
        from graphmend.core.canonical import canonical_json

        assert canonical_json({"b": 1, "a": 2}) == canonical_json({"a": 2, "b": 1})
        assert canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_read_only_mappings_and_tuples(self) -> None:
        from graphmend.core.canonical import canonical_json

        frozen = MappingProxyType({"items": (1, 2), "nested": MappingProxyType({"x": None})})
        assert canonical_json(frozen) == '{"items":[1,2],"nested":{"x":null}}'


class TestStableHash:
    def test_deterministic(self) -> None:
        from graphmend.core.canonical import stable_hash

        assert stable_hash({"a": [1, 2]}) == stable_hash({"a": [1, 2]})
        assert len(stable_hash({"a": 1})) == 64

    def test_version_is_mixed_in(self) -> None:
        from graphmend.core.canonical import stable_hash

        assert stable_hash({"a": 1}, version="v1") != stable_hash({"a": 1}, version="v2")


class TestGraphHash:
    def test_same_document_same_hash(self) -> None:
        from graphmend.core.canonical import compute_graph_hash
        from graphmend.core.graph import parse_graph

        assert compute_graph_hash(parse_graph(clean_linear())) == compute_graph_hash(parse_graph(clean_linear()))

    def test_any_change_changes_hash(self) -> None:
        from graphmend.core.canonical import compute_graph_hash
        from graphmend.core.graph import parse_graph

        base = compute_graph_hash(parse_graph(document([start()])))
        renamed = compute_graph_hash(parse_graph(document([start("Begin")])))
        with_metadata = compute_graph_hash(parse_graph(document([start()], name="Flow")))
        assert len({base, renamed, with_metadata}) == 3


class TestNestedRejection:
    def test_nan_inside_parameters_rejected(self) -> None:
        from graphmend.core.canonical import canonical_json

        with pytest.raises(ValueError, match="non-finite"):
            canonical_json({"parameters": {"amounts": [1.0, float("nan")]}})

    def test_bytes_rejected(self) -> None:
        from graphmend.core.canonical import canonical_json

        with pytest.raises(TypeError, match="bytes"):
            canonical_json({"payload": b"raw"})


class TestDeriveNodeId:
    def test_shape(self) -> None:
        from graphmend.core.canonical import NODE_ID_DIGEST_LENGTH, NODE_ID_PREFIX, derive_node_id

        node_id = derive_node_id({"name": "Fetch"})
        assert node_id.startswith(NODE_ID_PREFIX)
        assert len(node_id) == len(NODE_ID_PREFIX) + NODE_ID_DIGEST_LENGTH
        int(node_id.removeprefix(NODE_ID_PREFIX), 16)

    def test_same_seed_same_id(self) -> None:
        from graphmend.core.canonical import derive_node_id

        assert derive_node_id({"name": "Fetch", "graph": "abc"}) == derive_node_id({"graph": "abc", "name": "Fetch"})
        assert derive_node_id({"name": "Fetch"}) != derive_node_id({"name": "Notify"})


class TestLargeIntegers:
    def test_integers_beyond_double_precision_are_tagged(self) -> None:
        from graphmend.core.canonical import canonical_json

        assert canonical_json({"documentId": 2**60}) == '{"documentId":{"__bigint__":"1152921504606846976"}}'
        assert canonical_json([-(2**60)]) == '[{"__bigint__":"-1152921504606846976"}]'

    def test_largest_safe_integer_stays_a_number(self) -> None:
        from graphmend.core.canonical import canonical_json

        assert canonical_json(2**53 - 1) == "9007199254740991"

    def test_distinct_large_integers_hash_differently(self) -> None:
        from graphmend.core.canonical import stable_hash

        assert stable_hash({"id": 2**60}) != stable_hash({"id": 2**60 + 1})
        assert stable_hash({"id": 2**60}) != stable_hash({"id": str(2**60)})

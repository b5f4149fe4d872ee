"""Tests for hash utilities and canonicalization rules."""

import json
import random

import pytest

from ontlock.contracts import ApiSurfaceSnapshot
from ontlock.kernel.hash_utils import (
    HASH_LENGTH,
    CanonicalizationError,
    canonicalize_json,
    hash_canonical,
    hash_snapshot,
)


def _shuffle_keys(obj, rng):
    """Rebuild every dict with a random key insertion order; lists keep their order."""
    if isinstance(obj, dict):
        items = list(obj.items())
        rng.shuffle(items)
        return {k: _shuffle_keys(v, rng) for k, v in items}
    if isinstance(obj, list):
        return [_shuffle_keys(item, rng) for item in obj]
    return obj


class TestCanonicalizeJson:
    """Tests for canonicalize_json function."""

    def test_simple_dict_sorts_keys(self):
        """Object keys should be sorted."""
        obj = {"b": 2, "a": 1, "c": 3}
        assert canonicalize_json(obj) == '{"a":1,"b":2,"c":3}'

    def test_nested_dict_sorts_recursively(self):
        """Nested object keys should be sorted recursively."""
        obj = {"z": {"b": 2, "a": 1}, "a": {"d": 4, "c": 3}}
        assert canonicalize_json(obj) == '{"a":{"c":3,"d":4},"z":{"a":1,"b":2}}'

    def test_array_preserves_order(self):
        """Array order is content and must not be sorted."""
        assert canonicalize_json({"items": [3, 1, 2]}) == '{"items":[3,1,2]}'

    def test_string_normalization_nfc(self):
        """Composed and decomposed forms canonicalize identically."""
        composed = {"text": "caf\u00e9"}
        decomposed = {"text": "cafe\u0301"}
        assert composed != decomposed
        assert canonicalize_json(composed) == canonicalize_json(decomposed)

    def test_scalars_allowed(self):
        obj = {"count": 42, "flag": True, "ratio": 0.5, "value": None}
        assert canonicalize_json(obj) == '{"count":42,"flag":true,"ratio":0.5,"value":null}'

    def test_nan_and_inf_banned(self):
        """NaN/Inf have no JSON representation and are rejected."""
        with pytest.raises(CanonicalizationError, match="NaN or Inf"):
            canonicalize_json({"value": float("nan")})
        with pytest.raises(CanonicalizationError, match="NaN or Inf"):
            canonicalize_json([float("inf")])

    def test_non_json_types_banned(self):
        with pytest.raises(CanonicalizationError, match="Non-JSON type"):
            canonicalize_json({"value": {1, 2}})
        with pytest.raises(CanonicalizationError, match="keys must be strings"):
            canonicalize_json({1: "a"})


class TestHashing:
    """Tests for the truncated content hash."""

    def test_hash_is_16_lowercase_hex(self):
        digest = hash_canonical({"a": 1})
        assert len(digest) == HASH_LENGTH == 16
        assert all(c in "0123456789abcdef" for c in digest)

    def test_key_order_does_not_change_hash(self, sample_snapshot):
        """Any permutation of object key insertion order yields the same hash."""
        wire = sample_snapshot.to_wire()
        rng = random.Random(7)
        expected = hash_canonical(wire)
        for _ in range(10):
            assert hash_canonical(_shuffle_keys(wire, rng)) == expected

    def test_array_order_changes_hash(self):
        assert hash_canonical({"items": [1, 2]}) != hash_canonical({"items": [2, 1]})

    def test_snapshot_hash_stable_across_serialization(self, sample_snapshot):
        """A snapshot reloaded from its JSON form hashes the same."""
        reloaded = ApiSurfaceSnapshot.model_validate(json.loads(json.dumps(sample_snapshot.to_wire())))
        assert hash_snapshot(reloaded) == hash_snapshot(sample_snapshot)

    def test_name_lists_are_order_insensitive(self):
        """Access groups and entities are canonicalized to sorted order before hashing."""
        a = ApiSurfaceSnapshot(name="x", access_groups=["b", "a"], entities=["Z", "Y"], functions={})
        b = ApiSurfaceSnapshot(name="x", access_groups=["a", "b"], entities=["Y", "Z"], functions={})
        assert hash_snapshot(a) == hash_snapshot(b)

    def test_absent_entities_differ_from_empty(self):
        """Omitted entities and an empty entity list are distinct snapshots."""
        a = ApiSurfaceSnapshot(name="x", access_groups=["a"], functions={})
        b = ApiSurfaceSnapshot(name="x", access_groups=["a"], entities=[], functions={})
        assert hash_snapshot(a) != hash_snapshot(b)

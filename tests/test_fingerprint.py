"""Tests for request fingerprinting: canonical form, key order, cycles."""

import json

from quote_mailer.core.fingerprint import canonical_json, canonicalize, fingerprint

SECRET = "fp-secret"


# ═══════════════════════════════════════════════════════════════════════════════
# Canonical form
# ═══════════════════════════════════════════════════════════════════════════════

class TestCanonicalize:

    def test_scalars_pass_through(self):
        for v in (1, 2.5, "x", True, None):
            assert canonicalize(v) == v

    def test_keys_sorted(self):
        out = canonicalize({"b": 1, "a": 2, "c": {"z": 1, "y": 2}})
        assert list(out) == ["a", "b", "c"]
        assert list(out["c"]) == ["y", "z"]

    def test_array_order_preserved(self):
        assert canonicalize([3, 1, 2]) == [3, 1, 2]

    def test_objects_inside_arrays_sorted(self):
        out = canonicalize([{"b": 1, "a": 2}])
        assert list(out[0]) == ["a", "b"]

    def test_does_not_mutate_input(self):
        data = {"b": [1, {"d": 1, "c": 2}], "a": 1}
        canonicalize(data)
        assert list(data) == ["b", "a"]
        assert list(data["b"][1]) == ["d", "c"]

    def test_self_referencing_dict_dropped(self):
        data = {"a": 1}
        data["self"] = data
        assert canonicalize(data) == {"a": 1}

    def test_self_referencing_list_becomes_none(self):
        data = [1]
        data.append(data)
        assert canonicalize(data) == [1, None]

    def test_indirect_cycle(self):
        parent = {"name": "p"}
        child = {"name": "c", "parent": parent}
        parent["child"] = child
        assert canonicalize(parent) == {"child": {"name": "c"}, "name": "p"}

    def test_shared_reference_is_not_a_cycle(self):
        shared = {"v": 1}
        assert canonicalize({"x": shared, "y": shared}) == {"x": {"v": 1}, "y": {"v": 1}}


class TestCanonicalJson:

    def test_none_body_is_empty_object(self):
        assert canonical_json(None) == "{}"

    def test_compact_and_valid(self):
        s = canonical_json({"b": [1, 2], "a": "é"})
        assert s == '{"a":"é","b":[1,2]}'
        assert json.loads(s) == {"a": "é", "b": [1, 2]}


# ═══════════════════════════════════════════════════════════════════════════════
# Fingerprint
# ═══════════════════════════════════════════════════════════════════════════════

class TestFingerprint:

    def test_hex_digest_length(self):
        fp = fingerprint({"a": 1}, SECRET)
        assert len(fp) == 64
        int(fp, 16)

    def test_key_order_independent(self):
        p1 = {"name": "Jane", "items": [{"quantity": 1, "description": "x"}], "email": "j@x.com"}
        p2 = {"email": "j@x.com", "items": [{"description": "x", "quantity": 1}], "name": "Jane"}
        assert fingerprint(p1, SECRET) == fingerprint(p2, SECRET)

    def test_scalar_change_changes_fingerprint(self):
        base = {"name": "Jane", "items": [{"quantity": 1}]}
        changed = {"name": "Jane", "items": [{"quantity": 2}]}
        assert fingerprint(base, SECRET) != fingerprint(changed, SECRET)

    def test_array_order_matters(self):
        assert fingerprint({"i": [1, 2]}, SECRET) != fingerprint({"i": [2, 1]}, SECRET)

    def test_keyed_by_secret(self):
        assert fingerprint({"a": 1}, "one") != fingerprint({"a": 1}, "two")

    def test_none_equals_empty_object(self):
        assert fingerprint(None, SECRET) == fingerprint({}, SECRET)

    def test_cyclic_payload_does_not_raise(self):
        data = {"a": 1}
        data["loop"] = data
        assert fingerprint(data, SECRET) == fingerprint({"a": 1}, SECRET)

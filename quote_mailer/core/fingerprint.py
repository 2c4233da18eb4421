"""
fingerprint.py — Request Fingerprinting

Turns an arbitrary JSON-like payload into a stable HMAC digest so that two
bodies with the same keys and values produce the same fingerprint no matter
how their keys were ordered on the wire.

Values fall into three shapes:
    mapping   — keys sorted, values canonicalized
    sequence  — list/tuple, elements canonicalized in order
    scalar    — everything else, passed through

A container that references one of its own ancestors is a cycle. The
offending reference is dropped from a mapping and becomes None inside a
sequence, which is how JSON treats an absent value.
"""

import hashlib
import hmac
import json
from collections.abc import Mapping

_ABSENT = object()


def _canonicalize(value, ancestors: set):
    if isinstance(value, Mapping):
        if id(value) in ancestors:
            return _ABSENT
        ancestors.add(id(value))
        out = {}
        for key in sorted(value, key=str):
            child = _canonicalize(value[key], ancestors)
            if child is not _ABSENT:
                out[str(key)] = child
        ancestors.discard(id(value))
        return out

    if isinstance(value, (list, tuple)):
        if id(value) in ancestors:
            return _ABSENT
        ancestors.add(id(value))
        out = []
        for item in value:
            child = _canonicalize(item, ancestors)
            out.append(None if child is _ABSENT else child)
        ancestors.discard(id(value))
        return out

    return value


def canonicalize(value):
    """Return an ordering-independent copy of ``value``.

    A top-level cycle cannot happen (nothing is an ancestor of the root), so
    the result is always a real value.
    """
    return _canonicalize(value, set())


def canonical_json(value) -> str:
    """Deterministic compact JSON for ``value``. A missing body is ``{}``."""
    if value is None:
        value = {}
    return json.dumps(canonicalize(value), separators=(",", ":"),
                      ensure_ascii=False, default=str)


def fingerprint(value, secret: str) -> str:
    """HMAC-SHA256 hex digest of the canonical form of ``value``."""
    key = secret.encode("utf-8")
    body = canonical_json(value).encode("utf-8")
    return hmac.new(key, body, hashlib.sha256).hexdigest()

"""
tokens.py — Signed Download Tokens

Stateless, expiring links for generated quote PDFs.

Wire format:
    <payload>.<mac>
    payload = base64url(JSON {"artifactName": <name>, "expiry": <unix seconds>})
    mac     = base64url(HMAC-SHA256(secret, payload))

Both segments are base64url with the trailing "=" padding stripped. There
is no server-side token store: a token is valid while its MAC matches and
``expiry`` has not passed. Rotating the secret invalidates every outstanding
link at once.

verify() never says *why* a token failed. Callers get the payload or None.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import TokenInvalid

log = logging.getLogger("quotes.tokens")

_B64URL_RE = re.compile(r"\A[A-Za-z0-9_-]*\Z")


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(segment: str) -> bytes:
    """Strict base64url decode. Raises TokenInvalid on any bad input."""
    if not _B64URL_RE.match(segment):
        raise TokenInvalid("bad base64url alphabet")
    raw = segment.encode("ascii")
    raw += b"=" * (-len(raw) % 4)
    try:
        return base64.urlsafe_b64decode(raw)
    except (binascii.Error, ValueError):
        raise TokenInvalid("bad base64") from None


@dataclass(frozen=True)
class SignedToken:
    payload_segment: str
    mac_segment: str

    def encode(self) -> str:
        return f"{self.payload_segment}.{self.mac_segment}"

    @classmethod
    def parse(cls, raw: str) -> "SignedToken":
        if not isinstance(raw, str):
            raise TokenInvalid("token must be a string")
        parts = raw.split(".")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise TokenInvalid("expected exactly two segments")
        return cls(parts[0], parts[1])


class TokenCodec:
    """Signs and verifies download tokens with a shared secret."""

    def __init__(self, secret: str, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._key = secret.encode("utf-8")
        self._clock = clock

    def _mac(self, payload_segment: str) -> str:
        digest = hmac.new(self._key, payload_segment.encode("ascii"),
                          hashlib.sha256).digest()
        return b64url_encode(digest)

    def sign(self, payload: dict) -> str:
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        segment = b64url_encode(body)
        return SignedToken(segment, self._mac(segment)).encode()

    def mint(self, filename: str, ttl: int) -> str:
        """Token for ``filename`` that expires ``ttl`` seconds from now."""
        return self.sign({"artifactName": filename,
                          "expiry": int(self._clock()) + int(ttl)})

    def decode(self, raw: str) -> dict:
        """Full verification. Raises TokenInvalid on any failure."""
        token = SignedToken.parse(raw)
        try:
            expected = self._mac(token.payload_segment).encode("ascii")
            actual = token.mac_segment.encode("ascii")
        except UnicodeEncodeError:
            raise TokenInvalid("non-ascii segment") from None
        if not hmac.compare_digest(actual, expected):
            raise TokenInvalid("mac mismatch")

        try:
            payload = json.loads(b64url_decode(token.payload_segment).decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise TokenInvalid("payload is not JSON") from None
        if not isinstance(payload, dict):
            raise TokenInvalid("payload is not an object")

        exp = payload.get("expiry")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise TokenInvalid("missing expiry")
        if exp < int(self._clock()):
            raise TokenInvalid("expired")
        return payload

    def verify(self, raw: str) -> Optional[dict]:
        """Payload on success, None otherwise."""
        try:
            return self.decode(raw)
        except TokenInvalid as e:
            log.debug("Download token rejected: %s", e.message)
            return None

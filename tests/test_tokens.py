"""Tests for signed download tokens: expiry, tamper detection, malformed input."""

import json

import pytest

from quote_mailer.core.errors import TokenInvalid
from quote_mailer.core.tokens import (SignedToken, TokenCodec, b64url_decode,
                                      b64url_encode)


@pytest.fixture
def codec(clock):
    return TokenCodec("token-secret", clock=clock)


def _flip(ch):
    return "A" if ch != "A" else "B"


class TestBase64Url:

    def test_no_padding_or_unsafe_chars(self):
        enc = b64url_encode(b"\xfb\xff\xfe")
        assert "=" not in enc and "+" not in enc and "/" not in enc

    def test_decode_restores_padding(self):
        assert b64url_decode(b64url_encode(b"ab")) == b"ab"

    def test_decode_rejects_bad_alphabet(self):
        with pytest.raises(TokenInvalid):
            b64url_decode("ab+/")


class TestSignedToken:

    def test_parse_two_segments(self):
        t = SignedToken.parse("abc.def")
        assert t == SignedToken("abc", "def")
        assert t.encode() == "abc.def"

    @pytest.mark.parametrize("raw", ["", "abc", "a.b.c", ".mac", "payload."])
    def test_parse_rejects_wrong_shape(self, raw):
        with pytest.raises(TokenInvalid):
            SignedToken.parse(raw)


class TestSignVerify:

    def test_wire_format(self, codec):
        token = codec.sign({"artifactName": "q.pdf", "expiry": 1})
        payload_seg, mac_seg = token.split(".")
        assert json.loads(b64url_decode(payload_seg)) == {"artifactName": "q.pdf", "expiry": 1}
        assert len(b64url_decode(mac_seg)) == 32

    def test_valid_within_ttl(self, codec, clock):
        token = codec.mint("quote-1.pdf", 60)
        clock.advance(30)
        assert codec.verify(token) == {"artifactName": "quote-1.pdf", "expiry": int(clock.now) + 30}

    def test_valid_at_exact_expiry(self, codec, clock):
        token = codec.mint("quote-1.pdf", 60)
        clock.advance(60)
        assert codec.verify(token) is not None

    def test_expired_after_ttl(self, codec, clock):
        token = codec.mint("quote-1.pdf", 60)
        clock.advance(61)
        assert codec.verify(token) is None

    def test_reusable_until_expiry(self, codec):
        token = codec.mint("quote-1.pdf", 60)
        assert codec.verify(token) is not None
        assert codec.verify(token) is not None

    def test_tampered_payload_rejected(self, codec):
        token = codec.mint("quote-1.pdf", 60)
        payload_seg, mac_seg = token.split(".")
        tampered = _flip(payload_seg[0]) + payload_seg[1:]
        assert codec.verify(f"{tampered}.{mac_seg}") is None

    def test_tampered_mac_rejected(self, codec):
        token = codec.mint("quote-1.pdf", 60)
        payload_seg, mac_seg = token.split(".")
        assert codec.verify(f"{payload_seg}.{mac_seg[:-1]}{_flip(mac_seg[-1])}") is None

    def test_truncated_mac_rejected(self, codec):
        token = codec.mint("quote-1.pdf", 60)
        assert codec.verify(token[:-4]) is None

    def test_other_secret_rejected(self, codec, clock):
        other = TokenCodec("different-secret", clock=clock)
        assert codec.verify(other.mint("quote-1.pdf", 60)) is None

    def test_forged_payload_with_reused_mac(self, codec):
        token = codec.mint("quote-1.pdf", 60)
        _, mac_seg = token.split(".")
        forged = b64url_encode(json.dumps({"artifactName": "other.pdf", "expiry": 9999999999}).encode())
        assert codec.verify(f"{forged}.{mac_seg}") is None

    def test_missing_expiry_rejected(self, codec):
        assert codec.verify(codec.sign({"artifactName": "quote-1.pdf"})) is None

    def test_non_numeric_expiry_rejected(self, codec):
        assert codec.verify(codec.sign({"artifactName": "q.pdf", "expiry": "soon"})) is None

    def test_non_object_payload_rejected(self, codec):
        assert codec.verify(codec.sign(["artifactName", 1])) is None

    @pytest.mark.parametrize("raw", ["", "garbage", "a.b.c", "é.é", None])
    def test_malformed_returns_none(self, codec, raw):
        assert codec.verify(raw) is None

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            TokenCodec("")

    def test_decode_raises_for_expired(self, codec, clock):
        token = codec.mint("q.pdf", 1)
        clock.advance(5)
        with pytest.raises(TokenInvalid):
            codec.decode(token)

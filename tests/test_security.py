"""Tests for the rate limiter, the API key check, disk storage and log formatting."""

import json
import logging
import os

import pytest

from quote_mailer.core.logging_config import HumanFormatter, JSONFormatter, setup_logging
from quote_mailer.core.security import RateLimiter, api_key_valid
from quote_mailer.core.storage import ArtifactStore


class TestRateLimiter:

    def test_burst_then_block(self, clock):
        limiter = RateLimiter(clock=clock)
        assert all(limiter.check("ip", max_tokens=3, refill_rate=1.0) for _ in range(3))
        assert limiter.check("ip", max_tokens=3, refill_rate=1.0) is False

    def test_refills_over_time(self, clock):
        limiter = RateLimiter(clock=clock)
        for _ in range(3):
            limiter.check("ip", max_tokens=3, refill_rate=1.0)
        clock.advance(1)
        assert limiter.check("ip", max_tokens=3, refill_rate=1.0) is True

    def test_keys_independent(self, clock):
        limiter = RateLimiter(clock=clock)
        limiter.check("a", max_tokens=1, refill_rate=0.0)
        assert limiter.check("b", max_tokens=1, refill_rate=0.0) is True

    def test_cleanup(self, clock):
        limiter = RateLimiter(clock=clock)
        limiter.check("a")
        clock.advance(3601)
        assert limiter.cleanup() == 1


class TestApiKey:

    @pytest.mark.parametrize("expected,supplied,ok", [
        ("", "", True),
        ("", "anything", True),
        ("k", "", False),
        ("k", "x", False),
        ("k", "k", True),
    ])
    def test_api_key_valid(self, expected, supplied, ok):
        assert api_key_valid(expected, supplied) is ok


class TestArtifactStore:

    def test_save_and_exists(self, output_dir):
        store = ArtifactStore(output_dir)
        path = store.save("quote-1.pdf", b"%PDF")
        assert store.exists("quote-1.pdf")
        with open(path, "rb") as f:
            assert f.read() == b"%PDF"
        assert not os.path.exists(path + ".tmp")

    def test_path_traversal_flattened(self, output_dir):
        store = ArtifactStore(output_dir)
        assert store.path_for("../../etc/passwd") == os.path.join(output_dir, "passwd")

    @pytest.mark.parametrize("name", ["", "..", "dir/"])
    def test_invalid_names(self, output_dir, name):
        store = ArtifactStore(output_dir)
        with pytest.raises(ValueError):
            store.path_for(name)
        assert store.exists(name) is False


class TestJSONFormatter:

    def test_extra_fields_included(self):
        record = logging.LogRecord("quotes.delivery", logging.INFO, __file__, 1,
                                   "Quote delivered: %s", ("q.pdf",), None)
        record.fingerprint = "abc123"
        record.file = "q.pdf"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["msg"] == "Quote delivered: q.pdf"
        assert entry["fingerprint"] == "abc123"
        assert entry["file"] == "q.pdf"
        assert "recipient" not in entry

    def test_timestamp_and_service(self):
        record = logging.LogRecord("quotes.api", logging.INFO, __file__, 1, "hi", (), None)
        record.created = 1_700_000_000.5
        entry = json.loads(JSONFormatter().format(record))
        assert entry["ts"] == "2023-11-14T22:13:20.500000Z"
        assert entry["service"] == "quote-mailer"

    def test_none_extras_omitted(self):
        record = logging.LogRecord("quotes.api", logging.INFO, __file__, 1, "hi", (), None)
        record.fingerprint = None
        assert "fingerprint" not in json.loads(JSONFormatter().format(record))


class TestHumanFormatter:

    def test_delivery_context_tag(self):
        record = logging.LogRecord("quotes.delivery", logging.ERROR, __file__, 1,
                                   "Send failed", (), None)
        record.fingerprint = "abc123"
        record.recipient = "a@x.com"
        line = HumanFormatter().format(record)
        assert "delivery: Send failed [fp=abc123 to=a@x.com]" in line
        assert "quotes.delivery" not in line

    def test_no_tag_without_context(self):
        record = logging.LogRecord("werkzeug", logging.INFO, __file__, 1, "GET /", (), None)
        line = HumanFormatter().format(record)
        assert "werkzeug: GET /" in line
        assert "[fp=" not in line


def test_setup_logging_writes_json_file(tmp_path):
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        setup_logging(level="INFO", json_logs=False, log_dir=str(tmp_path))
        logging.getLogger("quotes.test").info("hello", extra={"file": "q.pdf"})
        for h in root.handlers:
            h.flush()
        with open(tmp_path / "quotes.log") as f:
            lines = [json.loads(line) for line in f if line.strip()]
        assert any(e["msg"] == "hello" and e["file"] == "q.pdf" for e in lines)
    finally:
        for h in root.handlers:
            h.close()
        root.handlers[:] = saved[1]
        root.setLevel(saved[0])

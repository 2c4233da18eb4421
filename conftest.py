"""
Shared pytest fixtures for the Quote Mailer test suite.

Every test gets an isolated output directory, a manual clock it can move
forward, and a recording mail sender in place of SMTP.
"""
import os
import sys

import pytest

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from quote_mailer.agents.email_sender import EmailSender  # noqa: E402
from quote_mailer.core.config import Config  # noqa: E402
from quote_mailer.core.dedup_cache import DedupCache  # noqa: E402
from quote_mailer.core.errors import DeliveryFailure  # noqa: E402

ADMIN = "a@x.com"
CUSTOMER = "b@y.com"


# ── Clock ─────────────────────────────────────────────────────────────────────

class ManualClock:
    """Callable clock that only moves when told to."""
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


# ── Mail ──────────────────────────────────────────────────────────────────────

class RecordingSender(EmailSender):
    """Real drafts, no SMTP. Addresses in ``fail_for`` raise DeliveryFailure."""
    def __init__(self, config, fail_for=()):
        super().__init__(config)
        self.sent = []
        self.fail_for = {a.lower() for a in fail_for}

    def send(self, to, draft, attachment):
        if to.lower() in self.fail_for:
            raise DeliveryFailure("simulated SMTP failure", recipient=to)
        self.sent.append({"to": to, "subject": draft["subject"],
                          "filename": draft["filename"], "size": len(attachment)})
        return True

    @property
    def recipients(self):
        return [m["to"] for m in self.sent]


@pytest.fixture
def config():
    return Config(
        quote_secret="test-token-secret",
        fingerprint_secret="test-fingerprint-secret",
        download_token_ttl=60,
        dedup_window=15,
        dedup_sweep_interval=60,
        admin_emails=[ADMIN],
        api_key="",
        mail_from="quotes@x.com",
        mail_from_name="Test Quotes",
        download_path="downloads",
    )


@pytest.fixture
def sender(config):
    return RecordingSender(config)


@pytest.fixture
def cache(clock, config):
    return DedupCache(window=config.dedup_window,
                      sweep_interval=config.dedup_sweep_interval, clock=clock)


@pytest.fixture
def output_dir(tmp_path):
    d = tmp_path / "quotes"
    d.mkdir()
    return str(d)


# ── Flask ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(config, cache, sender, output_dir, clock, monkeypatch):
    monkeypatch.delenv("DISABLE_RATE_LIMIT", raising=False)
    from quote_mailer.api.server import create_app
    return create_app(config=config, cache=cache, sender=sender,
                      output_dir=output_dir, clock=clock, testing=True)


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


# ── Sample data ───────────────────────────────────────────────────────────────

@pytest.fixture
def sample_payload():
    """Quote request body with two line items and a customer address."""
    return {
        "name": "Jane Smith",
        "email": CUSTOMER,
        "company": "Acme Supply",
        "phone": "555-0100",
        "message": "Please include shipping to the Chino warehouse.",
        "items": [
            {"description": "Restraint strap, chest, green", "quantity": 2, "unit_price": 69.12},
            {"description": "X-Restraint package", "quantity": 1, "total_price": 454.40},
        ],
    }

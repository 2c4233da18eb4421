"""
Quote delivery orchestration.

    payload → fingerprint → dedup check → render + store
            → per-recipient send (admins, then customer) → mark processed
            → download token

At most one email per (fingerprint, recipient): each address is checked
against the cache before sending and recorded right after a successful
send. A failed send is logged and the loop moves on. If nothing could be
delivered at all, the failure goes back to the caller. Any exception
raised after the dedup check releases the fingerprint so a retry can go
through; addresses already mailed stay recorded and are skipped by that
retry. Otherwise the fingerprint is marked processed even when some
recipients failed; those are not retried inside the window.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from urllib.parse import quote as urlquote

from ..core.config import Config
from ..core.dedup_cache import DedupCache, normalize_address
from ..core.errors import DeliveryFailure, RenderFailure
from ..core.fingerprint import fingerprint
from ..core.storage import ArtifactStore
from ..core.tokens import TokenCodec
from ..forms.quote_generator import RenderedQuote
from ..forms.quote_request import QuoteRequest
from .email_sender import EmailSender

log = logging.getLogger("quotes.delivery")


@dataclass
class DeliveryResult:
    fingerprint: str
    duplicate: bool = False
    filename: Optional[str] = None
    download_url: Optional[str] = None
    sent: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"sent": list(self.sent), "failed": list(self.failed),
                "skipped": list(self.skipped)}


class DeliveryOrchestrator:
    """Runs one validated quote request through render, mail and token minting."""

    def __init__(self, cache: DedupCache, renderer: Callable[[QuoteRequest], RenderedQuote],
                 sender: EmailSender, store: ArtifactStore, codec: TokenCodec,
                 config: Config):
        self.cache = cache
        self.renderer = renderer
        self.sender = sender
        self.store = store
        self.codec = codec
        self.config = config

    def deliver(self, quote: QuoteRequest, payload, download_base: str) -> DeliveryResult:
        fp = fingerprint(payload, self.config.fingerprint_secret)
        ctx = {"fingerprint": fp[:16]}

        check = self.cache.check_and_mark_in_flight(fp)
        if check.is_duplicate:
            return DeliveryResult(fingerprint=fp, duplicate=True)

        try:
            return self._process(fp, quote, download_base, ctx)
        except Exception:
            self.cache.release(fp)
            raise

    def _process(self, fp: str, quote: QuoteRequest, download_base: str,
                 ctx: dict) -> DeliveryResult:
        try:
            rendered = self.renderer(quote)
            self.store.save(rendered.filename, rendered.pdf_bytes)
        except Exception as e:
            log.error("Quote render failed: %s", e, exc_info=True, extra=ctx)
            raise RenderFailure("Failed to generate quote document", fingerprint=fp) from e

        result = DeliveryResult(fingerprint=fp, filename=rendered.filename)

        admins = self.config.admin_emails
        admin_draft = self.sender.build_admin_email(quote, rendered.filename)
        self._send_all(fp, admins, admin_draft, rendered.pdf_bytes, result)

        admin_keys = {normalize_address(a) for a in admins}
        if quote.email and normalize_address(quote.email) not in admin_keys:
            customer_draft = self.sender.build_customer_email(quote, rendered.filename)
            self._send_all(fp, [quote.email], customer_draft, rendered.pdf_bytes, result)

        if result.failed and not result.sent:
            raise DeliveryFailure(
                f"Could not deliver quote to any of {len(result.failed)} recipient(s)",
                fingerprint=fp)

        self.cache.mark_processed(fp)
        if result.failed:
            log.warning("Partial delivery: sent=%d failed=%d",
                        len(result.sent), len(result.failed), extra=ctx)

        token = self.codec.mint(rendered.filename, self.config.download_token_ttl)
        result.download_url = (f"{download_base.rstrip('/')}/{urlquote(rendered.filename)}"
                               f"?token={urlquote(token)}")
        log.info("Quote delivered: %s (sent=%d skipped=%d)", rendered.filename,
                 len(result.sent), len(result.skipped),
                 extra=dict(ctx, file=rendered.filename, quote_total=quote.subtotal))
        return result

    def _send_all(self, fp: str, candidates: List[str], draft: dict,
                  attachment: bytes, result: DeliveryResult) -> None:
        pending = self.cache.recipients_pending(fp, candidates)
        pending_keys = {normalize_address(a) for a in pending}
        for address in candidates:
            if normalize_address(address) not in pending_keys:
                result.skipped.append(address)

        for address in pending:
            try:
                self.sender.send(address, draft, attachment)
            except Exception as e:
                log.error("Send to %s failed: %s", address, e,
                          extra={"fingerprint": fp[:16], "recipient": address})
                result.failed.append(address)
                continue
            self.cache.mark_sent(fp, address)
            result.sent.append(address)

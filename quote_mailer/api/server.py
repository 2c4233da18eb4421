"""
Flask application factory.
Wires the quote services, registers the routes and starts the cache sweeper.
"""

import atexit
import logging
import time

from flask import Flask, request

from ..agents.delivery import DeliveryOrchestrator
from ..agents.email_sender import EmailSender
from ..core.config import Config, load_config, startup_check
from ..core.dedup_cache import DedupCache
from ..core.paths import OUTPUT_DIR
from ..core.security import RateLimiter
from ..core.storage import ArtifactStore
from ..core.tokens import TokenCodec
from ..forms.quote_generator import render_quote
from .routes import bp, download_quote

log = logging.getLogger("quotes")


def create_app(config: Config = None, cache: DedupCache = None, sender=None,
               renderer=None, output_dir: str = None, clock=time.time,
               testing: bool = False):
    """Application factory.

    Every collaborator can be injected; anything left as None is built from
    the environment.
    """
    app = Flask(__name__)
    app.config["TESTING"] = testing
    cfg = config or load_config()
    app.config["QUOTE_CONFIG"] = cfg

    if cache is None:
        cache = DedupCache(window=cfg.dedup_window,
                           sweep_interval=cfg.dedup_sweep_interval, clock=clock)
    store = ArtifactStore(output_dir or OUTPUT_DIR)
    codec = TokenCodec(cfg.quote_secret, clock=clock)
    sender = sender or EmailSender(cfg)
    if renderer is None:
        def renderer(quote):
            return render_quote(quote, now=clock(), seller=cfg.mail_from_name)

    app.extensions["quote_mailer"] = {
        "cache": cache,
        "store": store,
        "codec": codec,
        "orchestrator": DeliveryOrchestrator(cache, renderer, sender, store, codec, cfg),
    }
    limiter = RateLimiter(clock=clock)
    app.extensions["rate_limiter"] = limiter
    cache.add_sweep_hook(limiter.cleanup)

    app.register_blueprint(bp)
    app.add_url_rule(f"/{cfg.download_path}/<filename>", endpoint="download_quote",
                     view_func=download_quote)

    # ── Request-level structured logging ────────────────────────────────────
    @app.before_request
    def _log_request_start():
        request.environ["quotes.start"] = time.time()

    @app.after_request
    def _log_request_end(response):
        started = request.environ.get("quotes.start")
        if started is not None and request.path != "/api/health":
            duration_ms = round((time.time() - started) * 1000, 1)
            log.info("%s %s → %d (%.0fms)",
                     request.method, request.path, response.status_code, duration_ms,
                     extra={"route": request.path, "method": request.method,
                            "status": response.status_code, "duration_ms": duration_ms})
        return response

    if not cfg.admin_emails:
        log.warning("ADMIN_EMAIL is empty; quotes will only go to customers")

    if not testing:
        startup_check()
        cache.start()
        atexit.register(cache.stop)

    return app

"""
Security Middleware — Shared-Secret Check + Rate Limiting
=========================================================

API key:
- Quote submissions carry the shared secret in the X-API-Key header
- Compared in constant time; check is off when QUOTE_API_KEY is unset

Rate Limiting:
- In-memory token bucket per IP address
- Configurable limits per endpoint group
- 429 response when exceeded
"""

import os
import time
import hmac
import logging
import functools
from threading import Lock

from flask import current_app, jsonify, request

log = logging.getLogger("quotes.security")

API_KEY_HEADER = "X-API-Key"

# ═══════════════════════════════════════════════════════════════════════════════
# Rate Limiting
# ═══════════════════════════════════════════════════════════════════════════════

class RateLimiter:
    """Simple in-memory rate limiter using token bucket algorithm."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._buckets = {}
        self._lock = Lock()

    def check(self, key: str, max_tokens: int = 60, refill_rate: float = 1.0) -> bool:
        """Check if request is allowed. Returns True if allowed, False if rate limited.

        Args:
            key: Unique key for the bucket (usually IP + endpoint group)
            max_tokens: Maximum burst capacity
            refill_rate: Tokens added per second
        """
        with self._lock:
            now = self._clock()
            bucket = self._buckets.setdefault(key, {"tokens": max_tokens, "last_refill": now})
            elapsed = now - bucket["last_refill"]

            bucket["tokens"] = min(max_tokens, bucket["tokens"] + elapsed * refill_rate)
            bucket["last_refill"] = now

            if bucket["tokens"] >= 1:
                bucket["tokens"] -= 1
                return True
            return False

    def cleanup(self, max_age: int = 3600) -> int:
        """Remove stale buckets older than max_age seconds."""
        now = self._clock()
        with self._lock:
            stale = [k for k, v in self._buckets.items() if now - v["last_refill"] > max_age]
            for k in stale:
                del self._buckets[k]
        return len(stale)


RATE_LIMITS = {
    "default":     {"max_tokens": 60,  "refill_rate": 2.0},   # 120/min
    "heavy":       {"max_tokens": 10,  "refill_rate": 0.2},   # 12/min (PDF gen + mail)
}


def rate_limit(tier: str = "default"):
    """Decorator to apply rate limiting to a route.

    Uses the limiter stored on the app (``app.extensions["rate_limiter"]``).
    """
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            if os.environ.get("DISABLE_RATE_LIMIT", "").lower() == "true":
                return f(*args, **kwargs)
            limiter = current_app.extensions.get("rate_limiter")
            if limiter is None:
                return f(*args, **kwargs)

            ip = request.remote_addr or "unknown"
            limits = RATE_LIMITS.get(tier, RATE_LIMITS["default"])
            if not limiter.check(f"{ip}:{tier}", **limits):
                log.warning("Rate limit exceeded: %s tier=%s", ip, tier)
                return jsonify({"success": False,
                                "error": "Rate limit exceeded. Please try again shortly."}), 429
            return f(*args, **kwargs)
        return wrapper
    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# Shared-secret header
# ═══════════════════════════════════════════════════════════════════════════════

def api_key_valid(expected: str, supplied: str) -> bool:
    if not expected:
        return True
    if not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_api_key(f):
    """Reject requests whose X-API-Key does not match QUOTE_API_KEY."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        expected = current_app.config["QUOTE_CONFIG"].api_key
        if not api_key_valid(expected, request.headers.get(API_KEY_HEADER, "")):
            log.warning("Rejected %s %s: bad API key from %s",
                        request.method, request.path, request.remote_addr)
            return jsonify({"success": False, "error": "Unauthorized"}), 401
        return f(*args, **kwargs)
    return wrapper

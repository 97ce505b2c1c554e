"""
Security Middleware — Basic Auth, Rate Limiting, Security Headers

Basic Auth:
- Enabled only when ORCAMENTO_USER and ORCAMENTO_PASS are both set
- Applied per route with @auth_required

Rate Limiting:
- In-memory token bucket per IP address and tier
- 429 response when exceeded; PDF routes use the "heavy" tier
"""

import os
import time
import secrets
import logging
import functools
from collections import defaultdict
from threading import Lock

from flask import request, jsonify, Response

log = logging.getLogger("orcamento.security")


# ═══════════════════════════════════════════════════════════════════════════════
# Basic Auth
# ═══════════════════════════════════════════════════════════════════════════════

def _credentials():
    return os.environ.get("ORCAMENTO_USER", ""), os.environ.get("ORCAMENTO_PASS", "")


def check_auth(username, password) -> bool:
    user, pw = _credentials()
    return (secrets.compare_digest(username or "", user) and
            secrets.compare_digest(password or "", pw))


def auth_required(f):
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user, pw = _credentials()
        if user and pw:
            auth = request.authorization
            if not auth or not check_auth(auth.username, auth.password):
                return Response(
                    "Login necessário", 401,
                    {"WWW-Authenticate": 'Basic realm="Orcamentos"'})
        return f(*args, **kwargs)
    return decorated


# ═══════════════════════════════════════════════════════════════════════════════
# Rate Limiting
# ═══════════════════════════════════════════════════════════════════════════════

class RateLimiter:
    """Simple in-memory rate limiter using token bucket algorithm."""

    def __init__(self):
        self._buckets = defaultdict(lambda: {"tokens": None, "last_refill": time.time()})
        self._lock = Lock()

    def check(self, key: str, max_tokens: int = 60, refill_rate: float = 1.0) -> bool:
        """True if the request is allowed.

        Args:
            key: Unique key for the bucket (usually IP + tier)
            max_tokens: Maximum burst capacity
            refill_rate: Tokens added per second
        """
        with self._lock:
            bucket = self._buckets[key]
            now = time.time()
            if bucket["tokens"] is None:
                bucket["tokens"] = max_tokens
            elapsed = now - bucket["last_refill"]
            bucket["tokens"] = min(max_tokens, bucket["tokens"] + elapsed * refill_rate)
            bucket["last_refill"] = now

            if bucket["tokens"] >= 1:
                bucket["tokens"] -= 1
                return True
            return False

    def cleanup(self, max_age: int = 3600):
        """Remove stale buckets older than max_age seconds."""
        now = time.time()
        with self._lock:
            stale = [k for k, v in self._buckets.items() if now - v["last_refill"] > max_age]
            for k in stale:
                del self._buckets[k]
        return len(stale)

    def reset(self):
        with self._lock:
            self._buckets.clear()


_limiter = RateLimiter()
_last_cleanup = time.time()
CLEANUP_INTERVAL = 300

RATE_LIMITS = {
    "default": {"max_tokens": 60, "refill_rate": 2.0},   # 120/min
    "heavy":   {"max_tokens": 10, "refill_rate": 0.2},   # 12/min (PDF generation)
}


def _maybe_cleanup():
    global _last_cleanup
    now = time.time()
    if now - _last_cleanup > CLEANUP_INTERVAL:
        _last_cleanup = now
        _limiter.cleanup()


def rate_limit(tier: str = "default"):
    """Decorator to apply rate limiting to a route."""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            if os.environ.get("DISABLE_RATE_LIMIT", "").lower() == "true":
                return f(*args, **kwargs)

            _maybe_cleanup()
            ip = request.remote_addr or "unknown"
            limits = RATE_LIMITS.get(tier, RATE_LIMITS["default"])
            if not _limiter.check(f"{ip}:{tier}", **limits):
                log.warning("Rate limit exceeded: %s tier=%s", ip, tier)
                return jsonify({"message": "Muitas requisições. Tente novamente em instantes."}), 429
            return f(*args, **kwargs)
        return wrapper
    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# Security Headers
# ═══════════════════════════════════════════════════════════════════════════════

def add_security_headers(response):
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if not response.headers.get("Cache-Control"):
        response.headers["Cache-Control"] = "no-store"
    return response


def init_security(app):
    app.after_request(add_security_headers)
    log.info("Security middleware initialized: basic auth=%s, rate limiting, headers",
             "on" if all(_credentials()) else "off")

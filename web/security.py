"""Request guards for the canine assistant API.

Provides:
  - CORS headers locked to the single embedding origin
  - Referer guard so /chat only answers the page the widget lives on
  - Security response headers
"""
from __future__ import annotations

import logging

from flask import jsonify, request

from canine import config

logger = logging.getLogger(__name__)

CORS_METHODS = "POST, GET, OPTIONS"
CORS_HEADERS = "Content-Type"

# Paths that must be called from the embedding page
_REFERER_GUARDED_PREFIXES = ("/chat",)


def is_origin_allowed(origin: str | None, allowed_origin: str | None = None) -> bool:
    """No Origin header (server-to-server, curl) is allowed; otherwise exact match."""
    if not origin:
        return True
    return origin == (allowed_origin or config.ALLOWED_ORIGIN)


def is_referer_allowed(
    referer: str | None,
    allowed_origin: str | None = None,
    allowed_path: str | None = None,
) -> bool:
    """Referer must start with the allowed origin and contain the allowed path."""
    referer = referer or ""
    origin = allowed_origin or config.ALLOWED_ORIGIN
    path = allowed_path or config.ALLOWED_PATH
    return referer.startswith(origin) and path in referer


def add_cors_headers(response):
    """Echo the origin back only when it is the allowed one."""
    origin = request.headers.get("Origin")
    if origin and is_origin_allowed(origin):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
        response.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
        response.headers["Vary"] = "Origin"
    return response


def add_security_headers(response):
    """Add security headers to every response."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["X-Frame-Options"] = "DENY"
    return response


def _referer_guard():
    """Reject /chat calls that do not come from the embedding page."""
    if request.method == "OPTIONS":
        return None
    if not any(request.path.startswith(p) for p in _REFERER_GUARDED_PREFIXES):
        return None
    referer = request.headers.get("Referer")
    if is_referer_allowed(referer):
        return None
    logger.info("Rejected %s from referer %r", request.path, referer)
    return jsonify({"error": "Forbidden"}), 403


def init_security(app):
    """Register CORS, the referer guard and security headers with a Flask app."""
    @app.before_request
    def referer_check():
        return _referer_guard()

    @app.after_request
    def security_headers(response):
        add_cors_headers(response)
        return add_security_headers(response)

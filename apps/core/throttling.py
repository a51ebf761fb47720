"""
Central DRF throttle classes used across environments.

Rates are controlled from `REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]`.
"""

from __future__ import annotations

import hashlib

from rest_framework.request import Request
from rest_framework.throttling import SimpleRateThrottle


def _ident(request: Request) -> str:
    return request.META.get("HTTP_X_FORWARDED_FOR", "").split(",")[0].strip() or request.META.get("REMOTE_ADDR", "unknown")


def _safe_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


class LoginRateThrottle(SimpleRateThrottle):
    scope = "login"

    def get_cache_key(self, request: Request, view=None) -> str:
        email = str(request.data.get("email", "")).strip().lower()
        email_key = _safe_hash(email) if email else "no-email"
        return f"throttle:login:{_ident(request)}:{email_key}"

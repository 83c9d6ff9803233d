"""Karbon webhook signature validation."""

from __future__ import annotations

import hashlib
import hmac
from typing import Mapping

SIGNATURE_HEADERS = ("x-karbon-signature", "x-webhook-signature")


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def extract_signature(headers: Mapping[str, str]) -> str | None:
    """First non-empty signature header, with any ``sha256=`` prefix removed."""
    for name in SIGNATURE_HEADERS:
        value = (headers.get(name) or "").strip()
        if value:
            if value.lower().startswith("sha256="):
                value = value[len("sha256="):]
            return value.strip() or None
    return None


def verify_karbon_signature(body: bytes, provided: str | None, secret: str) -> bool:
    if not provided:
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(provided.strip().lower(), expected)

"""Tests for Karbon webhook signature helpers."""

from __future__ import annotations

import hashlib
import hmac

from karbon_mirror.security.webhooks import (
    compute_signature,
    extract_signature,
    verify_karbon_signature,
)

BODY = b'{"EventType":"Contact.Updated","Data":{"ContactKey":"C1"}}'


def test_signature_is_hex_hmac_sha256():
    expected = hmac.new(b"secret", BODY, hashlib.sha256).hexdigest()
    assert compute_signature(BODY, "secret") == expected


def test_verify_accepts_matching_signature_in_any_case():
    signature = compute_signature(BODY, "secret")
    assert verify_karbon_signature(BODY, signature, "secret")
    assert verify_karbon_signature(BODY, signature.upper(), "secret")


def test_verify_rejects_missing_or_wrong_signatures():
    assert not verify_karbon_signature(BODY, None, "secret")
    assert not verify_karbon_signature(BODY, "", "secret")
    assert not verify_karbon_signature(BODY, compute_signature(BODY, "other"), "secret")
    assert not verify_karbon_signature(BODY + b" ", compute_signature(BODY, "secret"), "secret")


def test_extract_prefers_karbon_header_and_strips_prefix():
    assert extract_signature({"x-karbon-signature": "abc", "x-webhook-signature": "def"}) == "abc"
    assert extract_signature({"x-webhook-signature": "sha256=def"}) == "def"
    assert extract_signature({"x-karbon-signature": "  "}) is None
    assert extract_signature({}) is None

from __future__ import annotations

import hashlib
import hmac
import re

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, provided_signature: str | None, shared_secret: str | None) -> bool:
    """Check a hex HMAC-SHA256 of the exact raw body. Fails closed."""
    if not provided_signature or not shared_secret:
        return False
    candidate = provided_signature.strip()
    if not _HEX_DIGEST.fullmatch(candidate):
        return False
    try:
        expected = hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
        return hmac.compare_digest(expected, bytes.fromhex(candidate))
    except (TypeError, ValueError):
        return False

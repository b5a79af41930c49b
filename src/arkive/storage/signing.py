"""HMAC-SHA256 signing for object download URLs.

Canonical string: "{bucket}/{key}.{expires}" where expires is an integer
Unix timestamp. The signature is the hex digest of HMAC-SHA256 over the
canonical string, keyed by ARKIVE_URL_SIGNING_SECRET.

SECURITY: Never log the secret or a full signed URL.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
import time
from datetime import timedelta
from urllib.parse import parse_qs, urlencode, urlsplit

ARKIVE_URL_SIGNING_SECRET_ENV = "ARKIVE_URL_SIGNING_SECRET"

_process_secret = secrets.token_hex(32)


def _get_secret() -> str:
    """Return the configured signing secret, or the per-process fallback."""
    return os.environ.get(ARKIVE_URL_SIGNING_SECRET_ENV) or _process_secret


def compute_url_signature(secret: str, bucket: str, key: str, expires: int) -> str:
    """Compute the HMAC-SHA256 signature for one object URL."""
    canonical = f"{bucket}/{key}.{expires}".encode()
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=canonical,
        digestmod=hashlib.sha256,
    ).hexdigest()


def sign_url(
    base_url: str,
    bucket: str,
    key: str,
    ttl: timedelta,
    *,
    now: float | None = None,
) -> str:
    """Append expires/signature query parameters to base_url.

    Args:
        base_url: URL addressing the object, without a query string.
        bucket: Bucket the object lives in.
        key: Object key.
        ttl: How long the URL stays valid.
        now: Override for the current Unix time (tests).

    Returns:
        The signed URL.
    """
    issued_at = time.time() if now is None else now
    expires = int(issued_at + ttl.total_seconds())
    signature = compute_url_signature(_get_secret(), bucket, key, expires)
    return f"{base_url}?{urlencode({'expires': expires, 'signature': signature})}"


def verify_signed_url(url: str, bucket: str, key: str, *, now: float | None = None) -> bool:
    """Check that url carries a valid, unexpired signature for bucket/key."""
    query = parse_qs(urlsplit(url).query)
    try:
        expires = int(query["expires"][0])
        signature = query["signature"][0]
    except (KeyError, IndexError, ValueError):
        return False

    current = time.time() if now is None else now
    if current > expires:
        return False

    computed = compute_url_signature(_get_secret(), bucket, key, expires)
    return hmac.compare_digest(computed, signature)

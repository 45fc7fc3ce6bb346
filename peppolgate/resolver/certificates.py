"""Certificate expiry extraction for published transport endpoints.

Many participants share one access point certificate, so expiry results
are cached by the SHA-256 fingerprint of the DER bytes.  Unparsable
certificates are cached as ``None`` too.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from datetime import datetime

from cryptography import x509

logger = logging.getLogger(__name__)

_EXPIRY_CACHE: dict[str, datetime | None] = {}


def _der_bytes(certificate: str) -> bytes:
    lines = [
        line.strip()
        for line in certificate.strip().splitlines()
        if line.strip() and "-----" not in line
    ]
    body = "".join("".join(lines).split())
    return base64.b64decode(body, validate=True)


def parse_certificate_expiry(certificate: str) -> datetime | None:
    """Return the ``notAfter`` instant (UTC) of a Base64 or PEM certificate."""
    try:
        der = _der_bytes(certificate)
    except (binascii.Error, ValueError):
        logger.debug("Certificate is not valid base64")
        return None

    fingerprint = hashlib.sha256(der).hexdigest()
    if fingerprint in _EXPIRY_CACHE:
        return _EXPIRY_CACHE[fingerprint]

    try:
        cert = x509.load_der_x509_certificate(der)
        expiry: datetime | None = cert.not_valid_after_utc
    except ValueError as exc:
        logger.debug("Unparsable certificate %s: %s", fingerprint[:12], exc)
        expiry = None

    _EXPIRY_CACHE[fingerprint] = expiry
    return expiry


def clear_certificate_cache() -> None:
    _EXPIRY_CACHE.clear()

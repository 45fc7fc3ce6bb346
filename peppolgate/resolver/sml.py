"""SML hostname derivation for participant discovery.

The network locates a participant's metadata publisher through a DNS name
derived from its address::

    lowercase(base32_nopad(sha256(lowercase("scheme:identifier"))))
        + "." + participant scheme + "." + SML zone
"""

from __future__ import annotations

import base64
import hashlib

from peppolgate.models.addresses import ParticipantAddress


def hash_participant(address: ParticipantAddress | str) -> str:
    """Return the unpadded lowercase base32 SHA-256 label for *address*."""
    digest = hashlib.sha256(str(address).lower().encode("utf-8")).digest()
    return base64.b32encode(digest).decode("ascii").rstrip("=").lower()


def participant_dns_name(
    address: ParticipantAddress | str,
    *,
    zone: str,
    participant_scheme: str = "iso6523-actorid-upis",
) -> str:
    """Build the NAPTR lookup name for *address* under *zone*."""
    return f"{hash_participant(address)}.{participant_scheme}.{zone}"

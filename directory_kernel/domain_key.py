"""
Directory Kernel — Domain Key Codec

Maps a dotted email domain to a store-safe key. There is deliberately no
inverse: each College carries its dotted ``domain`` alongside the key.

Known limitation: the mapping is not injective. ``a.b`` and ``a_b`` share
the key ``a_b``.
"""

from __future__ import annotations

from typing import Optional


def to_key(domain: str) -> str:
    """Replace every '.' with '_'. Total and idempotent."""
    return domain.replace(".", "_")


def is_legacy_key(key: str) -> bool:
    """A key still holding a raw dotted domain predates the codec."""
    return "." in key


def extract_domain(email: str) -> Optional[str]:
    """Return everything after the last '@', or None when there is none."""
    at = email.rfind("@")
    if at < 0 or at == len(email) - 1:
        return None
    return email[at + 1:]

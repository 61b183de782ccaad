"""FNV-1a hashing for the redirect correlation tag.

Not a security primitive: the tag only tells apart query parameters that
belong to different (issuer, client) configurations on the same page.
"""

from __future__ import annotations


_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 0x01000193


def fnv1a_hash_to_hex(value: str) -> str:
    """Return the 32-bit FNV-1a hash of ``value`` as 8 lowercase hex digits."""
    h = _FNV_OFFSET_BASIS
    for byte in value.encode("utf-8"):
        h ^= byte
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return f"{h:08x}"

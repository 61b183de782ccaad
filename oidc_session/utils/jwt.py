"""Read claims from a JWT payload without verifying it.

Only used to learn when a token expires. Signature validation of ID tokens
happens in the protocol client against the provider's JWKS.
"""

from __future__ import annotations

from typing import Any

from authlib.common.encoding import json_loads, to_bytes, urlsafe_b64decode


def decode_jwt_payload(token: str) -> dict[str, Any] | None:
    """Return the decoded payload of ``token``, or None if it is not a JWT."""
    segments = token.split(".")
    if len(segments) != 3:
        return None
    try:
        payload = json_loads(urlsafe_b64decode(to_bytes(segments[1])).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def read_expiration_time_in_jwt(token: str) -> float | None:
    """Return the ``exp`` claim of ``token`` in epoch milliseconds.

    Returns None when the token is not a decodable JWT or carries no
    numeric ``exp`` claim.
    """
    payload = decode_jwt_payload(token)
    if payload is None:
        return None
    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, int | float):
        return None
    return float(exp) * 1000

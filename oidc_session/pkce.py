"""Random values for authorization requests.

PKCE (RFC 7636) verifier/challenge pairs with the S256 method, and the
opaque ``state`` and ``nonce`` values sent alongside them.
"""

from __future__ import annotations

import hashlib
import secrets

from base64 import urlsafe_b64encode
from dataclasses import dataclass


def random_token(nbytes: int = 32) -> str:
    """Return a URL-safe random string for ``state`` or ``nonce``."""
    return secrets.token_urlsafe(nbytes)


def s256_challenge(verifier: str) -> str:
    """Return the base64url-encoded SHA-256 of ``verifier`` without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class PKCEChallenge:
    """PKCE code verifier and challenge pair.

    Attributes
    ----------
    verifier : str
        Kept in the signin state and sent with the token exchange.
    challenge : str
        Sent with the authorization request.
    method : str
        Always "S256".
    """

    verifier: str
    challenge: str
    method: str = "S256"

    @classmethod
    def generate(cls, length: int = 64) -> PKCEChallenge:
        """Generate a new pair from ``length`` random bytes.

        RFC 7636 requires a verifier of 43 to 128 characters, which 32 to
        96 bytes of entropy satisfy once base64url-encoded.
        """
        verifier = random_token(length)
        return cls(verifier=verifier, challenge=s256_challenge(verifier))

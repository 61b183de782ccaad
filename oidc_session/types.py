"""Data types shared across the OIDC session manager."""

from __future__ import annotations

import time

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Literal


RedirectMethod = Literal["replace", "assign"]
LogoutRedirect = Literal["home", "current page", "specific url"]


@dataclass(frozen=True)
class OidcParams:
    """Identity of the configured client, exposed as ``oidc.params``."""

    issuer_uri: str
    client_id: str


@dataclass(frozen=True)
class Tokens:
    """Immutable view of the tokens the application currently holds.

    Attributes
    ----------
    access_token : str
        The access token for API requests.
    access_token_expiration_time : float
        Absolute expiry of the access token, epoch milliseconds.
    id_token : str
        The OIDC ID token.
    refresh_token : str
        The refresh token.
    refresh_token_expiration_time : float
        Absolute expiry of the refresh token, epoch milliseconds.
    """

    access_token: str
    access_token_expiration_time: float
    id_token: str
    refresh_token: str
    refresh_token_expiration_time: float


@dataclass
class TokenSet:
    """The single mutable record of the session's tokens.

    Renewal overwrites the fields of the existing instance so that any
    reference held elsewhere stays current. Callers only ever receive
    :class:`Tokens` snapshots.
    """

    access_token: str
    access_token_expiration_time: float
    id_token: str
    refresh_token: str
    refresh_token_expiration_time: float

    def snapshot(self) -> Tokens:
        """Return an immutable copy of the current values."""
        return Tokens(**asdict(self))

    def assign(self, other: TokenSet) -> None:
        """Overwrite every field in place with the values of ``other``."""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))

    @property
    def earliest_expiration_time(self) -> float:
        """The earlier of the two expiry instants, epoch milliseconds."""
        return min(self.access_token_expiration_time, self.refresh_token_expiration_time)


@dataclass
class OidcUser:
    """User record produced by the OIDC protocol client.

    Attributes
    ----------
    access_token : str
        The access token.
    token_type : str
        Token type, typically "Bearer".
    id_token : str or None
        The ID token, if the provider returned one.
    refresh_token : str or None
        The refresh token, if the provider returned one.
    expires_at : float or None
        Access token expiry in epoch seconds, derived from ``expires_in``.
    scope : str
        Space-separated list of granted scopes.
    session_state : str or None
        The provider's ``session_state`` from the authorization response.
    profile : dict[str, Any]
        Claims of the ID token.
    """

    access_token: str
    token_type: str = "Bearer"  # noqa: S105
    id_token: str | None = None
    refresh_token: str | None = None
    expires_at: float | None = None
    scope: str = ""
    session_state: str | None = None
    profile: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_token_response(
        cls,
        raw: dict[str, Any],
        session_state: str | None = None,
        profile: dict[str, Any] | None = None,
        now: float | None = None,
    ) -> OidcUser:
        """Build a user record from a token endpoint response."""
        issued_at = time.time() if now is None else now
        expires_in = raw.get("expires_in")
        return cls(
            access_token=raw["access_token"],
            token_type=raw.get("token_type", "Bearer"),
            id_token=raw.get("id_token"),
            refresh_token=raw.get("refresh_token"),
            expires_at=issued_at + float(expires_in) if expires_in is not None else None,
            scope=raw.get("scope", ""),
            session_state=session_state,
            profile=profile or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OidcUser:
        """Deserialize from storage."""
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
            scope=data.get("scope", ""),
            session_state=data.get("session_state"),
            profile=data.get("profile") or {},
        )


@dataclass(frozen=True)
class SigninState:
    """An authorization request awaiting its callback.

    Attributes
    ----------
    id : str
        The OAuth2 ``state`` value sent to the provider.
    code_verifier : str
        PKCE verifier matching the challenge that was sent.
    redirect_uri : str
        The redirect URI used in the request; repeated in the token exchange.
    nonce : str
        Nonce expected in the ID token.
    created_at : float
        Creation time, epoch seconds.
    """

    id: str
    code_verifier: str
    redirect_uri: str
    nonce: str
    created_at: float = field(default_factory=time.time)


class RestoreStatus(str, Enum):
    """Result kind of a single restoration strategy."""

    NOT_APPLICABLE = "not_applicable"
    NO_SESSION = "no_session"
    RESTORED = "restored"


@dataclass(frozen=True)
class RestoreOutcome:
    """Result of a restoration strategy.

    ``NOT_APPLICABLE`` lets the next strategy run, the other two end the
    bootstrap. ``user`` is set only for ``RESTORED``.
    """

    status: RestoreStatus
    user: OidcUser | None = None

    @classmethod
    def not_applicable(cls) -> RestoreOutcome:
        return cls(RestoreStatus.NOT_APPLICABLE)

    @classmethod
    def no_session(cls) -> RestoreOutcome:
        return cls(RestoreStatus.NO_SESSION)

    @classmethod
    def restored(cls, user: OidcUser) -> RestoreOutcome:
        return cls(RestoreStatus.RESTORED, user)

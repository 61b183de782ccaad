"""Errors raised by oidc-session.

Everything derives from :class:`OidcSessionError`. Failures while talking to
the identity provider derive from :class:`AuthenticationError`.
:class:`ConfigurationError` marks unusable tokens and is never swallowed.
"""

from __future__ import annotations

from typing import Any


class OidcSessionError(Exception):
    """Base exception for all oidc-session errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Create the error.

        Parameters
        ----------
        message : str
            What went wrong.
        **context : Any
            Additional context (client_id, issuer_uri, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Append the context as ``key=value`` pairs."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(OidcSessionError):
    """Tokens returned by the provider are unusable.

    Raised when the provider response lacks a refresh token or an ID token,
    or when an expiration time cannot be determined. Nothing can be
    recovered from such a response, so bootstrap and renewal fail with it.
    """


class AuthenticationError(OidcSessionError):
    """Base exception for failures while talking to the identity provider."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        **context: Any,
    ) -> None:
        """Create the error.

        Parameters
        ----------
        message : str
            What went wrong.
        provider : str, optional
            The issuer URI of the identity provider involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, **context)
        self.provider = provider


class AuthProviderError(AuthenticationError):
    """The provider redirected back with an explicit ``error`` parameter."""


class CallbackParamsError(AuthenticationError):
    """A callback URL carried the correlation tag but lacked a required parameter.

    The provider always sends ``code``, ``state`` and ``session_state`` on a
    successful authorization response, so this indicates a broken contract
    rather than a condition the caller can recover from.
    """


class SilentSSOTimeout(AuthenticationError):
    """Silent authentication did not answer before its timeout."""

    def __init__(
        self,
        message: str,
        timeout: float,
        provider: str | None = None,
        **context: Any,
    ) -> None:
        """Create the error.

        Parameters
        ----------
        message : str
            What went wrong.
        timeout : float
            The timeout that elapsed, in seconds.
        provider : str, optional
            The issuer URI of the identity provider.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, timeout=timeout, **context)
        self.timeout = timeout


class TokenError(AuthenticationError):
    """Token exchange with the provider failed."""


class TokenRefreshError(TokenError):
    """Refreshing tokens with the provider failed."""


class SilentRenewalError(TokenRefreshError):
    """The provider refused to renew the session without user interaction.

    The renewal loop answers this by starting an interactive login.
    """

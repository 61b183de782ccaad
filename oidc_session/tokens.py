"""Conversion of protocol-client user records into a :class:`TokenSet`."""

from __future__ import annotations

import logging

from .exceptions import ConfigurationError
from .types import OidcUser, TokenSet
from .utils.jwt import read_expiration_time_in_jwt


logger = logging.getLogger("oidc_session.tokens")


def _access_token_expiration_time(user: OidcUser) -> float | None:
    if user.expires_at is not None:
        return user.expires_at * 1000
    return read_expiration_time_in_jwt(user.access_token)


def user_to_tokens(
    user: OidcUser,
    client_id: str | None = None,
    issuer_uri: str | None = None,
) -> TokenSet:
    """Normalize a user record into a token set with absolute expiry instants.

    The access token expiry comes from the record's ``expires_at`` when the
    provider reported ``expires_in``, otherwise from the access token's own
    ``exp`` claim. The refresh token expiry can only come from its ``exp``
    claim.

    Parameters
    ----------
    user : OidcUser
        The record returned by the protocol client.
    client_id : str, optional
        Client ID, only used in the misconfiguration warning.
    issuer_uri : str, optional
        Issuer URI, only used in the misconfiguration warning.

    Returns
    -------
    TokenSet
        A new token set.

    Raises
    ------
    ConfigurationError
        If a token is missing or an expiry cannot be determined.
    """
    access_token_expiration_time = _access_token_expiration_time(user)
    if access_token_expiration_time is None:
        msg = "Failed to get access token expiration time"
        raise ConfigurationError(msg, client_id=client_id)

    if not user.refresh_token:
        msg = "No refresh token provided by the oidc server"
        raise ConfigurationError(msg, client_id=client_id)

    refresh_token_expiration_time = read_expiration_time_in_jwt(user.refresh_token)
    if refresh_token_expiration_time is None:
        msg = "Failed to get refresh token expiration time"
        raise ConfigurationError(msg, client_id=client_id)

    if not user.id_token:
        msg = "No id token provided by the oidc server"
        raise ConfigurationError(msg, client_id=client_id)

    tokens = TokenSet(
        access_token=user.access_token,
        access_token_expiration_time=access_token_expiration_time,
        id_token=user.id_token,
        refresh_token=user.refresh_token,
        refresh_token_expiration_time=refresh_token_expiration_time,
    )

    if tokens.refresh_token_expiration_time < tokens.access_token_expiration_time:
        logger.warning(
            "The OIDC refresh token expires before the access token. "
            "This is very unusual and probably a misconfiguration. "
            "Check your oidc server configuration for %s %s",
            client_id,
            issuer_uri,
        )

    return tokens

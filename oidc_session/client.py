"""OIDC protocol client for the Authorization Code flow with PKCE.

``UserManager`` performs the protocol exchanges the session manager builds
on: discovery, authorization redirects, code exchange, silent renewal,
user persistence and sign-out. It talks to the provider over httpx and
drives the page through a :class:`~oidc_session.browser.BrowserWindow`.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging

from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx

from authlib.jose import JsonWebKey, JsonWebToken

from .exceptions import (
    AuthenticationError,
    AuthProviderError,
    SilentSSOTimeout,
    TokenError,
    TokenRefreshError,
)
from .log import redact_sensitive_data, redact_url
from .pkce import PKCEChallenge, random_token
from .relay import FRAME_RESPONSE_SOURCE
from .types import OidcUser, RedirectMethod, SigninState
from .user_store import MemoryUserStore, UserStore
from .utils.jwt import decode_jwt_payload


if TYPE_CHECKING:
    from .browser import BrowserWindow, MessageEvent


logger = logging.getLogger("oidc_session.client")

_ID_TOKEN_ALGORITHMS = ["RS256", "RS384", "RS512", "ES256", "ES384", "ES512", "PS256"]


class UserManager:
    """OIDC client bound to one issuer and one public client.

    Parameters
    ----------
    issuer_uri : str
        The OIDC issuer; endpoints are discovered from
        ``<issuer_uri>/.well-known/openid-configuration``.
    client_id : str
        The public client ID.
    browser : BrowserWindow
        The page to navigate and to open silent frames in.
    silent_redirect_uri : str
        Redirect URI of silent (hidden frame) authorization requests.
    scope : str
        Space-separated scopes (default ``"openid profile"``).
    user_store : UserStore, optional
        Persistence for the user record and pending requests.
    http_client : httpx.AsyncClient, optional
        Client to use for provider requests; one is created on demand.
    http_timeout : float
        Timeout of provider requests in seconds.
    require_id_token_validation : bool
        Validate ID token signature and claims against the JWKS.
    """

    def __init__(
        self,
        issuer_uri: str,
        client_id: str,
        browser: BrowserWindow,
        silent_redirect_uri: str,
        scope: str = "openid profile",
        user_store: UserStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        http_timeout: float = 30.0,
        *,
        require_id_token_validation: bool = True,
    ) -> None:
        """Initialize the client."""
        self.issuer_uri = issuer_uri.rstrip("/")
        self.client_id = client_id
        self.browser = browser
        self.silent_redirect_uri = silent_redirect_uri
        self.scope = scope
        self.user_store = user_store or MemoryUserStore()
        self.http_timeout = http_timeout
        self.require_id_token_validation = require_id_token_validation
        self._http_client = http_client
        self._metadata: dict[str, Any] | None = None
        self._jwks_data: dict[str, Any] | None = None

    @property
    def user_store_key(self) -> str:
        """Key the user record is stored under."""
        return f"oidc.user:{self.issuer_uri}:{self.client_id}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the HTTP client, reopening it after :meth:`close`."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.http_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    # ── Discovery ───────────────────────────────────────────────────

    async def get_metadata(self) -> dict[str, Any]:
        """Return the provider metadata, fetching it on first use.

        Raises
        ------
        AuthenticationError
            If discovery fails or the advertised issuer differs.
        """
        if self._metadata is not None:
            return self._metadata

        url = f"{self.issuer_uri}/.well-known/openid-configuration"
        try:
            client = await self._get_client()
            resp = await client.get(url, timeout=10.0)
            resp.raise_for_status()
            config = resp.json()
        except httpx.HTTPError as exc:
            msg = f"OIDC discovery failed: {exc}"
            raise AuthenticationError(msg, provider=self.issuer_uri) from exc
        except ValueError as exc:
            msg = f"OIDC discovery returned a non-JSON document: {exc}"
            raise AuthenticationError(msg, provider=self.issuer_uri) from exc
        if not isinstance(config, dict):
            msg = "OIDC discovery document is not a JSON object"
            raise AuthenticationError(msg, provider=self.issuer_uri)

        discovered_issuer = str(config.get("issuer", "")).rstrip("/")
        if discovered_issuer != self.issuer_uri:
            msg = f"OIDC issuer mismatch: expected '{self.issuer_uri}', got '{discovered_issuer}'"
            raise AuthenticationError(msg, provider=self.issuer_uri)

        self._metadata = config
        return config

    async def _endpoint(self, name: str) -> str:
        metadata = await self.get_metadata()
        endpoint = metadata.get(name)
        if not endpoint:
            msg = f"Provider metadata has no {name}"
            raise AuthenticationError(msg, provider=self.issuer_uri)
        return str(endpoint)

    async def _fetch_jwks(self) -> dict[str, Any]:
        """Return the provider signing keys, fetched once."""
        if self._jwks_data is not None:
            return self._jwks_data
        jwks_uri = await self._endpoint("jwks_uri")
        client = await self._get_client()
        resp = await client.get(jwks_uri, timeout=10.0)
        resp.raise_for_status()
        self._jwks_data = resp.json()
        return self._jwks_data

    async def validate_id_token(self, id_token: str, nonce: str | None = None) -> dict[str, Any]:
        """Validate an ID token and return its claims.

        Checks signature (via JWKS), issuer, audience, expiry and nonce.

        Raises
        ------
        TokenError
            If validation fails for any reason.
        """
        claims_options: dict[str, Any] = {
            "iss": {"essential": True, "value": self.issuer_uri},
            "aud": {"essential": True, "value": self.client_id},
            "exp": {"essential": True},
        }
        if nonce:
            claims_options["nonce"] = {"essential": True, "value": nonce}

        try:
            key_set = JsonWebKey.import_key_set(await self._fetch_jwks())
            claims = JsonWebToken(_ID_TOKEN_ALGORITHMS).decode(
                id_token,
                key_set,
                claims_options=claims_options,
            )
            claims.validate()
        except Exception as exc:
            msg = f"ID token validation failed: {exc}"
            raise TokenError(msg, provider=self.issuer_uri) from exc

        return dict(claims)

    async def _id_token_claims(self, id_token: str | None, nonce: str | None) -> dict[str, Any]:
        if not id_token:
            return {}
        if self.require_id_token_validation:
            return await self.validate_id_token(id_token, nonce=nonce)
        return decode_jwt_payload(id_token) or {}

    # ── Token endpoint ──────────────────────────────────────────────

    async def _post_token(
        self,
        data: dict[str, str],
        error_cls: type[TokenError],
        action: str,
    ) -> dict[str, Any]:
        token_url = await self._endpoint("token_endpoint")
        try:
            client = await self._get_client()
            resp = await client.post(
                token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            raw = resp.json()
        except httpx.HTTPStatusError as exc:
            msg = f"{action} failed: {exc.response.status_code}"
            raise error_cls(msg, provider=self.issuer_uri) from exc
        except httpx.HTTPError as exc:
            msg = f"{action} request failed: {exc}"
            raise error_cls(msg, provider=self.issuer_uri) from exc
        except ValueError as exc:
            msg = f"{action} returned a non-JSON body: {exc}"
            raise error_cls(msg, provider=self.issuer_uri) from exc
        if not isinstance(raw, dict):
            msg = f"{action} response is not a JSON object"
            raise error_cls(msg, provider=self.issuer_uri)

        logger.debug("%s response: %s", action, redact_sensitive_data(raw))
        if "error" in raw or "access_token" not in raw:
            msg = f"{action} error: {raw.get('error_description', raw.get('error', 'no access token'))}"
            raise error_cls(msg, provider=self.issuer_uri)
        return raw

    # ── Authorization requests ──────────────────────────────────────

    async def _create_authorize_url(
        self,
        redirect_uri: str,
        extra_params: dict[str, str] | None = None,
        transform_url: Callable[[str], str] | None = None,
    ) -> str:
        """Persist a new signin state and return the authorization URL.

        ``transform_url`` rewrites the finished URL for this request only.
        """
        authorize_url = await self._endpoint("authorization_endpoint")
        pkce = PKCEChallenge.generate()
        state = SigninState(
            id=random_token(),
            code_verifier=pkce.verifier,
            redirect_uri=redirect_uri,
            nonce=random_token(),
        )
        await self.user_store.save_signin_state(state)

        params: dict[str, str] = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state.id,
            "nonce": state.nonce,
            "code_challenge": pkce.challenge,
            "code_challenge_method": pkce.method,
        }
        if extra_params:
            params.update(extra_params)

        url = f"{authorize_url}?{urlencode(params)}"
        if transform_url is not None:
            url = transform_url(url)
        return url

    async def signin_redirect(
        self,
        redirect_uri: str,
        redirect_method: RedirectMethod = "assign",
        transform_url: Callable[[str], str] | None = None,
    ) -> None:
        """Navigate the page to the provider's login.

        Parameters
        ----------
        redirect_uri : str
            Where the provider sends the browser back to.
        redirect_method : {"assign", "replace"}
            History behavior of the navigation.
        transform_url : callable, optional
            Rewrites the authorization URL before navigating.
        """
        url = await self._create_authorize_url(redirect_uri, transform_url=transform_url)
        logger.debug("Redirecting (%s) to %s", redirect_method, redact_url(url))
        self.browser.navigate(url, redirect_method)

    async def signin_redirect_callback(self, url: str) -> OidcUser:
        """Complete an authorization response and store the resulting user.

        Parameters
        ----------
        url : str
            Any URL whose query carries the authorization response
            (``code``, ``state`` and optionally ``session_state``).

        Returns
        -------
        OidcUser
            The signed-in user.

        Raises
        ------
        AuthProviderError
            If the response carries an ``error``.
        TokenError
            If the state is unknown or the code exchange fails.
        """
        params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))

        if "error" in params:
            msg = f"OIDC error: {params.get('error_description') or params['error']}"
            raise AuthProviderError(msg, provider=self.issuer_uri, error=params["error"])

        state_id = params.get("state")
        state = await self.user_store.pop_signin_state(state_id) if state_id else None
        if state is None:
            msg = "No matching state found in storage"
            raise TokenError(msg, provider=self.issuer_uri)

        code = params.get("code")
        if not code:
            msg = "No authorization code in response"
            raise TokenError(msg, provider=self.issuer_uri)

        raw = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": state.redirect_uri,
                "client_id": self.client_id,
                "code_verifier": state.code_verifier,
            },
            TokenError,
            "Token exchange",
        )
        profile = await self._id_token_claims(raw.get("id_token"), state.nonce)

        user = OidcUser.from_token_response(
            raw,
            session_state=params.get("session_state"),
            profile=profile,
        )
        await self.user_store.set_user(self.user_store_key, user)
        logger.info("Signed in with %s", self.issuer_uri)
        return user

    # ── Silent renewal ──────────────────────────────────────────────

    async def signin_silent(self, silent_request_timeout: float | None = None) -> OidcUser:
        """Obtain fresh tokens without user interaction.

        Uses the stored refresh token when there is one, otherwise loads a
        ``prompt=none`` authorization request in a hidden frame and waits
        for the frame to report back in this client's response envelope.
        Only a page posting that envelope answers, such as
        :data:`~oidc_session.relay.FRAME_RESPONSE_HTML` served at
        ``silent_redirect_uri``. The session restore's relay page does not,
        so during the restore this call just triggers the frame and times out.

        Parameters
        ----------
        silent_request_timeout : float, optional
            Seconds to wait for the hidden frame (default 10).

        Returns
        -------
        OidcUser
            The renewed user, also persisted in the user store.

        Raises
        ------
        TokenRefreshError
            If the provider rejects the refresh.
        SilentSSOTimeout
            If the hidden frame does not answer in time.
        """
        user = await self.get_user()
        if user is not None and user.refresh_token:
            return await self._use_refresh_token(user, user.refresh_token)
        return await self._signin_silent_frame(silent_request_timeout or 10.0)

    async def _use_refresh_token(self, user: OidcUser, refresh_token: str) -> OidcUser:
        raw = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
            },
            TokenRefreshError,
            "Token refresh",
        )
        profile = user.profile
        if raw.get("id_token"):
            profile = await self._id_token_claims(raw["id_token"], None)
            if user.profile.get("sub") and profile.get("sub") != user.profile["sub"]:
                msg = "Subject of the renewed ID token differs from the signed-in user"
                raise TokenRefreshError(msg, provider=self.issuer_uri)

        renewed = OidcUser.from_token_response(
            {
                **raw,
                "refresh_token": raw.get("refresh_token", refresh_token),
                "id_token": raw.get("id_token", user.id_token),
            },
            session_state=user.session_state,
            profile=profile,
        )
        await self.user_store.set_user(self.user_store_key, renewed)
        logger.debug("Tokens refreshed for %s", self.client_id)
        return renewed

    async def _signin_silent_frame(self, timeout: float) -> OidcUser:
        url = await self._create_authorize_url(
            self.silent_redirect_uri,
            extra_params={"prompt": "none"},
        )
        loop = asyncio.get_running_loop()
        response: asyncio.Future[str] = loop.create_future()

        def listener(event: MessageEvent) -> None:
            data = event.data
            if event.origin != self.browser.origin or not isinstance(data, dict):
                return
            if data.get("source") != FRAME_RESPONSE_SOURCE or not isinstance(data.get("url"), str):
                return
            if not response.done():
                response.set_result(data["url"])

        self.browser.add_message_listener(listener)
        frame = self.browser.open_hidden_frame(url)
        try:
            callback_url = await asyncio.wait_for(response, timeout)
        except TimeoutError as exc:
            msg = "Silent signin frame timed out"
            raise SilentSSOTimeout(msg, timeout=timeout, provider=self.issuer_uri) from exc
        finally:
            self.browser.remove_message_listener(listener)
            frame.close()

        return await self.signin_redirect_callback(callback_url)

    # ── Persistence & sign-out ──────────────────────────────────────

    async def get_user(self) -> OidcUser | None:
        """Return the stored user, or None when nobody is signed in."""
        return await self.user_store.get_user(self.user_store_key)

    async def remove_user(self) -> None:
        """Forget the stored user."""
        await self.user_store.remove_user(self.user_store_key)

    async def signout_redirect(self, post_logout_redirect_uri: str) -> None:
        """Forget the user and navigate to the provider's end-session endpoint.

        Parameters
        ----------
        post_logout_redirect_uri : str
            Where the provider sends the browser after signing out.
        """
        end_session_url = await self._endpoint("end_session_endpoint")
        user = await self.get_user()
        params: dict[str, str] = {
            "client_id": self.client_id,
            "post_logout_redirect_uri": post_logout_redirect_uri,
        }
        if user is not None and user.id_token:
            params["id_token_hint"] = user.id_token

        await self.remove_user()
        logger.info("Signing out of %s", self.issuer_uri)
        self.browser.navigate(f"{end_session_url}?{urlencode(params)}", "assign")

    def __repr__(self) -> str:
        return f"UserManager(issuer_uri={self.issuer_uri!r}, client_id={self.client_id!r})"


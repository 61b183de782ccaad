"""Session facade exposed to application code.

``create_oidc`` runs the startup bootstrap and returns either an
:class:`OidcLoggedIn` or an :class:`OidcNotLoggedIn`. The variant never
changes afterwards: logging in or out navigates away from the page.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging

from typing import TYPE_CHECKING, Literal, NoReturn, TypeAlias

from .bootstrap import SessionBootstrap
from .client import UserManager
from .config import get_settings
from .exceptions import AuthenticationError, ConfigurationError, SilentRenewalError
from .log import configure
from .relay import silent_redirect_uri
from .renewal import RenewalScheduler
from .tokens import user_to_tokens
from .types import OidcParams
from .utils.hashing import fnv1a_hash_to_hex
from .utils.query_params import add_query_param_to_url


if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from .browser import BrowserWindow
    from .config import OidcSessionSettings
    from .types import LogoutRedirect, Tokens, TokenSet
    from .user_store import UserStore


logger = logging.getLogger("oidc_session")


async def _wait_for_page_unload() -> NoReturn:
    """Block for good once a navigation has started; the page goes away."""
    await asyncio.Event().wait()
    msg = "Navigation did not unload the page"
    raise RuntimeError(msg)


class _Redirects:
    """Login navigation shared by both session variants."""

    def __init__(
        self,
        user_manager: UserManager,
        browser: BrowserWindow,
        config_hash: str,
        config_hash_key: str,
        transform_url_before_redirect: Callable[[str], str] | None,
    ) -> None:
        self.user_manager = user_manager
        self.browser = browser
        self.config_hash = config_hash
        self.config_hash_key = config_hash_key
        self.transform_url_before_redirect = transform_url_before_redirect

    async def login(self, does_current_href_requires_auth: bool) -> NoReturn:
        redirect_uri = add_query_param_to_url(
            self.browser.href, self.config_hash_key, self.config_hash
        )
        await self.user_manager.signin_redirect(
            redirect_uri,
            redirect_method="replace" if does_current_href_requires_auth else "assign",
            transform_url=self.transform_url_before_redirect,
        )
        await _wait_for_page_unload()


class OidcNotLoggedIn:
    """Session of a visitor who is not signed in."""

    is_user_logged_in: Literal[False] = False

    def __init__(self, params: OidcParams, redirects: _Redirects) -> None:
        self.params = params
        self._redirects = redirects

    async def login(self, does_current_href_requires_auth: bool) -> NoReturn:
        """Navigate to the provider's login page.

        Parameters
        ----------
        does_current_href_requires_auth : bool
            When True the current page is replaced in the history, so the
            back button does not lead to a page the visitor cannot see.

        Raises
        ------
        AuthenticationError
            If the login navigation cannot be started. Otherwise this
            coroutine never returns.
        """
        await self._redirects.login(does_current_href_requires_auth)

    async def close(self) -> None:
        """Release the HTTP connection pool opened during discovery."""
        await self._redirects.user_manager.close()

    def __repr__(self) -> str:
        return f"OidcNotLoggedIn(params={self.params!r})"


class OidcLoggedIn:
    """Session of a signed-in user with self-renewing tokens."""

    is_user_logged_in: Literal[True] = True

    def __init__(
        self,
        params: OidcParams,
        tokens: TokenSet,
        redirects: _Redirects,
        public_url: str = "",
        renewal_margin_seconds: float = 25.0,
    ) -> None:
        self.params = params
        self._tokens = tokens
        self._redirects = redirects
        self._user_manager = redirects.user_manager
        self._browser = redirects.browser
        self._public_url = public_url
        self._scheduler = RenewalScheduler(
            tokens,
            renew_tokens=self.renew_tokens,
            login=self._redirects.login,
            margin_seconds=renewal_margin_seconds,
        )

    @property
    def renewal(self) -> RenewalScheduler:
        """The background renewal loop."""
        return self._scheduler

    def get_tokens(self) -> Tokens:
        """Return an immutable snapshot of the current tokens."""
        return self._tokens.snapshot()

    async def renew_tokens(self) -> None:
        """Renew the tokens silently, updating them in place.

        Raises
        ------
        SilentRenewalError
            If the provider does not renew the session.
        ConfigurationError
            If the renewed tokens are unusable.
        """
        try:
            user = await self._user_manager.signin_silent()
        except AuthenticationError as exc:
            msg = f"Silent token renewal failed: {exc.message}"
            raise SilentRenewalError(msg, provider=self.params.issuer_uri) from exc

        if user is None:
            msg = "The provider returned no user on silent renewal"
            raise SilentRenewalError(msg, provider=self.params.issuer_uri)

        self._tokens.assign(
            user_to_tokens(
                user,
                client_id=self.params.client_id,
                issuer_uri=self.params.issuer_uri,
            )
        )

    async def logout(
        self,
        redirect_to: LogoutRedirect,
        url: str | None = None,
    ) -> NoReturn:
        """Sign out at the provider and navigate to ``redirect_to``.

        Parameters
        ----------
        redirect_to : {"home", "current page", "specific url"}
            Where the provider should send the browser afterwards. "home" is
            the origin followed by the configured public URL.
        url : str, optional
            Destination for ``"specific url"``.

        Raises
        ------
        ValueError
            If ``"specific url"`` is requested without ``url``.
        """
        if redirect_to == "current page":
            post_logout_redirect_uri = self._browser.href
        elif redirect_to == "home":
            post_logout_redirect_uri = f"{self._browser.origin}{self._public_url}"
        elif redirect_to == "specific url":
            if not url:
                msg = "logout(redirect_to='specific url') requires url"
                raise ValueError(msg)
            post_logout_redirect_uri = url
        else:
            msg = f"Unknown logout destination: {redirect_to!r}"
            raise ValueError(msg)

        self._scheduler.cancel()
        await self._user_manager.signout_redirect(post_logout_redirect_uri)
        await _wait_for_page_unload()

    async def close(self) -> None:
        """Stop token renewal and release the HTTP connection pool."""
        self._scheduler.cancel()
        await self._user_manager.close()

    def __repr__(self) -> str:
        return f"OidcLoggedIn(params={self.params!r})"


Oidc: TypeAlias = OidcLoggedIn | OidcNotLoggedIn


async def create_oidc(
    issuer_uri: str | None = None,
    client_id: str | None = None,
    transform_url_before_redirect: Callable[[str], str] | None = None,
    public_url: str | None = None,
    *,
    browser: BrowserWindow,
    user_manager: UserManager | None = None,
    user_store: UserStore | None = None,
    http_client: httpx.AsyncClient | None = None,
    settings: OidcSessionSettings | None = None,
) -> Oidc:
    """Determine the session of the current page.

    Parameters
    ----------
    issuer_uri : str, optional
        The OIDC issuer; defaults to the configured ``issuer_uri``.
    client_id : str, optional
        The public client ID; defaults to the configured ``client_id``.
    transform_url_before_redirect : callable, optional
        Rewrites the authorization URL right before login navigates to it.
    public_url : str, optional
        Path the app is served under (e.g. ``"/my-app"``). The relay page
        must be served at ``<origin><public_url>/silent-sso.html``.
    browser : BrowserWindow
        The page the application runs in.
    user_manager : UserManager, optional
        Protocol client to use instead of building one.
    user_store : UserStore, optional
        Storage for the built protocol client.
    http_client : httpx.AsyncClient, optional
        HTTP client for the built protocol client.
    settings : OidcSessionSettings, optional
        Defaults to :func:`~oidc_session.config.get_settings`.

    Returns
    -------
    OidcLoggedIn or OidcNotLoggedIn
        The session. A signed-in session has its renewal loop running.

    Raises
    ------
    ConfigurationError
        If issuer or client are not configured, or the tokens are unusable.
    AuthProviderError
        If the page is a redirect back carrying a provider error.
    """
    settings = settings or get_settings()
    configure(settings.log.level, settings.log.format)

    issuer_uri = issuer_uri or settings.issuer_uri
    client_id = client_id or settings.client_id
    if not issuer_uri or not client_id:
        msg = "Both issuer_uri and client_id must be configured"
        raise ConfigurationError(msg, issuer_uri=issuer_uri, client_id=client_id)
    public_url = (settings.public_url if public_url is None else public_url).rstrip("/")

    config_hash = fnv1a_hash_to_hex(f"{issuer_uri} {client_id}")

    owns_user_manager = user_manager is None
    if user_manager is None:
        user_manager = UserManager(
            issuer_uri=issuer_uri,
            client_id=client_id,
            browser=browser,
            silent_redirect_uri=silent_redirect_uri(
                browser.origin,
                public_url,
                settings.config_hash_key,
                config_hash,
                relay_page=settings.relay_page,
            ),
            scope=settings.scope,
            user_store=user_store,
            http_client=http_client,
            http_timeout=settings.http_timeout_seconds,
            require_id_token_validation=settings.require_id_token_validation,
        )

    redirects = _Redirects(
        user_manager,
        browser,
        config_hash,
        settings.config_hash_key,
        transform_url_before_redirect,
    )
    params = OidcParams(issuer_uri=issuer_uri, client_id=client_id)

    bootstrap = SessionBootstrap(
        user_manager,
        browser,
        config_hash,
        config_hash_key=settings.config_hash_key,
        silent_sso_timeout=settings.silent_sso_timeout_seconds,
        silent_request_timeout=settings.silent_request_timeout_seconds,
    )
    try:
        tokens = await bootstrap.run()
    except BaseException:
        if owns_user_manager:
            await user_manager.close()
        raise

    if tokens is None:
        logger.info("User is not logged in with %s", issuer_uri)
        return OidcNotLoggedIn(params, redirects)

    oidc = OidcLoggedIn(
        params,
        tokens,
        redirects,
        public_url=public_url,
        renewal_margin_seconds=settings.renewal_margin_seconds,
    )
    oidc.renewal.start()
    logger.info("User is logged in with %s", issuer_uri)
    return oidc

"""Startup decision of whether the user is signed in.

``SessionBootstrap`` tries three restoration strategies in order and stops
at the first one with a definitive answer:

1. Completing a redirect back from the provider (the page URL carries our
   correlation tag and an authorization response).
2. Restoring the user the protocol client persisted in this tab, after
   confirming with the provider that the session still exists.
3. Restoring the provider's own session silently through a hidden frame.

If none applies, the user is not signed in.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

from .callback import extract_login_success_url
from .exceptions import (
    AuthenticationError,
    AuthProviderError,
    CallbackParamsError,
    SilentSSOTimeout,
)
from .silent_sso import SilentSSO
from .tokens import user_to_tokens
from .types import RestoreOutcome, RestoreStatus
from .utils.query_params import retrieve_query_param_from_url


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .browser import BrowserWindow
    from .client import UserManager
    from .types import TokenSet


logger = logging.getLogger("oidc_session.bootstrap")


class SessionBootstrap:
    """Runs the restoration strategies once, at startup.

    Parameters
    ----------
    user_manager : UserManager
        The OIDC protocol client.
    browser : BrowserWindow
        The page the application runs in.
    config_hash : str
        Correlation tag of this (issuer, client) configuration.
    config_hash_key : str
        Query parameter holding the tag.
    silent_sso_timeout : float
        Ceiling of the hidden-frame restore, in seconds.
    silent_request_timeout : float
        Timeout of the provider-side silent call inside it, in seconds.
    """

    def __init__(
        self,
        user_manager: UserManager,
        browser: BrowserWindow,
        config_hash: str,
        config_hash_key: str = "configHash",
        silent_sso_timeout: float = 5.0,
        silent_request_timeout: float = 1.0,
    ) -> None:
        """Initialize the bootstrap."""
        self.user_manager = user_manager
        self.browser = browser
        self.config_hash = config_hash
        self.config_hash_key = config_hash_key
        self.silent_sso_timeout = silent_sso_timeout
        self.silent_request_timeout = silent_request_timeout

    @property
    def strategies(self) -> list[tuple[str, Callable[[], Awaitable[RestoreOutcome]]]]:
        """The strategies in the order they are tried."""
        return [
            ("redirect callback", self.complete_redirect_callback),
            ("session restore", self.restore_from_session),
            ("silent sso", self.restore_from_http_only_cookie),
        ]

    async def run(self) -> TokenSet | None:
        """Determine the session.

        Returns
        -------
        TokenSet or None
            The tokens of the restored session, or None if the user is not
            signed in.

        Raises
        ------
        AuthProviderError
            If the page is a redirect back carrying a provider error.
        CallbackParamsError
            If a redirect back lacks a required parameter.
        ConfigurationError
            If the restored tokens are unusable.
        """
        for name, strategy in self.strategies:
            outcome = await strategy()
            if outcome.status is RestoreStatus.NOT_APPLICABLE:
                continue

            logger.debug("Bootstrap settled by %s: %s", name, outcome.status.value)
            if outcome.user is None:
                return None
            return user_to_tokens(
                outcome.user,
                client_id=self.user_manager.client_id,
                issuer_uri=self.user_manager.issuer_uri,
            )

        logger.debug("No session for %s", self.user_manager.client_id)
        return None

    async def complete_redirect_callback(self) -> RestoreOutcome:
        """Finish a login if the page is the provider's redirect back to us."""
        url = self.browser.href

        tag = retrieve_query_param_from_url(url, self.config_hash_key)
        if not tag.was_present or tag.value != self.config_hash:
            return RestoreOutcome.not_applicable()
        url = tag.new_url

        error = retrieve_query_param_from_url(url, "error")
        if error.was_present:
            description = retrieve_query_param_from_url(url, "error_description").value
            msg = f"OIDC error: {error.value}"
            raise AuthProviderError(
                msg,
                provider=self.user_manager.issuer_uri,
                error_description=description,
            )

        login_success_url, url = extract_login_success_url(
            url, provider=self.user_manager.issuer_uri
        )

        # Reloading must not replay the code.
        self.browser.replace_state(url)

        try:
            user = await self.user_manager.signin_redirect_callback(login_success_url)
        except AuthenticationError as exc:
            # Typically the back button was pressed right after logging in.
            logger.warning("Could not complete the login redirect: %s", exc)
            return RestoreOutcome.no_session()

        return RestoreOutcome.restored(user)

    async def restore_from_session(self) -> RestoreOutcome:
        """Reuse the user persisted by the protocol client, if still valid."""
        user = await self.user_manager.get_user()
        if user is None:
            return RestoreOutcome.not_applicable()

        # The provider may have lost the session, e.g. after a restart.
        try:
            renewed = await self.user_manager.signin_silent()
        except AuthenticationError as exc:
            logger.info("Stored session is no longer valid: %s", exc)
            return RestoreOutcome.no_session()

        return RestoreOutcome.restored(renewed)

    async def restore_from_http_only_cookie(self) -> RestoreOutcome:
        """Ask the provider, through a hidden frame, whether a session exists."""
        silent_sso = SilentSSO(
            self.user_manager,
            self.browser,
            self.config_hash,
            config_hash_key=self.config_hash_key,
            timeout=self.silent_sso_timeout,
            silent_request_timeout=self.silent_request_timeout,
        )

        try:
            login_success_url = await silent_sso.run()
        except SilentSSOTimeout as exc:
            logger.info("%s", exc)
            return RestoreOutcome.not_applicable()
        except CallbackParamsError as exc:
            logger.warning("Silent SSO answer is incomplete: %s", exc)
            return RestoreOutcome.no_session()

        if login_success_url is None:
            return RestoreOutcome.not_applicable()

        try:
            user = await self.user_manager.signin_redirect_callback(login_success_url)
        except AuthenticationError as exc:
            logger.warning("Silent SSO code exchange failed: %s", exc)
            return RestoreOutcome.no_session()

        return RestoreOutcome.restored(user)

"""Silent session restore through a hidden frame.

The identity provider keeps its own session in an HTTP-only cookie. Loading
its authorization endpoint with ``prompt=none`` in a hidden frame either
redirects straight back with a code (the user is still signed in there) or
with an ``error``. Either way the frame lands on the relay page, which posts
its URL to this page. The correlation tag in that URL tells our answer apart
from unrelated messages.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging

from typing import TYPE_CHECKING

from .callback import extract_login_success_url
from .exceptions import CallbackParamsError, SilentSSOTimeout
from .utils.query_params import retrieve_query_param_from_url


if TYPE_CHECKING:
    from .browser import BrowserWindow, MessageEvent
    from .client import UserManager


logger = logging.getLogger("oidc_session.silent_sso")


class SilentSSO:
    """One attempt at restoring the session from the provider's cookie.

    Parameters
    ----------
    user_manager : UserManager
        Client whose silent signin loads the hidden frame.
    browser : BrowserWindow
        The page receiving the relay page's message.
    config_hash : str
        Correlation tag of this (issuer, client) configuration.
    config_hash_key : str
        Query parameter holding the tag.
    timeout : float
        Seconds to wait for the relay page (default ``5.0``).
    silent_request_timeout : float
        Timeout passed to the client's own silent call (default ``1.0``).
        It is shorter on purpose: the answer arrives through the message
        channel, not through that call.
    """

    def __init__(
        self,
        user_manager: UserManager,
        browser: BrowserWindow,
        config_hash: str,
        config_hash_key: str = "configHash",
        timeout: float = 5.0,
        silent_request_timeout: float = 1.0,
    ) -> None:
        """Initialize the attempt."""
        self.user_manager = user_manager
        self.browser = browser
        self.config_hash = config_hash
        self.config_hash_key = config_hash_key
        self.timeout = timeout
        self.silent_request_timeout = silent_request_timeout

    async def run(self) -> str | None:
        """Wait for the relay page and return the callback URL to exchange.

        Returns
        -------
        str or None
            A callback URL carrying ``code``, ``state`` and
            ``session_state``, or None when the provider answered with an
            error (no session on the provider side).

        Raises
        ------
        SilentSSOTimeout
            If no matching message arrives within ``timeout``.
        CallbackParamsError
            If the matching message lacks a required parameter.
        """
        loop = asyncio.get_running_loop()
        result: asyncio.Future[str | None] = loop.create_future()
        registered = True

        def settle() -> None:
            nonlocal registered
            timer.cancel()
            if registered:
                registered = False
                self.browser.remove_message_listener(listener)

        def listener(event: MessageEvent) -> None:
            if event.origin != self.browser.origin or not isinstance(event.data, str):
                return

            url = event.data
            try:
                tag = retrieve_query_param_from_url(url, self.config_hash_key)
            except ValueError:
                return
            if not tag.was_present or tag.value != self.config_hash:
                return
            if result.done():
                return

            settle()

            if retrieve_query_param_from_url(url, "error").was_present:
                logger.debug("Provider has no session for %s", self.user_manager.client_id)
                result.set_result(None)
                return

            try:
                login_success_url, _ = extract_login_success_url(
                    url, provider=self.user_manager.issuer_uri
                )
            except CallbackParamsError as exc:
                result.set_exception(exc)
                return
            result.set_result(login_success_url)

        def on_timeout() -> None:
            if result.done():
                return
            settle()
            msg = f"SSO silent login timeout with clientId: {self.user_manager.client_id}"
            result.set_exception(
                SilentSSOTimeout(msg, timeout=self.timeout, provider=self.user_manager.issuer_uri)
            )

        self.browser.add_message_listener(listener)
        timer = loop.call_later(self.timeout, on_timeout)

        silent_call = asyncio.ensure_future(
            self.user_manager.signin_silent(silent_request_timeout=self.silent_request_timeout)
        )
        silent_call.add_done_callback(_log_silent_call_outcome)

        try:
            return await result
        finally:
            settle()
            if not silent_call.done():
                silent_call.cancel()


def _log_silent_call_outcome(task: asyncio.Future[object]) -> None:
    """Consume the result of the client's silent call; failure is expected."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Silent signin call ended with %s: %s", type(exc).__name__, exc)

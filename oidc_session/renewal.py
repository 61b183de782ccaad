"""Proactive token renewal for a signed-in session.

The scheduler is one asyncio task that sleeps until shortly before the
earlier of the two token expiries, renews, and starts over. A failed renewal
means the session is gone, so it hands over to an interactive login instead
of retrying.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging
import time

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .types import TokenSet


logger = logging.getLogger("oidc_session.renewal")

DEFAULT_RENEWAL_MARGIN_MS = 25_000


def now_ms() -> float:
    """Current time in epoch milliseconds."""
    return time.time() * 1000


def compute_renewal_delay(
    tokens: TokenSet,
    now: float | None = None,
    margin_ms: float = DEFAULT_RENEWAL_MARGIN_MS,
) -> float:
    """Milliseconds to wait before renewing ``tokens``.

    Parameters
    ----------
    tokens : TokenSet
        The current tokens.
    now : float, optional
        Current epoch milliseconds (defaults to the wall clock).
    margin_ms : float
        How long before the earliest expiry to renew.

    Returns
    -------
    float
        The delay, never negative.
    """
    current = now_ms() if now is None else now
    return max(0.0, tokens.earliest_expiration_time - current - margin_ms)


class RenewalScheduler:
    """Keeps a token set fresh for as long as the page lives.

    Parameters
    ----------
    tokens : TokenSet
        The session's token set; read again before every wait, so in-place
        updates by ``renew_tokens`` move the next deadline.
    renew_tokens : callable
        Coroutine function renewing ``tokens`` in place.
    login : callable
        Coroutine function starting an interactive login; called with
        ``does_current_href_requires_auth=True`` when renewal fails.
    margin_seconds : float
        Renew this long before the earliest expiry (default ``25``).
    clock : callable, optional
        Returns the current epoch milliseconds.
    """

    def __init__(
        self,
        tokens: TokenSet,
        renew_tokens: Callable[[], Awaitable[None]],
        login: Callable[..., Awaitable[object]],
        margin_seconds: float = DEFAULT_RENEWAL_MARGIN_MS / 1000,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the scheduler without starting it."""
        self.tokens = tokens
        self.renew_tokens = renew_tokens
        self.login = login
        self.margin_ms = margin_seconds * 1000
        self.clock = clock or now_ms
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the renewal loop is armed."""
        return self._task is not None and not self._task.done()

    def next_delay(self) -> float:
        """Milliseconds until the next renewal attempt."""
        return compute_renewal_delay(self.tokens, now=self.clock(), margin_ms=self.margin_ms)

    def start(self) -> None:
        """Arm the loop; has no effect if it is already running."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(_log_loop_exit)

    def cancel(self) -> None:
        """Stop the loop."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            delay = self.next_delay()
            logger.debug("Next token renewal in %.0fms", delay)
            await asyncio.sleep(delay / 1000)
            await self._renew_once()

    async def _renew_once(self) -> None:
        try:
            await self.renew_tokens()
        except Exception as exc:
            logger.warning("Token renewal failed, logging in again: %s", exc)
            await self.login(does_current_href_requires_auth=True)
        else:
            logger.debug("Tokens renewed")


def _log_loop_exit(task: asyncio.Task[None]) -> None:
    """Report a renewal loop that ended other than by cancellation."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Token renewal loop stopped: %s", exc, exc_info=exc)

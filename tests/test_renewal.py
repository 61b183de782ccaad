"""Tests for proactive token renewal."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import asyncio

from unittest.mock import AsyncMock

import pytest

from oidc_session.exceptions import SilentRenewalError
from oidc_session.renewal import RenewalScheduler, compute_renewal_delay, now_ms
from oidc_session.types import TokenSet


NOW = 1_700_000_000_000.0


def _tokens(access_in: float, refresh_in: float, now: float = NOW) -> TokenSet:
    return TokenSet(
        access_token="at",
        access_token_expiration_time=now + access_in,
        id_token="id",
        refresh_token="rt",
        refresh_token_expiration_time=now + refresh_in,
    )


async def _never_returns(**_: object) -> None:
    """Stand-in for a login navigation, which never completes."""
    await asyncio.Event().wait()


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


class TestComputeRenewalDelay:
    """Tests for the renewal deadline."""

    def test_uses_earliest_expiry_minus_margin(self) -> None:
        assert compute_renewal_delay(_tokens(60_000, 120_000), now=NOW) == 35_000

    def test_refresh_expiring_first_drives_delay(self) -> None:
        assert compute_renewal_delay(_tokens(120_000, 60_000), now=NOW) == 35_000

    def test_overdue_is_clamped_to_zero(self) -> None:
        assert compute_renewal_delay(_tokens(10_000, 120_000), now=NOW) == 0
        assert compute_renewal_delay(_tokens(-5_000, -5_000), now=NOW) == 0

    def test_custom_margin(self) -> None:
        assert compute_renewal_delay(_tokens(60_000, 120_000), now=NOW, margin_ms=0) == 60_000

    def test_scheduler_reads_clock_and_margin(self) -> None:
        scheduler = RenewalScheduler(
            _tokens(60_000, 120_000),
            renew_tokens=AsyncMock(),
            login=AsyncMock(),
            margin_seconds=10,
            clock=lambda: NOW,
        )
        assert scheduler.next_delay() == 50_000

    def test_now_ms_is_milliseconds(self) -> None:
        assert now_ms() > 1_600_000_000_000


class TestRenewalScheduler:
    """Tests for the renewal loop."""

    def test_failed_renewal_triggers_one_login(self) -> None:
        """Renewal failure means the session is gone: log in again, no retry."""
        renew = AsyncMock(side_effect=SilentRenewalError("login_required"))
        login = AsyncMock(side_effect=_never_returns)

        async def scenario() -> None:
            scheduler = RenewalScheduler(_tokens(0, 0, now=now_ms()), renew, login)
            scheduler.start()
            await asyncio.sleep(0.05)
            assert scheduler.is_running
            scheduler.cancel()

        _run(scenario())

        renew.assert_awaited_once()
        login.assert_awaited_once_with(does_current_href_requires_auth=True)

    def test_successful_renewal_reschedules(self) -> None:
        """Renewed tokens move the next deadline."""
        tokens = _tokens(0, 0, now=now_ms())

        async def renew() -> None:
            tokens.assign(_tokens(3_600_000, 7_200_000, now=now_ms()))

        renew_mock = AsyncMock(side_effect=renew)
        login = AsyncMock()

        async def scenario() -> float:
            scheduler = RenewalScheduler(tokens, renew_mock, login)
            scheduler.start()
            await asyncio.sleep(0.05)
            delay = scheduler.next_delay()
            scheduler.cancel()
            return delay

        delay = _run(scenario())

        renew_mock.assert_awaited_once()
        login.assert_not_awaited()
        assert delay > 3_500_000

    def test_cancel_stops_the_loop(self) -> None:
        renew = AsyncMock()

        async def scenario() -> bool:
            scheduler = RenewalScheduler(_tokens(60_000, 60_000, now=now_ms()), renew, AsyncMock())
            scheduler.start()
            await asyncio.sleep(0)
            scheduler.cancel()
            await asyncio.sleep(0)
            return scheduler.is_running

        assert _run(scenario()) is False
        renew.assert_not_awaited()

    def test_start_is_idempotent(self) -> None:
        async def scenario() -> None:
            scheduler = RenewalScheduler(
                _tokens(60_000, 60_000, now=now_ms()), AsyncMock(), AsyncMock()
            )
            scheduler.start()
            first = scheduler._task  # noqa: SLF001
            scheduler.start()
            assert scheduler._task is first  # noqa: SLF001
            scheduler.cancel()

        _run(scenario())

    def test_start_requires_running_loop(self) -> None:
        scheduler = RenewalScheduler(_tokens(60_000, 60_000), AsyncMock(), AsyncMock())
        with pytest.raises(RuntimeError):
            scheduler.start()

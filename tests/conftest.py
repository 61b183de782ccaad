"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import base64
import json
import time

from typing import TYPE_CHECKING, Any

import pytest

from oidc_session.browser import MemoryBrowserWindow
from oidc_session.config import clear_settings
from oidc_session.types import OidcUser
from oidc_session.utils.hashing import fnv1a_hash_to_hex


if TYPE_CHECKING:
    from collections.abc import Callable, Generator


ISSUER = "https://idp.example.com/realms/test"
CLIENT_ID = "app"
APP_ORIGIN = "https://app.example.com"


def _b64url(data: dict[str, Any]) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def make_jwt(**claims: Any) -> str:
    """Build an unsigned JWT carrying ``claims``."""
    return f"{_b64url({'alg': 'none', 'typ': 'JWT'})}.{_b64url(claims)}.sig"


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Reload configuration for every test."""
    clear_settings()
    yield
    clear_settings()


@pytest.fixture()
def jwt_factory() -> Callable[..., str]:
    """Return a builder of unsigned JWTs."""
    return make_jwt


@pytest.fixture()
def config_hash() -> str:
    """Correlation tag of the test configuration."""
    return fnv1a_hash_to_hex(f"{ISSUER} {CLIENT_ID}")


@pytest.fixture()
def browser() -> MemoryBrowserWindow:
    """A page of the application, not coming back from a login."""
    return MemoryBrowserWindow(f"{APP_ORIGIN}/page")


@pytest.fixture()
def user_factory() -> Callable[..., OidcUser]:
    """Return a builder of signed-in users with tokens valid from now."""

    def _make(
        access_ttl: float = 300,
        refresh_ttl: float = 1800,
        access_token: str | None = None,
        **overrides: Any,
    ) -> OidcUser:
        now = time.time()
        fields: dict[str, Any] = {
            "access_token": access_token or make_jwt(exp=int(now + access_ttl), sub="alice"),
            "id_token": make_jwt(exp=int(now + access_ttl), sub="alice", aud=CLIENT_ID),
            "refresh_token": make_jwt(exp=int(now + refresh_ttl), typ="Refresh"),
            "expires_at": now + access_ttl,
            "session_state": "ss-1",
            "profile": {"sub": "alice"},
        }
        fields.update(overrides)
        return OidcUser(**fields)

    return _make

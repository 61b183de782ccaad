"""Tests for the token model."""

from __future__ import annotations

import dataclasses
import logging
import time

from typing import TYPE_CHECKING

import pytest

from oidc_session.exceptions import ConfigurationError
from oidc_session.tokens import user_to_tokens
from oidc_session.types import OidcUser, TokenSet
from tests.conftest import CLIENT_ID, ISSUER, make_jwt


if TYPE_CHECKING:
    from collections.abc import Callable


class TestUserToTokens:
    """Tests for converting a user record into a token set."""

    def test_access_expiration_from_expires_at(self, user_factory: Callable[..., OidcUser]) -> None:
        """expires_at (seconds) becomes milliseconds."""
        user = user_factory(expires_at=1_700_000_300.5)
        tokens = user_to_tokens(user)
        assert tokens.access_token_expiration_time == 1_700_000_300_500

    def test_expires_at_wins_over_jwt_exp(self) -> None:
        """The protocol client's expiry is preferred over the token claim."""
        user = OidcUser(
            access_token=make_jwt(exp=2_000_000_000),
            refresh_token=make_jwt(exp=2_100_000_000),
            id_token=make_jwt(sub="alice"),
            expires_at=1_900_000_000,
        )
        assert user_to_tokens(user).access_token_expiration_time == 1_900_000_000_000

    def test_access_expiration_falls_back_to_jwt(self) -> None:
        """Without expires_at the access token exp claim is used."""
        user = OidcUser(
            access_token=make_jwt(exp=2_000_000_000),
            refresh_token=make_jwt(exp=2_100_000_000),
            id_token=make_jwt(sub="alice"),
        )
        tokens = user_to_tokens(user)
        assert tokens.access_token_expiration_time == 2_000_000_000_000
        assert tokens.refresh_token_expiration_time == 2_100_000_000_000

    def test_no_access_expiration_raises(self) -> None:
        """An opaque access token without expires_at is unusable."""
        user = OidcUser(
            access_token="opaque",
            refresh_token=make_jwt(exp=2_100_000_000),
            id_token=make_jwt(sub="alice"),
        )
        with pytest.raises(ConfigurationError, match="access token expiration time"):
            user_to_tokens(user)

    def test_missing_refresh_token_raises(self, user_factory: Callable[..., OidcUser]) -> None:
        with pytest.raises(ConfigurationError, match="No refresh token"):
            user_to_tokens(user_factory(refresh_token=None))

    def test_opaque_refresh_token_raises(self, user_factory: Callable[..., OidcUser]) -> None:
        """The refresh expiry can only come from a JWT exp claim."""
        with pytest.raises(ConfigurationError, match="refresh token expiration time"):
            user_to_tokens(user_factory(refresh_token="opaque"))

    def test_missing_id_token_raises(self, user_factory: Callable[..., OidcUser]) -> None:
        with pytest.raises(ConfigurationError, match="No id token"):
            user_to_tokens(user_factory(id_token=None))

    def test_copies_token_strings(self, user_factory: Callable[..., OidcUser]) -> None:
        user = user_factory()
        tokens = user_to_tokens(user)
        assert tokens.access_token == user.access_token
        assert tokens.id_token == user.id_token
        assert tokens.refresh_token == user.refresh_token

    def test_warns_once_when_refresh_expires_first(
        self,
        user_factory: Callable[..., OidcUser],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A refresh token outliving the access token is expected; the reverse is flagged."""
        user = user_factory(access_ttl=3600, refresh_ttl=60)
        with caplog.at_level(logging.WARNING, logger="oidc_session.tokens"):
            tokens = user_to_tokens(user, client_id=CLIENT_ID, issuer_uri=ISSUER)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "refresh token expires before the access token" in warnings[0].getMessage()
        assert CLIENT_ID in warnings[0].getMessage()
        assert tokens.refresh_token_expiration_time < tokens.access_token_expiration_time

    def test_no_warning_for_normal_lifetimes(
        self,
        user_factory: Callable[..., OidcUser],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="oidc_session.tokens"):
            user_to_tokens(user_factory())
        assert not caplog.records


class TestTokenSet:
    """Tests for the mutable token record and its snapshots."""

    @pytest.fixture()
    def token_set(self) -> TokenSet:
        now = time.time() * 1000
        return TokenSet(
            access_token="at-1",
            access_token_expiration_time=now + 60_000,
            id_token="id-1",
            refresh_token="rt-1",
            refresh_token_expiration_time=now + 120_000,
        )

    def test_snapshot_is_frozen(self, token_set: TokenSet) -> None:
        snapshot = token_set.snapshot()
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.access_token = "tampered"  # type: ignore[misc]

    def test_assign_updates_in_place(self, token_set: TokenSet) -> None:
        """Earlier snapshots keep their values; the set itself changes."""
        before = token_set.snapshot()
        same_object = token_set
        token_set.assign(
            TokenSet(
                access_token="at-2",
                access_token_expiration_time=1.0,
                id_token="id-2",
                refresh_token="rt-2",
                refresh_token_expiration_time=2.0,
            )
        )
        assert same_object.access_token == "at-2"
        assert token_set.refresh_token_expiration_time == 2.0
        assert before.access_token == "at-1"

    def test_earliest_expiration_time(self, token_set: TokenSet) -> None:
        assert token_set.earliest_expiration_time == token_set.access_token_expiration_time


class TestOidcUser:
    """Tests for the protocol client's user record."""

    def test_from_token_response(self) -> None:
        user = OidcUser.from_token_response(
            {"access_token": "at", "expires_in": 300, "refresh_token": "rt", "scope": "openid"},
            session_state="ss",
            now=1000.0,
        )
        assert user.expires_at == 1300.0
        assert user.token_type == "Bearer"
        assert user.session_state == "ss"
        assert user.id_token is None

    def test_without_expires_in(self) -> None:
        user = OidcUser.from_token_response({"access_token": "at"})
        assert user.expires_at is None

    def test_dict_round_trip(self, user_factory: Callable[..., OidcUser]) -> None:
        user = user_factory()
        assert OidcUser.from_dict(user.to_dict()) == user

"""Storage used by the protocol client between page loads.

Holds the signed-in user record (for same-tab restore) and the pending
authorization requests (for completing a redirect). All methods are async
to allow network- or browser-backed implementations.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time

from abc import ABC, abstractmethod
from dataclasses import asdict

from .types import OidcUser, SigninState


logger = logging.getLogger("oidc_session.user_store")


class UserStore(ABC):
    """Abstract base class for protocol client storage."""

    @abstractmethod
    async def get_user(self, key: str) -> OidcUser | None:
        """Load the user stored under ``key``.

        Parameters
        ----------
        key : str
            Identifies the (issuer, client) configuration.

        Returns
        -------
        OidcUser or None
            The stored user, or None if not found.
        """

    @abstractmethod
    async def set_user(self, key: str, user: OidcUser) -> None:
        """Store ``user`` under ``key``, replacing any previous record."""

    @abstractmethod
    async def remove_user(self, key: str) -> None:
        """Delete the user stored under ``key``."""

    @abstractmethod
    async def save_signin_state(self, state: SigninState) -> None:
        """Persist a pending authorization request under its ``id``."""

    @abstractmethod
    async def pop_signin_state(self, state_id: str) -> SigninState | None:
        """Remove and return the pending request with the given ``id``.

        A state can be consumed only once.
        """


def _serialize_user(user: OidcUser) -> str:
    """Serialize an OidcUser to JSON."""
    return json.dumps(user.to_dict())


def _deserialize_user(data: str) -> OidcUser:
    """Deserialize an OidcUser from JSON."""
    return OidcUser.from_dict(json.loads(data))


class MemoryUserStore(UserStore):
    """In-memory store for single-process use and tests.

    Serializes records so that callers never share mutable state with
    the store. Pending requests are dropped once older than ``max_age``
    seconds; beyond ``max_pending`` the oldest one is dropped.

    Parameters
    ----------
    max_pending : int
        Maximum number of pending authorization requests kept.
    max_age : float
        Seconds a pending request stays valid.
    """

    def __init__(self, max_pending: int = 100, max_age: float = 600.0) -> None:
        """Initialize the memory store."""
        self._users: dict[str, str] = {}
        self._states: dict[str, tuple[float, str]] = {}
        self._max_pending = max_pending
        self._max_age = max_age
        self._lock = asyncio.Lock()

    async def get_user(self, key: str) -> OidcUser | None:
        """Load a user from memory."""
        async with self._lock:
            data = self._users.get(key)
            if data is None:
                return None
            return _deserialize_user(data)

    async def set_user(self, key: str, user: OidcUser) -> None:
        """Save a user in memory."""
        async with self._lock:
            self._users[key] = _serialize_user(user)

    async def remove_user(self, key: str) -> None:
        """Delete a user from memory."""
        async with self._lock:
            self._users.pop(key, None)

    async def save_signin_state(self, state: SigninState) -> None:
        """Save a pending request in memory."""
        async with self._lock:
            self._drop_stale_states()
            if len(self._states) >= self._max_pending:
                oldest = min(self._states, key=lambda k: self._states[k][0])
                del self._states[oldest]
            self._states[state.id] = (state.created_at, json.dumps(asdict(state)))

    async def pop_signin_state(self, state_id: str) -> SigninState | None:
        """Consume a pending request."""
        async with self._lock:
            self._drop_stale_states()
            entry = self._states.pop(state_id, None)
        if entry is None:
            logger.debug("No pending signin state for %s", state_id)
            return None
        return SigninState(**json.loads(entry[1]))

    @property
    def pending_count(self) -> int:
        """Number of pending authorization requests held."""
        return len(self._states)

    def _drop_stale_states(self) -> None:
        # Caller holds the lock.
        cutoff = time.time() - self._max_age
        for state_id in [k for k, (created_at, _) in self._states.items() if created_at < cutoff]:
            del self._states[state_id]

"""The browser capabilities the session manager relies on.

``BrowserWindow`` describes the page hosting the application: its URL, its
history, top-level navigation, hidden frames and the cross-document message
channel. Hosts embedding the session manager (webviews, test harnesses)
implement it; ``MemoryBrowserWindow`` is a self-contained implementation
that records navigations instead of performing them.
"""

from __future__ import annotations

import logging

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from .log import redact_url
from .types import RedirectMethod


logger = logging.getLogger("oidc_session.browser")


@dataclass(frozen=True)
class MessageEvent:
    """A message received from another browsing context.

    Attributes
    ----------
    origin : str
        Origin of the sending document (``scheme://host[:port]``).
    data : Any
        The posted payload.
    """

    origin: str
    data: Any


MessageListener = Callable[[MessageEvent], None]


def origin_of(url: str) -> str:
    """Return the ``scheme://host[:port]`` origin of an absolute URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class HiddenFrame(ABC):
    """Handle to an invisible frame loading a URL."""

    @abstractmethod
    def close(self) -> None:
        """Remove the frame from the page."""


class BrowserWindow(ABC):
    """Abstract page the application runs in."""

    @property
    @abstractmethod
    def href(self) -> str:
        """The current page URL."""

    @property
    def origin(self) -> str:
        """Origin of the current page."""
        return origin_of(self.href)

    @abstractmethod
    def replace_state(self, url: str) -> None:
        """Change the visible URL without navigating or adding history."""

    @abstractmethod
    def push_state(self, url: str) -> None:
        """Change the visible URL without navigating, adding a history entry."""

    @abstractmethod
    def navigate(self, url: str, method: RedirectMethod = "assign") -> None:
        """Start a full-page navigation to ``url``.

        Parameters
        ----------
        url : str
            Destination.
        method : {"assign", "replace"}
            ``"replace"`` removes the current page from the back-button
            history, ``"assign"`` keeps it.
        """

    @abstractmethod
    def add_message_listener(self, listener: MessageListener) -> None:
        """Subscribe to cross-document messages."""

    @abstractmethod
    def remove_message_listener(self, listener: MessageListener) -> None:
        """Unsubscribe a listener added with :meth:`add_message_listener`."""

    @abstractmethod
    def open_hidden_frame(self, url: str) -> HiddenFrame:
        """Load ``url`` in a new invisible frame."""


class MemoryHiddenFrame(HiddenFrame):
    """Hidden frame recorded by :class:`MemoryBrowserWindow`."""

    def __init__(self, window: MemoryBrowserWindow, url: str) -> None:
        self.window = window
        self.url = url
        self.closed = False

    def close(self) -> None:
        """Mark the frame closed and detach it from the window."""
        if self.closed:
            return
        self.closed = True
        if self in self.window.frames:
            self.window.frames.remove(self)


class MemoryBrowserWindow(BrowserWindow):
    """In-memory page that records what the session manager asks of it.

    Parameters
    ----------
    href : str
        Initial page URL.
    on_frame_open : callable, optional
        Invoked with each new hidden frame, e.g. to simulate a relay page
        posting its final URL back with :meth:`post_message`.
    """

    def __init__(
        self,
        href: str,
        on_frame_open: Callable[[MemoryHiddenFrame], None] | None = None,
    ) -> None:
        """Initialize the window at ``href``."""
        self._href = href
        self.on_frame_open = on_frame_open
        self.history: list[tuple[str, str]] = []
        self.navigations: list[tuple[str, RedirectMethod]] = []
        self.frames: list[MemoryHiddenFrame] = []
        self.opened_frames: list[MemoryHiddenFrame] = []
        self._listeners: list[MessageListener] = []

    @property
    def href(self) -> str:
        """The current page URL."""
        return self._href

    @property
    def listener_count(self) -> int:
        """Number of registered message listeners."""
        return len(self._listeners)

    def replace_state(self, url: str) -> None:
        """Record a history replacement and update the URL."""
        self.history.append(("replace", url))
        self._href = url

    def push_state(self, url: str) -> None:
        """Record a history push and update the URL."""
        self.history.append(("push", url))
        self._href = url

    def navigate(self, url: str, method: RedirectMethod = "assign") -> None:
        """Record a navigation and update the URL."""
        logger.debug("Navigating (%s) to %s", method, redact_url(url))
        self.navigations.append((url, method))
        self._href = url

    def add_message_listener(self, listener: MessageListener) -> None:
        """Subscribe to messages posted with :meth:`post_message`."""
        self._listeners.append(listener)

    def remove_message_listener(self, listener: MessageListener) -> None:
        """Unsubscribe a listener; unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def post_message(self, data: Any, origin: str | None = None) -> None:
        """Deliver a message to every listener.

        Parameters
        ----------
        data : Any
            The payload.
        origin : str, optional
            Sender origin; defaults to this window's origin.
        """
        event = MessageEvent(origin=self.origin if origin is None else origin, data=data)
        for listener in list(self._listeners):
            listener(event)

    def open_hidden_frame(self, url: str) -> MemoryHiddenFrame:
        """Record a hidden frame and notify ``on_frame_open``."""
        frame = MemoryHiddenFrame(self, url)
        self.frames.append(frame)
        self.opened_frames.append(frame)
        if self.on_frame_open is not None:
            self.on_frame_open(frame)
        return frame

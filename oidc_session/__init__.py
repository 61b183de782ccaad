"""Client-side OIDC session management.

Determines at startup whether the user is signed in (completing a login
redirect, restoring the tab's session, or silently restoring the identity
provider's session through a hidden frame), keeps tokens fresh before they
expire, and drives login and logout navigations.
"""

from __future__ import annotations

from .bootstrap import SessionBootstrap
from .browser import BrowserWindow, HiddenFrame, MemoryBrowserWindow, MessageEvent
from .client import UserManager
from .config import OidcSessionSettings, clear_settings, get_settings
from .exceptions import (
    AuthenticationError,
    AuthProviderError,
    CallbackParamsError,
    ConfigurationError,
    OidcSessionError,
    SilentRenewalError,
    SilentSSOTimeout,
    TokenError,
    TokenRefreshError,
)
from .log import enable_debug, get_logger, set_level
from .oidc import Oidc, OidcLoggedIn, OidcNotLoggedIn, create_oidc
from .relay import FRAME_RESPONSE_HTML, SILENT_SSO_HTML, install_relay_page
from .renewal import RenewalScheduler
from .types import OidcParams, OidcUser, Tokens, TokenSet
from .user_store import MemoryUserStore, UserStore


__version__ = "0.1.0"

__all__ = [
    "FRAME_RESPONSE_HTML",
    "SILENT_SSO_HTML",
    "AuthProviderError",
    "AuthenticationError",
    "BrowserWindow",
    "CallbackParamsError",
    "ConfigurationError",
    "HiddenFrame",
    "MemoryBrowserWindow",
    "MemoryUserStore",
    "MessageEvent",
    "Oidc",
    "OidcLoggedIn",
    "OidcNotLoggedIn",
    "OidcParams",
    "OidcSessionError",
    "OidcSessionSettings",
    "OidcUser",
    "RenewalScheduler",
    "SessionBootstrap",
    "SilentRenewalError",
    "SilentSSOTimeout",
    "TokenError",
    "TokenRefreshError",
    "TokenSet",
    "Tokens",
    "UserManager",
    "UserStore",
    "__version__",
    "clear_settings",
    "create_oidc",
    "enable_debug",
    "get_logger",
    "get_settings",
    "install_relay_page",
    "set_level",
]

"""Authorization response parameters carried back on redirect URLs."""

from __future__ import annotations

from .exceptions import CallbackParamsError
from .utils.query_params import add_query_param_to_url, retrieve_query_param_from_url


LOGIN_SUCCESS_PARAMS = ("code", "state", "session_state")

# Sent by some providers (RFC 9207); stripped from the page URL, not forwarded.
OPTIONAL_RESPONSE_PARAMS = ("iss",)

# The protocol client only reads the query of the callback URL.
LOGIN_SUCCESS_BASE_URL = "https://dummy.com"


def extract_login_success_url(url: str, provider: str | None = None) -> tuple[str, str]:
    """Move the authorization response parameters of ``url`` onto a callback URL.

    Parameters
    ----------
    url : str
        A URL carrying ``code``, ``state`` and ``session_state``.
    provider : str, optional
        Issuer URI, for error context.

    Returns
    -------
    tuple[str, str]
        The synthetic callback URL holding the three parameters, and
        ``url`` with them (and any optional response parameters) removed.

    Raises
    ------
    CallbackParamsError
        If one of the three parameters is missing.
    """
    login_success_url = LOGIN_SUCCESS_BASE_URL

    for name in LOGIN_SUCCESS_PARAMS:
        result = retrieve_query_param_from_url(url, name)
        if not result.was_present or result.value is None:
            msg = f"Missing '{name}' in the authorization response"
            raise CallbackParamsError(msg, provider=provider)
        login_success_url = add_query_param_to_url(login_success_url, name, result.value)
        url = result.new_url

    for name in OPTIONAL_RESPONSE_PARAMS:
        url = retrieve_query_param_from_url(url, name).new_url

    return login_success_url, url

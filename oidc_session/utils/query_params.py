"""Read and write single query parameters of absolute URLs."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit


@dataclass(frozen=True)
class QueryParamResult:
    """Outcome of :func:`retrieve_query_param_from_url`.

    Attributes
    ----------
    was_present : bool
        Whether the parameter occurred in the URL.
    value : str or None
        Its (first) decoded value, or None when absent.
    new_url : str
        The URL with every occurrence of the parameter removed.
    """

    was_present: bool
    value: str | None
    new_url: str


def _split(url: str) -> SplitResult:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        msg = f"Not an absolute URL: {url!r}"
        raise ValueError(msg)
    return parts


def retrieve_query_param_from_url(url: str, name: str) -> QueryParamResult:
    """Look up ``name`` in the query string of ``url``.

    Raises
    ------
    ValueError
        If ``url`` is not an absolute URL.
    """
    parts = _split(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)

    value: str | None = None
    was_present = False
    remaining: list[tuple[str, str]] = []
    for key, val in pairs:
        if key == name:
            if not was_present:
                value = val
            was_present = True
            continue
        remaining.append((key, val))

    if not was_present:
        return QueryParamResult(was_present=False, value=None, new_url=url)

    new_url = urlunsplit(parts._replace(query=urlencode(remaining)))
    return QueryParamResult(was_present=True, value=value, new_url=new_url)


def add_query_param_to_url(url: str, name: str, value: str) -> str:
    """Return ``url`` with ``name=value`` appended to its query string."""
    parts = _split(url)
    addition = urlencode({name: value})
    query = f"{parts.query}&{addition}" if parts.query else addition
    return urlunsplit(parts._replace(query=query))

"""The static page silent SSO frames are redirected to.

The provider redirects the hidden frame to
``<origin><public_url>/silent-sso.html?configHash=...&code=...``. The page
has a single job: post its own URL to the parent window, where the silent
restore listener picks it up. It must be served from the application's
origin.
"""

from __future__ import annotations

import logging

from pathlib import Path


logger = logging.getLogger("oidc_session.relay")

DEFAULT_RELAY_PAGE = "silent-sso.html"

SILENT_SSO_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Silent SSO</title></head>
<body>
<script>
  parent.postMessage(location.href, location.origin);
</script>
</body>
</html>
"""

# Envelope the protocol client's own hidden-frame mode listens for.
FRAME_RESPONSE_SOURCE = "oidc-session-client"

# For hosts driving UserManager.signin_silent without the session restore.
# Never serve both pages at the same redirect URI: each one's listener
# would exchange the same code.
FRAME_RESPONSE_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Silent signin</title></head>
<body>
<script>
  parent.postMessage(
    {source: "oidc-session-client", url: location.href},
    location.origin
  );
</script>
</body>
</html>
"""


def silent_redirect_uri(
    origin: str,
    public_url: str,
    config_hash_key: str,
    config_hash: str,
    relay_page: str = DEFAULT_RELAY_PAGE,
) -> str:
    """Return the URL silent frames are sent back to for this configuration."""
    return f"{origin}{public_url}/{relay_page}?{config_hash_key}={config_hash}"


def install_relay_page(
    public_dir: str | Path,
    relay_page: str = DEFAULT_RELAY_PAGE,
    *,
    force: bool = False,
    html: str = SILENT_SSO_HTML,
) -> Path:
    """Write the relay page into the directory served at ``public_url``.

    Parameters
    ----------
    public_dir : str or Path
        The directory of static assets (e.g. ``public/``).
    relay_page : str
        File name to write.
    force : bool
        Overwrite a file with different content.
    html : str
        Page content; :data:`FRAME_RESPONSE_HTML` for the client's
        standalone hidden-frame mode.

    Returns
    -------
    Path
        The written file.

    Raises
    ------
    FileExistsError
        If a different file exists and ``force`` is False.
    """
    target = Path(public_dir) / relay_page
    if target.exists() and not force:
        if target.read_text(encoding="utf-8") == html:
            return target
        msg = f"{target} already exists (use force to overwrite)"
        raise FileExistsError(msg)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(html, encoding="utf-8")
    logger.info("Wrote silent SSO relay page to %s", target)
    return target

"""Settings for oidc-session, built on pydantic-settings.

Values are resolved from, lowest to highest priority: field defaults, the
``[tool.oidc-session]`` table of ``pyproject.toml``, ``oidc-session.toml``,
the file named by ``OIDC_SESSION_CONFIG_FILE``, ``OIDC_SESSION_*``
environment variables (``__`` separates nested fields, as in
``OIDC_SESSION_LOG__LEVEL``), and keyword arguments.
"""

from __future__ import annotations

import os
import tomllib

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


CONFIG_FILE_ENV = "OIDC_SESSION_CONFIG_FILE"
PYPROJECT_TABLE = "oidc-session"


def config_sources() -> list[tuple[str, Path | None]]:
    """List the configuration files that are consulted, lowest priority first.

    Returns
    -------
    list of (str, Path or None)
        A display label and the candidate path. The path is ``None`` when
        ``OIDC_SESSION_CONFIG_FILE`` is unset. Candidates may not exist.
    """
    explicit = os.environ.get(CONFIG_FILE_ENV)
    return [
        (f"pyproject.toml [tool.{PYPROJECT_TABLE}]", Path("pyproject.toml")),
        ("./oidc-session.toml", Path("oidc-session.toml")),
        (CONFIG_FILE_ENV, Path(explicit).expanduser() if explicit else None),
    ]


def _read_table(path: Path) -> dict[str, Any]:
    # Unreadable or malformed files contribute nothing.
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    if path.name == "pyproject.toml":
        return data.get("tool", {}).get(PYPROJECT_TABLE, {})
    return data


def _overlay(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    merged = dict(lower)
    for key, value in upper.items():
        below = merged.get(key)
        merged[key] = _overlay(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return merged


def load_file_settings() -> dict[str, Any]:
    """Merge every existing configuration file into one mapping."""
    merged: dict[str, Any] = {}
    for _, path in config_sources():
        if path is not None and path.is_file():
            merged = _overlay(merged, _read_table(path))
    return merged


class LogSettings(BaseSettings):
    """Level and format applied to the ``oidc_session`` logger (``OIDC_SESSION_LOG__*``)."""

    model_config = SettingsConfigDict(
        env_prefix="OIDC_SESSION_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class OidcSessionSettings(BaseSettings):
    """Issuer, client and timing settings for :func:`~oidc_session.create_oidc`.

    Keyword arguments override ``OIDC_SESSION_*`` variables, which override
    the configuration files listed by :func:`config_sources`.
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_SESSION_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    issuer_uri: str = Field(
        default="",
        description="OIDC issuer URI (e.g. https://auth.example.com/realms/myrealm)",
    )
    client_id: str = Field(
        default="",
        description="Public client ID registered with the identity provider",
    )
    public_url: str = Field(
        default="",
        description=(
            "Path the app is served under when not hosted at the origin root "
            "(e.g. '/my-app'). The relay page must be reachable at "
            "'<origin><public_url>/<relay_page>'."
        ),
    )
    scope: str = Field(
        default="openid profile",
        description="Space-separated scopes to request",
    )
    relay_page: str = Field(
        default="silent-sso.html",
        description="File name of the static silent SSO relay page",
    )
    config_hash_key: str = Field(
        default="configHash",
        description="Query parameter carrying the correlation tag",
    )

    silent_sso_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Hard ceiling for the cross-frame silent restore",
    )
    silent_request_timeout_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Timeout of the provider-side silent call during cross-frame restore",
    )
    renewal_margin_seconds: float = Field(
        default=25.0,
        ge=0,
        description="Seconds before the earliest token expiry at which tokens are renewed",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for requests to the identity provider",
    )
    require_id_token_validation: bool = Field(
        default=True,
        description="Validate ID token signature and claims against the provider JWKS",
    )

    log: LogSettings = Field(default_factory=LogSettings)

    @field_validator("public_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        """Normalize '/my-app/' to '/my-app'."""
        return v.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Slot the configuration files in below environment variables."""
        toml_settings = InitSettingsSource(settings_cls, init_kwargs=load_file_settings())
        return (init_settings, env_settings, toml_settings, dotenv_settings, file_secret_settings)


@lru_cache(maxsize=1)
def get_settings() -> OidcSessionSettings:
    """Return the process-wide settings, built on first call.

    Use :func:`clear_settings` to pick up changed files or variables.
    """
    return OidcSessionSettings()


def clear_settings() -> None:
    """Forget the cached settings."""
    get_settings.cache_clear()

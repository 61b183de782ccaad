"""Tests for the configuration layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from pydantic import ValidationError

from oidc_session.config import (
    OidcSessionSettings,
    clear_settings,
    config_sources,
    get_settings,
    load_file_settings,
)


if TYPE_CHECKING:
    from pathlib import Path


class TestDefaults:
    """Tests for built-in defaults."""

    def test_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        settings = OidcSessionSettings()
        assert settings.issuer_uri == ""
        assert settings.scope == "openid profile"
        assert settings.relay_page == "silent-sso.html"
        assert settings.config_hash_key == "configHash"
        assert settings.silent_sso_timeout_seconds == 5.0
        assert settings.silent_request_timeout_seconds == 1.0
        assert settings.renewal_margin_seconds == 25.0
        assert settings.require_id_token_validation is True
        assert settings.log.level == "WARNING"

    def test_public_url_trailing_slash_is_stripped(self) -> None:
        assert OidcSessionSettings(public_url="/my-app/").public_url == "/my-app"

    def test_timeouts_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            OidcSessionSettings(silent_sso_timeout_seconds=0)


class TestSources:
    """Tests for environment and file sources."""

    def test_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("OIDC_SESSION_ISSUER_URI", "https://idp.example.com")
        monkeypatch.setenv("OIDC_SESSION_SILENT_SSO_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("OIDC_SESSION_LOG__LEVEL", "DEBUG")

        settings = OidcSessionSettings()

        assert settings.issuer_uri == "https://idp.example.com"
        assert settings.silent_sso_timeout_seconds == 2.5
        assert settings.log.level == "DEBUG"

    def test_toml_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "oidc-session.toml").write_text(
            'client_id = "from-toml"\npublic_url = "/app/"\n', encoding="utf-8"
        )
        settings = OidcSessionSettings()
        assert settings.client_id == "from-toml"
        assert settings.public_url == "/app"

    def test_pyproject_section(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "pyproject.toml").write_text(
            '[tool.oidc-session]\nscope = "openid email"\n', encoding="utf-8"
        )
        assert OidcSessionSettings().scope == "openid email"

    def test_explicit_file_beats_project_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "oidc-session.toml").write_text('client_id = "project"\n', encoding="utf-8")
        explicit = tmp_path / "deploy.toml"
        explicit.write_text('client_id = "deploy"\n', encoding="utf-8")
        monkeypatch.setenv("OIDC_SESSION_CONFIG_FILE", str(explicit))

        assert OidcSessionSettings().client_id == "deploy"

    def test_environment_beats_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "oidc-session.toml").write_text('client_id = "from-toml"\n', encoding="utf-8")
        monkeypatch.setenv("OIDC_SESSION_CLIENT_ID", "from-env")

        assert OidcSessionSettings().client_id == "from-env"

    def test_init_arguments_beat_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OIDC_SESSION_CLIENT_ID", "from-env")
        assert OidcSessionSettings(client_id="explicit").client_id == "explicit"

    def test_broken_toml_is_skipped(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "oidc-session.toml").write_text("client_id = ", encoding="utf-8")
        assert OidcSessionSettings().client_id == ""


class TestGetSettings:
    """Tests for the cached settings accessor."""

    def test_cached_until_cleared(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OIDC_SESSION_CLIENT_ID", "first")
        first = get_settings()
        monkeypatch.setenv("OIDC_SESSION_CLIENT_ID", "second")
        assert get_settings() is first

        clear_settings()
        assert get_settings().client_id == "second"


class TestConfigSources:
    """Tests for configuration file discovery."""

    def test_explicit_file_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OIDC_SESSION_CONFIG_FILE", raising=False)
        labels = [label for label, _ in config_sources()]
        assert labels == [
            "pyproject.toml [tool.oidc-session]",
            "./oidc-session.toml",
            "OIDC_SESSION_CONFIG_FILE",
        ]
        assert config_sources()[-1][1] is None

    def test_explicit_file_set(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OIDC_SESSION_CONFIG_FILE", str(tmp_path / "deploy.toml"))
        assert config_sources()[-1][1] == tmp_path / "deploy.toml"

    def test_nested_tables_are_merged(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("OIDC_SESSION_CONFIG_FILE", raising=False)
        (tmp_path / "pyproject.toml").write_text(
            '[tool.oidc-session.log]\nlevel = "DEBUG"\nformat = "%(message)s"\n', encoding="utf-8"
        )
        (tmp_path / "oidc-session.toml").write_text('[log]\nlevel = "ERROR"\n', encoding="utf-8")

        assert load_file_settings() == {"log": {"level": "ERROR", "format": "%(message)s"}}
        settings = OidcSessionSettings()
        assert settings.log.level == "ERROR"
        assert settings.log.format == "%(message)s"

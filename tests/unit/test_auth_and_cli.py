"""Unit tests for user tokens and the operator CLI."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.api.auth import issue_token, resolve_auth_secret, verify_token
from src.cli.manage import main
from src.config.settings import Settings
from src.utils.errors import AuthenticationError, ConfigurationError

SECRET = "test-secret"
ISSUED = 1_700_000_000


class TestTokens:
    def test_round_trip(self) -> None:
        token = issue_token("user-42", SECRET, now=ISSUED)
        assert token.startswith(f"user-42.{ISSUED}.")
        assert verify_token(token, SECRET, now=ISSUED + 60) == "user-42"

    def test_user_id_may_contain_dots(self) -> None:
        token = issue_token("first.last", SECRET, now=ISSUED)
        assert verify_token(token, SECRET, now=ISSUED) == "first.last"

    def test_wrong_secret(self) -> None:
        token = issue_token("user-42", SECRET, now=ISSUED)
        with pytest.raises(AuthenticationError, match="signature"):
            verify_token(token, "other-secret", now=ISSUED)

    def test_tampered_user(self) -> None:
        token = issue_token("user-42", SECRET, now=ISSUED)
        forged = "user-1" + token[len("user-42"):]
        with pytest.raises(AuthenticationError):
            verify_token(forged, SECRET, now=ISSUED)

    def test_expired(self) -> None:
        token = issue_token("user-42", SECRET, now=ISSUED)
        with pytest.raises(AuthenticationError, match="expired"):
            verify_token(token, SECRET, ttl_hours=1, now=ISSUED + 3601)

    def test_issued_in_the_future(self) -> None:
        token = issue_token("user-42", SECRET, now=ISSUED + 600)
        with pytest.raises(AuthenticationError):
            verify_token(token, SECRET, now=ISSUED)

    @pytest.mark.parametrize("token", ["", "garbage", "only.two", ".123.abc"])
    def test_malformed(self, token: str) -> None:
        with pytest.raises(AuthenticationError):
            verify_token(token, SECRET, now=ISSUED)

    def test_issue_requires_user_and_secret(self) -> None:
        with pytest.raises(AuthenticationError):
            issue_token("", SECRET)
        with pytest.raises(AuthenticationError):
            issue_token("user-42", "")


class TestResolveAuthSecret:
    def test_configured_secret_wins(self) -> None:
        assert resolve_auth_secret(Settings(_env_file=None, auth_secret="s3cret")) == "s3cret"

    def test_development_fallback(self) -> None:
        secret = resolve_auth_secret(Settings(_env_file=None, auth_secret="", app_env="development"))
        assert secret

    def test_production_requires_secret(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve_auth_secret(Settings(_env_file=None, auth_secret="", app_env="production"))


class TestCli:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
        db_path = tmp_path / "cli" / "knowledge.db"
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("AUTH_SECRET", SECRET)
        monkeypatch.setenv("APP_ENV", "development")
        monkeypatch.setenv("KNOWLEDGE_DB_PATH", str(db_path))
        monkeypatch.setattr("src.cli.manage.configure_logging", lambda **kwargs: None)
        return db_path

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "token" in capsys.readouterr().out

    def test_token_then_verify(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["token", "user-42", "--issued-at", str(ISSUED)]) == 0
        token = capsys.readouterr().out.strip()
        assert token == issue_token("user-42", SECRET, now=ISSUED)

        fresh = issue_token("user-42", SECRET)
        assert main(["verify", fresh]) == 0
        assert "user-42" in capsys.readouterr().out

    def test_verify_rejects_bad_token(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["verify", "user-42.1.deadbeef"]) == 1
        assert "Invalid token signature" in capsys.readouterr().err

    def test_init_db_and_stats(self, _env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["init-db"]) == 0
        assert _env.exists()

        assert main(["stats"]) == 0
        out = capsys.readouterr().out
        assert "Knowledge Base Statistics" in out
        assert "crop_suggestion_history" in out

"""
Tests for the developer CLI.
"""

import pytest
from typer.testing import CliRunner

import shared.config.logging as logging_config
from cli import app
from shared.security.auth import extract_identity, verify_jwt


runner = CliRunner()


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch):
    """issue-token configures logging; keep handlers off the runner's stream."""
    monkeypatch.setattr(logging_config, "setup_logging", lambda: None)


def issue(*args: str) -> str:
    result = runner.invoke(app, ["issue-token", *args])
    assert result.exit_code == 0, result.output
    return result.output.strip().splitlines()[-1]


class TestIssueToken:
    def test_issued_token_is_accepted(self):
        token = issue("--user-id", "u1", "--email", "u1@example.com")

        identity = extract_identity(verify_jwt(token))

        assert identity.user_id == "u1"
        assert identity.email == "u1@example.com"

    def test_ttl_days(self):
        claims = verify_jwt(issue("--user-id", "u1", "--ttl-days", "2"))

        assert claims["exp"] - claims["iat"] == 2 * 24 * 60 * 60

    def test_blank_user_id_rejected(self):
        result = runner.invoke(app, ["issue-token", "--user-id", "  "])

        assert result.exit_code == 1

    def test_non_positive_ttl_rejected(self):
        result = runner.invoke(app, ["issue-token", "--user-id", "u1", "--ttl-days", "0"])

        assert result.exit_code == 1


class TestDecodeToken:
    def test_valid_token(self):
        token = issue("--user-id", "u7")

        result = runner.invoke(app, ["decode-token", token])

        assert result.exit_code == 0
        assert "u7" in result.output

    def test_invalid_token(self):
        result = runner.invoke(app, ["decode-token", "not-a-token"])

        assert result.exit_code == 1


class TestShowConfig:
    def test_secrets_are_masked(self):
        from shared.config.settings import settings

        result = runner.invoke(app, ["show-config"])

        assert result.exit_code == 0
        assert settings.jwt_secret not in result.output

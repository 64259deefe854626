"""CLI tests for the ``login`` and ``config`` commands and the ``main`` entry point."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from loopauth import __version__
from loopauth.app import app, main
from loopauth.config import load_global_config, save_global_config
from loopauth.environments import ENDPOINTS, Environment
from loopauth.exceptions import (
    CorrelationMismatchError,
    LoginTimeoutError,
    NetworkBindError,
)
from loopauth.models import GlobalConfig


@pytest.fixture
def fake_login():
    with patch("loopauth.flow.login", new_callable=AsyncMock) as mocked:
        mocked.return_value = "my-auth-code"
        yield mocked


class TestVersion:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"loopauth {__version__}" in result.output


class TestLoginCommand:
    def test_prints_code(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        result = cli_runner.invoke(app, ["login"])
        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines()[-1] == "my-auth-code"
        kwargs = fake_login.call_args.kwargs
        assert kwargs["timeout"] == 120
        assert kwargs["env"] is Environment.PROD
        assert kwargs["open_browser"] is True
        assert kwargs["force_login"] is False

    def test_flags_forwarded(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        result = cli_runner.invoke(
            app,
            [
                "login",
                "--env", "stage",
                "--timeout", "5",
                "--client-id", "my-cli",
                "--scope", "openid",
                "--redirect-uri", "https://example.com/cb",
                "--force-login",
                "--no-browser",
            ],
        )
        assert result.exit_code == 0, result.output
        kwargs = fake_login.call_args.kwargs
        assert kwargs["env"] is Environment.STAGE
        assert kwargs["timeout"] == 5
        assert kwargs["client_id"] == "my-cli"
        assert kwargs["scope"] == "openid"
        assert kwargs["redirect_uri"] == "https://example.com/cb"
        assert kwargs["force_login"] is True
        assert kwargs["open_browser"] is False

    def test_configured_defaults(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        save_global_config(GlobalConfig(env=Environment.STAGE, timeout=45))
        result = cli_runner.invoke(app, ["login"])
        assert result.exit_code == 0, result.output
        assert fake_login.call_args.kwargs["env"] is Environment.STAGE
        assert fake_login.call_args.kwargs["timeout"] == 45

    def test_env_flag_beats_env_var(
        self, cli_runner, isolated_config: Path, fake_login: AsyncMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOOPAUTH_ENV", "stage")
        cli_runner.invoke(app, ["login"])
        assert fake_login.call_args.kwargs["env"] is Environment.STAGE
        cli_runner.invoke(app, ["login", "--env", "prod"])
        assert fake_login.call_args.kwargs["env"] is Environment.PROD

    def test_unknown_env(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        result = cli_runner.invoke(app, ["login", "--env", "qa"])
        assert result.exit_code == 2
        assert "Unknown environment 'qa'" in result.output
        fake_login.assert_not_called()

    def test_token_as_json(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        fake_login.return_value = {"access_token": "tok"}
        result = cli_runner.invoke(app, ["--json", "--quiet", "login"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"access_token": "tok"}

    def test_timeout_exit_code(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        fake_login.side_effect = LoginTimeoutError("Timed out after 5 seconds.")
        result = cli_runner.invoke(app, ["--no-color", "login", "-t", "5"])
        assert result.exit_code == 4
        assert "Error: Timed out after 5 seconds." in result.output
        assert "loopauth login' again" in result.output

    def test_mismatch_exit_code(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        fake_login.side_effect = CorrelationMismatchError("abc")
        result = cli_runner.invoke(app, ["--no-color", "login"])
        assert result.exit_code == 3
        assert "error code=abc" in result.output

    def test_bind_failure_exit_code(self, cli_runner, isolated_config: Path, fake_login: AsyncMock) -> None:
        fake_login.side_effect = NetworkBindError("Cannot listen on 127.0.0.1: denied")
        result = cli_runner.invoke(app, ["login"])
        assert result.exit_code == 6


class TestConfigCommands:
    def test_show_defaults(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["env"] is None
        assert data["effective_env"] == "prod"
        assert data["auth_url"] == ENDPOINTS[Environment.PROD].auth_url

    def test_set_env(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set-env", "STAGE"])
        assert result.exit_code == 0, result.output
        assert "Set env = stage" in result.output
        assert load_global_config().env is Environment.STAGE

        shown = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert json.loads(shown.output)["auth_url"] == ENDPOINTS[Environment.STAGE].auth_url

    def test_set_env_unknown(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set-env", "qa"])
        assert result.exit_code == 2
        assert load_global_config().env is None

    def test_set_timeout(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set-timeout", "300"])
        assert result.exit_code == 0, result.output
        assert load_global_config().timeout == 300

    def test_set_timeout_rejects_zero(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set-timeout", "0"])
        assert result.exit_code == 2
        assert load_global_config().timeout == 120

    def test_reset_force(self, cli_runner, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(env=Environment.STAGE, timeout=10))
        result = cli_runner.invoke(app, ["config", "reset", "--force"])
        assert result.exit_code == 0, result.output
        assert load_global_config() == GlobalConfig()

    def test_reset_declined(self, cli_runner, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(env=Environment.STAGE))
        result = cli_runner.invoke(app, ["config", "reset"], input="n\n")
        assert result.exit_code == 0
        assert load_global_config().env is Environment.STAGE

    def test_show_broken_config(self, cli_runner, isolated_config: Path) -> None:
        path = isolated_config / "config" / "loopauth" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{broken", encoding="utf-8")
        result = cli_runner.invoke(app, ["config", "show"])
        assert result.exit_code == 2


class TestMain:
    def test_keyboard_interrupt(self, quiet_output) -> None:
        with patch("loopauth.app.app", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as info:
                main()
        assert info.value.code == 130

    def test_known_error(self, quiet_output) -> None:
        with patch("loopauth.app.app", side_effect=LoginTimeoutError("slow")):
            with pytest.raises(SystemExit) as info:
                main()
        assert info.value.code == 4

    def test_unexpected_error_writes_crash_log(self, isolated_config: Path, quiet_output) -> None:
        with patch("loopauth.app.app", side_effect=RuntimeError("kaboom")):
            with pytest.raises(SystemExit) as info:
                main()
        assert info.value.code == 1
        logs = list((isolated_config / "data" / "loopauth" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "kaboom" in logs[0].read_text()

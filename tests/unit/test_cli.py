"""Unit tests for the Typer CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from pubsubc import cli
from pubsubc.cli import app, version_string

if TYPE_CHECKING:
    from conftest import FakeBackend

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch, backend: FakeBackend) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "GooglePubSubBackend", lambda settings: backend)
    for index in (1, 2, 3):
        monkeypatch.delenv(f"PUBSUB_PROJECT{index}", raising=False)


class TestProvisionCommand:
    def test_provisions_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, backend: FakeBackend
    ):
        monkeypatch.setenv("PUBSUB_PROJECT1", "p1,t1,t2>s1")
        monkeypatch.setenv("PUBSUB_PROJECT2", "p2,t3>s2@http://localhost:3333")

        result = runner.invoke(app, ["provision"])

        assert result.exit_code == 0, result.output
        assert [c.project_id for c in backend.connections] == ["p1", "p2"]
        assert "Provisioned" in result.output

    def test_config_option_overrides_environment(
        self, monkeypatch: pytest.MonkeyPatch, backend: FakeBackend
    ):
        monkeypatch.setenv("PUBSUB_PROJECT1", "from-env,t1")

        result = runner.invoke(app, ["provision", "-c", "a,t1", "-c", "b,t2"])

        assert result.exit_code == 0, result.output
        assert [c.project_id for c in backend.connections] == ["a", "b"]

    def test_no_configuration_prints_usage(self):
        result = runner.invoke(app, ["provision"])
        assert result.exit_code == 1
        assert "Usage" in result.output

    def test_parse_failure_exits_non_zero_after_other_projects(
        self, backend: FakeBackend
    ):
        result = runner.invoke(app, ["provision", "-c", "broken", "-c", "ok,t1"])

        assert result.exit_code == 1
        assert "invalid configuration" in result.output
        assert [c.project_id for c in backend.connections] == ["ok"]

    def test_backend_failure_exits_non_zero(self, backend: FakeBackend):
        backend.topic_errors["t1"] = RuntimeError("denied")

        result = runner.invoke(app, ["provision", "-c", "p,t1"])

        assert result.exit_code == 1
        assert "denied" in result.output

    def test_bad_settings_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("request_timeout_seconds: -1\n")

        result = runner.invoke(app, ["provision", "--settings", str(path), "-c", "p,t"])

        assert result.exit_code == 1
        assert "Settings error" in result.output

    def test_env_prefix_from_settings(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path, backend: FakeBackend
    ):
        path = tmp_path / "settings.yaml"
        path.write_text("env_prefix: TOPOLOGY\n")
        monkeypatch.setenv("TOPOLOGY1", "custom,t1")
        monkeypatch.delenv("TOPOLOGY2", raising=False)

        result = runner.invoke(app, ["provision", "--settings", str(path)])

        assert result.exit_code == 0, result.output
        assert [c.project_id for c in backend.connections] == ["custom"]


class TestValidateCommand:
    def test_valid_configuration(self, backend: FakeBackend):
        result = runner.invoke(app, ["validate", "-c", "p,orders>audit"])

        assert result.exit_code == 0, result.output
        assert "orders" in result.output
        assert "audit" in result.output
        assert backend.connections == []

    def test_invalid_configuration(self):
        result = runner.invoke(app, ["validate", "-c", "p,>s1"])
        assert result.exit_code == 1
        assert "empty name" in result.output

    def test_malformed_endpoint_is_reported(self):
        result = runner.invoke(app, ["validate", "-c", "p,t>s@http://[::1", "-c", "p2,t2"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "absolute" in result.output
        assert "p2" in result.output


class TestVersionCommand:
    def test_version_string_uses_build_stamp(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PUBSUBC_REVISION", "r42")
        monkeypatch.setenv("PUBSUBC_COMMIT_HASH", "abc123")
        assert version_string().startswith("pubsubc - build r42 (abc123) running on Python ")

    def test_version_command(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PUBSUBC_COMMIT_HASH", raising=False)
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "<not set>" in result.output

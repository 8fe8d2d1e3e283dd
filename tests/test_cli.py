"""Tests for the scriptsync CLI."""

from __future__ import annotations

from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from scriptsync import __version__
from scriptsync.cli import app
from scriptsync.loader import ANCHOR_FILENAME


runner = CliRunner()

GREETER = "class Greeter:\n    pass\n"


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Config file, feed and script dir under tmp_path."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("SCRIPTSYNC_CONFIG", raising=False)

    feed = tmp_path / "feed.yaml"
    feed.write_text(yaml.safe_dump({"scripts": []}))
    script_dir = tmp_path / "scripts"
    config = tmp_path / "scriptsync.yaml"
    config.write_text(
        yaml.safe_dump({
            "script_dir": str(script_dir),
            "feed": str(feed),
            "poll_interval_ms": 100,
        })
    )
    return {"config": str(config), "feed": feed, "script_dir": script_dir}


def _write_feed(feed, scripts):
    feed.write_text(yaml.safe_dump({"scripts": scripts}))


class TestVersion:
    """Tests for scriptsync version."""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestCheck:
    """Tests for scriptsync check."""

    def test_applies_updates(self, env):
        _write_feed(env["feed"], [
            {"key": "greeter", "status": "active", "updated_at": 1000, "content": GREETER},
            {"key": "old", "status": "deleted", "updated_at": 1001},
        ])

        result = runner.invoke(app, ["--config", env["config"], "check"])

        assert result.exit_code == 0, result.output
        assert "Fetched 2 update(s)" in result.output
        assert "Activated: greeter" in result.output
        assert "Removed: old" in result.output
        assert (env["script_dir"] / "plugins" / "greeter.py").exists()
        assert (env["script_dir"] / ANCHOR_FILENAME).read_text() == "1001"

    def test_no_updates_second_run(self, env):
        _write_feed(env["feed"], [
            {"key": "greeter", "status": "active", "updated_at": 1000, "content": GREETER},
        ])
        runner.invoke(app, ["--config", env["config"], "check"])

        result = runner.invoke(app, ["--config", env["config"], "check"])

        assert result.exit_code == 0
        assert "No script updates applied" in result.output

    def test_clean_replays_feed(self, env):
        _write_feed(env["feed"], [
            {"key": "greeter", "status": "active", "updated_at": 1000, "content": GREETER},
        ])
        runner.invoke(app, ["--config", env["config"], "check"])

        result = runner.invoke(app, ["--config", env["config"], "check", "--clean"])

        assert result.exit_code == 0
        assert "Activated: greeter" in result.output

    def test_failed_script_exit_code(self, env):
        _write_feed(env["feed"], [
            {"key": "broken", "status": "active", "updated_at": 1000, "content": "not python"},
        ])

        result = runner.invoke(app, ["--config", env["config"], "check"])

        assert result.exit_code == 2
        assert "Failed: broken" in result.output

    def test_missing_feed_setting(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        config = tmp_path / "nofeed.yaml"
        config.write_text("poll_interval_ms: 100\n")

        result = runner.invoke(app, ["--config", str(config), "check"])

        assert result.exit_code == 1
        assert "No feed configured" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "missing.yaml"), "check"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestWatch:
    """Tests for scriptsync watch."""

    def test_interrupt_stops_cleanly(self, env):
        def interrupt(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch("scriptsync.commands.sync.asyncio.run", side_effect=interrupt) as mock_run:
            result = runner.invoke(app, ["--config", env["config"], "watch", "--interval", "50"])

        assert result.exit_code == 0, result.output
        assert "every 50ms" in result.output
        assert "Stopped." in result.output
        mock_run.assert_called_once()

    def test_invalid_interval(self, env):
        result = runner.invoke(app, ["--config", env["config"], "watch", "--interval", "0"])
        assert result.exit_code == 1
        assert "--interval must be positive" in result.output


class TestAnchorCommands:
    """Tests for scriptsync anchor."""

    def test_show_epoch(self, env):
        result = runner.invoke(app, ["--config", env["config"], "anchor", "show"])
        assert result.exit_code == 0
        assert "epoch" in result.output

    def test_show_after_sync(self, env):
        _write_feed(env["feed"], [
            {"key": "greeter", "status": "active", "updated_at": 1735689600000, "content": GREETER},
        ])
        runner.invoke(app, ["--config", env["config"], "check"])

        result = runner.invoke(app, ["--config", env["config"], "anchor", "show"])

        assert result.exit_code == 0
        assert "2025-01-01T00:00:00+00:00" in result.output
        assert "1735689600000" in result.output

    def test_reset_with_yes(self, env):
        env["script_dir"].mkdir(parents=True)
        anchor_file = env["script_dir"] / ANCHOR_FILENAME
        anchor_file.write_text("1000")

        result = runner.invoke(app, ["--config", env["config"], "anchor", "reset", "--yes"])

        assert result.exit_code == 0
        assert "Anchor reset to epoch" in result.output
        assert not anchor_file.exists()

    def test_reset_declined(self, env):
        env["script_dir"].mkdir(parents=True)
        anchor_file = env["script_dir"] / ANCHOR_FILENAME
        anchor_file.write_text("1000")

        result = runner.invoke(app, ["--config", env["config"], "anchor", "reset"], input="n\n")

        assert result.exit_code == 1
        assert "Aborted." in result.output
        assert anchor_file.exists()

    def test_reset_without_anchor(self, env):
        result = runner.invoke(app, ["--config", env["config"], "anchor", "reset", "--yes"])
        assert result.exit_code == 0
        assert "already at epoch" in result.output


class TestConfigValidate:
    """Tests for scriptsync config validate."""

    def test_valid(self, env):
        result = runner.invoke(app, ["--config", env["config"], "config", "validate"])
        assert result.exit_code == 0
        assert "Configuration validation complete!" in result.output
        assert "Poll interval: 100ms" in result.output

    def test_missing_feed_warns(self, env):
        env["feed"].unlink()
        result = runner.invoke(app, ["--config", env["config"], "config", "validate"])
        assert result.exit_code == 0
        assert "feed file does not exist yet" in result.output

    def test_invalid(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("poll_interval_ms: -1\n")
        result = runner.invoke(app, ["--config", str(config), "config", "validate"])
        assert result.exit_code == 1
        assert "Validation failed" in result.output

    def test_missing(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "config", "validate"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output

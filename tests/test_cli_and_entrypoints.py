"""CLI and entrypoint tests."""

from __future__ import annotations

import json
import runpy
from datetime import timedelta
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from ccblocks.cli import _do_watch, app, parse_limit, parse_models
from ccblocks.config import Config
from ccblocks.models.history import ModelHistory
from ccblocks.models.monitor import WatchSummary
from ccblocks.ui.watch_view import WatchDisplayOptions

runner = CliRunner()

HISTORY = {
    "claude-sonnet-4-20250514": ModelHistory(
        cost_usd=(3.0, 1.0), total_tokens=(3000, 1000), entry_counts=(2, 1)
    ),
    "claude-opus-4-20250514": ModelHistory(
        cost_usd=(3.0,), total_tokens=(5000,), entry_counts=(1,)
    ),
}


class TestParsing:
    def test_parse_models(self) -> None:
        assert parse_models(None) is None
        assert parse_models(" , ") is None
        assert parse_models("opus, sonnet") == ("opus", "sonnet")

    @pytest.mark.parametrize(
        ("value", "metric", "expected"),
        [
            (None, "tokens", None),
            ("500000", "tokens", 500000),
            ("5.5", "cost", 5.5),
            ("max", "tokens", 5000),
            ("MAX2", "tokens", 3000),
            ("max", "cost", 3.0),
            ("max2", "cost", 1.0),
            ("max9", "cost", None),
        ],
    )
    def test_parse_limit(self, value, metric, expected) -> None:
        assert parse_limit(value, HISTORY, None, metric) == expected

    def test_parse_limit_with_model_filter(self) -> None:
        assert parse_limit("max", HISTORY, ("sonnet",), "tokens") == 3000

    @pytest.mark.parametrize("value", ["lots", "maxi", "1.5.2"])
    def test_parse_limit_invalid(self, value) -> None:
        with pytest.raises(typer.BadParameter):
            parse_limit(value, HISTORY, None, "tokens")


class TestBlocksCommand:
    def test_json_report(self, tmp_claude_dir: Path) -> None:
        result = runner.invoke(app, ["blocks", "--json", "--claude-dir", str(tmp_claude_dir)])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [b["isGap"] for b in payload["blocks"]] == [False, True, False]
        assert payload["blocks"][0]["totalTokens"] == 4500

    def test_json_model_filter(self, tmp_claude_dir: Path) -> None:
        result = runner.invoke(
            app, ["blocks", "--json", "-m", "opus", "--claude-dir", str(tmp_claude_dir)]
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert len(payload["blocks"]) == 1
        assert payload["blocks"][0]["models"] == ["claude-opus-4-20250514"]

    def test_json_no_active_block(self, tmp_claude_dir: Path) -> None:
        result = runner.invoke(
            app, ["blocks", "--json", "--active", "--claude-dir", str(tmp_claude_dir)]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"blocks": [], "message": "No active block"}

    def test_table_report(self, tmp_claude_dir: Path) -> None:
        result = runner.invoke(
            app, ["blocks", "--order", "desc", "--claude-dir", str(tmp_claude_dir)]
        )

        assert result.exit_code == 0
        assert "Session Blocks" in result.stdout
        assert "4,500" in result.stdout

    def test_empty_data_json(self, tmp_path: Path) -> None:
        claude_dir = tmp_path / "claude"
        (claude_dir / "projects").mkdir(parents=True)

        result = runner.invoke(app, ["blocks", "--json", "--claude-dir", str(claude_dir)])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"blocks": []}

    def test_missing_claude_dir_exits(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["blocks", "--claude-dir", str(tmp_path / "nope")])
        assert result.exit_code == 1

    def test_invalid_limit_is_usage_error(self, tmp_claude_dir: Path) -> None:
        result = runner.invoke(
            app, ["blocks", "-t", "lots", "--claude-dir", str(tmp_claude_dir)]
        )
        assert result.exit_code == 2

    def test_invalid_mode_exits(self, tmp_claude_dir: Path) -> None:
        result = runner.invoke(
            app, ["blocks", "--mode", "guess", "--claude-dir", str(tmp_claude_dir)]
        )
        assert result.exit_code == 1


class TestLiveMode:
    def test_rejects_both_limits(self, monkeypatch, tmp_claude_dir: Path) -> None:
        called = {"count": 0}

        async def fake_run(*_args, **_kwargs) -> None:
            called["count"] += 1

        monkeypatch.setattr("ccblocks.services.live.run_live_monitor", fake_run)
        result = runner.invoke(
            app,
            ["blocks", "--live", "-t", "100", "-c", "5", "--claude-dir", str(tmp_claude_dir)],
        )

        assert result.exit_code == 1
        assert called["count"] == 0

    def test_defaults_to_max_token_limit(self, monkeypatch, tmp_claude_dir: Path) -> None:
        captured: dict[str, object] = {}

        async def fake_run(config, source, renderer) -> None:  # type: ignore[no-untyped-def]
            captured["config"] = config

        monkeypatch.setattr("ccblocks.services.live.run_live_monitor", fake_run)
        result = runner.invoke(
            app,
            [
                "blocks",
                "--live",
                "--refresh-interval",
                "0.2",
                "--claude-dir",
                str(tmp_claude_dir),
            ],
        )

        assert result.exit_code == 0
        config = captured["config"]
        # The opus block is long finished by now, so history covers both blocks
        assert config.token_limit == 4500  # type: ignore[attr-defined]
        assert config.cost_limit is None  # type: ignore[attr-defined]
        assert config.refresh_interval == 1.0  # type: ignore[attr-defined]
        assert config.window == timedelta(hours=5)  # type: ignore[attr-defined]

    def test_fatal_monitor_error_exits(self, monkeypatch, tmp_claude_dir: Path) -> None:
        from ccblocks.services.live import LiveMonitorError

        async def fake_run(*_args, **_kwargs) -> None:
            raise LiveMonitorError("PermissionError: denied")

        monkeypatch.setattr("ccblocks.services.live.run_live_monitor", fake_run)
        result = runner.invoke(
            app, ["blocks", "--live", "-c", "5", "--claude-dir", str(tmp_claude_dir)]
        )
        assert result.exit_code == 1
        assert "Live monitoring error: PermissionError: denied" in result.output


class TestWatchCommand:
    def test_watch_invokes_asyncio_run(self, monkeypatch, tmp_claude_dir: Path) -> None:
        called = {"count": 0}

        def fake_asyncio_run(coro) -> None:  # type: ignore[no-untyped-def]
            called["count"] += 1
            coro.close()

        monkeypatch.setattr("ccblocks.cli.asyncio.run", fake_asyncio_run)
        result = runner.invoke(
            app, ["watch", "--show-tokens", "--claude-dir", str(tmp_claude_dir)]
        )

        assert result.exit_code == 0
        assert called["count"] == 1

    @pytest.mark.asyncio
    async def test_do_watch_prints_summary(self, monkeypatch, capsys, tmp_claude_dir) -> None:
        created: dict[str, object] = {}

        class FakeScheduler:
            def __init__(self, _fetch, renderer, *, cancel_token) -> None:
                created["renderer"] = renderer
                created["token"] = cancel_token

            async def run(self) -> WatchSummary:
                return WatchSummary(
                    duration=timedelta(minutes=3), tokens_used=1200, cost_used=0.75
                )

        monkeypatch.setattr("ccblocks.services.watch.WatchScheduler", FakeScheduler)
        await _do_watch(Config(claude_dirs=(tmp_claude_dir,)), WatchDisplayOptions())

        assert "Duration: 3m | Tokens: 1,200 | Cost: $0.75" in capsys.readouterr().out
        assert "token" in created


def test_python_module_entrypoint_invokes_cli_app(monkeypatch) -> None:
    called = {"count": 0}

    def fake_app() -> None:
        called["count"] += 1

    monkeypatch.setattr("ccblocks.cli.app", fake_app)
    runpy.run_module("ccblocks.__main__", run_name="__main__")
    assert called["count"] == 1

"""Tests for the command-line entrypoint."""

from __future__ import annotations

import io
import json

import pytest
from structlog.testing import capture_logs

from mindstate import main as cli
from mindstate.config import EngineConfig
from mindstate.models import Sample


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    # Keep the process-wide structlog configuration untouched between tests.
    monkeypatch.setattr(cli, "setup_logging", lambda level="INFO": None)


def _jsonl(samples: list[Sample]) -> str:
    return "".join(s.model_dump_json() + "\n" for s in samples)


def _samples(template: Sample, count: int) -> list[Sample]:
    return [template.model_copy(update={"timestamp_ms": i * 250.0}) for i in range(count)]


class TestReplay:
    def test_one_model_per_sample(self, alpha_theta_sample):
        source = io.StringIO(_jsonl(_samples(alpha_theta_sample, 8)) + "\n")
        out = io.StringIO()
        with capture_logs() as logs:
            ticks = cli.replay(source, out, EngineConfig())

        lines = out.getvalue().splitlines()
        assert ticks == 8
        assert len(lines) == 8
        last = json.loads(lines[-1])
        assert last["tick_count"] == 8
        assert last["current"]["state_id"] == "deep_relaxation"
        assert any(e["event"] == "replay.finished" for e in logs)

    def test_invalid_line_reports_line_number(self):
        source = io.StringIO('{"theta": 0.1}\n{"theta": "loud"}\n')
        with pytest.raises(ValueError, match="line 2"):
            with capture_logs():
                cli.replay(source, io.StringIO(), EngineConfig())

    def test_main_replay_file(self, tmp_path, capsys, alpha_theta_sample):
        path = tmp_path / "session.jsonl"
        path.write_text(_jsonl(_samples(alpha_theta_sample, 4)), encoding="utf-8")
        with capture_logs():
            cli.main(["replay", str(path), "--no-debug"])

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 4
        assert all(json.loads(line)["debug"] is None for line in lines)

    def test_main_replay_with_config_file(self, tmp_path, capsys, alpha_theta_sample):
        samples = tmp_path / "session.jsonl"
        samples.write_text(_jsonl(_samples(alpha_theta_sample, 2)), encoding="utf-8")
        overrides = tmp_path / "engine.json"
        overrides.write_text(json.dumps({"sleep_mode": True}), encoding="utf-8")
        with capture_logs():
            cli.main(["replay", str(samples), "--config", str(overrides)])
        assert len(capsys.readouterr().out.splitlines()) == 2

    def test_missing_file_exits(self, tmp_path):
        with capture_logs(), pytest.raises(SystemExit) as exc:
            cli.main(["replay", str(tmp_path / "missing.jsonl")])
        assert exc.value.code == 2


class TestConfigCommand:
    def test_prints_effective_config(self, tmp_path, capsys):
        overrides = tmp_path / "engine.json"
        overrides.write_text(json.dumps({"min_hold_ms": 4000}), encoding="utf-8")
        cli.main(["config", "--config", str(overrides)])
        printed = json.loads(capsys.readouterr().out)
        assert printed["min_hold_ms"] == 4000
        assert printed["cooldown_ms"] == 8000

    def test_invalid_override_exits(self, tmp_path):
        overrides = tmp_path / "engine.json"
        overrides.write_text(json.dumps({"promotion_threshold": 5}), encoding="utf-8")
        with pytest.raises(SystemExit) as exc:
            cli.main(["config", "--config", str(overrides)])
        assert exc.value.code == 2

    def test_no_command_prints_help(self):
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 1

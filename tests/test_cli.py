from __future__ import annotations

from pathlib import Path

import pytest

from bisq_watcher.cli import main


def _write_config(tmp_path: Path, extra: str = "") -> Path:
    log = tmp_path / "bisq.log"
    log.write_text("", encoding="utf-8")
    path = tmp_path / "cfg.yml"
    path.write_text(
        f"{extra}watchers:\n"
        f"  - name: node1\n"
        f"    logFile: {log}\n"
        f"    transports:\n"
        f"      - type: console\n"
        f"      - type: telegram\n"
        f"        apiToken: t\n"
        f"        chatIds: [1]\n"
        f"        level: notice\n",
        encoding="utf-8",
    )
    return path


def test_check_ok(tmp_path: Path, capsys) -> None:
    path = _write_config(tmp_path)

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(path), "check"])

    assert exc.value.code == 0
    assert "Configuration OK: 1 watcher(s)" in capsys.readouterr().out


def test_check_reports_bad_patterns_as_warnings(tmp_path: Path, capsys) -> None:
    (tmp_path / "rules.yml").write_text(
        "- eventName: broken\n  pattern: 'id={0:nope}'\n  message: x\n", encoding="utf-8"
    )
    path = _write_config(tmp_path, extra="rulesFile: rules.yml\n")

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(path), "check"])

    out = capsys.readouterr()
    assert exc.value.code == 0
    assert "rule 'broken'" in out.err
    assert "1 pattern problem(s)" in out.out


def test_missing_config_exit_code(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "missing.yml"), "check"])

    assert exc.value.code == 2
    assert "Config file not found" in capsys.readouterr().err


def test_malformed_config_exit_code(tmp_path: Path) -> None:
    path = tmp_path / "cfg.yml"
    path.write_text("watchers: 12\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(path), "check"])

    assert exc.value.code == 3


def test_bad_rules_exit_code(tmp_path: Path) -> None:
    (tmp_path / "rules.yml").write_text("not: a list\n", encoding="utf-8")
    path = _write_config(tmp_path, extra="rulesFile: rules.yml\n")

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(path), "check"])

    assert exc.value.code == 4


def test_rules_command_lists_effective_rules(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.setenv("BISQ_WATCHER_CONFIG", str(_write_config(tmp_path)))

    with pytest.raises(SystemExit) as exc:
        main(["rules"])

    out = capsys.readouterr().out
    assert exc.value.code == 0
    assert "node1" in out
    assert "  console [level=debug]" in out
    assert "  telegram [level=notice]" in out
    # not sent to Telegram
    telegram_part = out.split("  telegram [level=notice]")[1]
    assert "systemDebug" not in telegram_part
    assert "BisqStarting" in telegram_part

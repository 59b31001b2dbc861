from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence

from bisq_watcher.app import Watcher, run_app
from bisq_watcher.config import AppConfig, ConfigError, load_config, load_rules, resolve_config_path
from bisq_watcher.core.models import Rule
from bisq_watcher.core.paths import resolve_log_path
from bisq_watcher.core.patterns import PatternCompileError, PatternCompiler

LOG_LEVEL_ENV = "BISQ_WATCHER_LOG_LEVEL"

logger = logging.getLogger(__name__)


def configure_logging(level_name: str | None = None) -> None:
    """Configure diagnostic logging; the level comes from the flag or the env."""
    name = (level_name or os.getenv(LOG_LEVEL_ENV, "INFO")).upper()
    level = getattr(logging, name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(args: argparse.Namespace) -> tuple[AppConfig, list[Rule]]:
    path = resolve_config_path(args.config)
    cfg = load_config(path)
    return cfg, load_rules(cfg)


def _cmd_run(args: argparse.Namespace) -> int:
    cfg, rules = _load(args)
    try:
        asyncio.run(run_app(cfg, rules))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    cfg, rules = _load(args)
    compiler = PatternCompiler()
    problems = 0
    for rule in rules:
        result = compiler.compile(rule.pattern)
        if isinstance(result, PatternCompileError):
            problems += 1
            print(f"warning: rule {rule.event_name!r}: {result}", file=sys.stderr)

    for w in cfg.watchers:
        path = resolve_log_path(w.log_file)
        if not path.exists():
            print(f"warning: log file {path} does not exist yet", file=sys.stderr)
        if not w.enabled_transports:
            print(f"warning: watcher {w.name or path.name!r} has no enabled transports", file=sys.stderr)

    print(
        f"Configuration OK: {len(cfg.watchers)} watcher(s), {len(rules)} rule(s), "
        f"{problems} pattern problem(s)."
    )
    return 0


def _cmd_rules(args: argparse.Namespace) -> int:
    cfg, rules = _load(args)
    for w in cfg.watchers:
        watcher = Watcher(w, rules)
        print(f"{watcher.name} ({watcher.path})")
        for binding, sink_cfg in zip(watcher.dispatcher.bindings, w.enabled_transports):
            print(f"  {sink_cfg.type} [level={sink_cfg.level}]")
            for name, rule in binding.rules.items():
                level = rule.level.value if rule.level else "-"
                print(f"    {name} [{level}]: {rule.message}")
    return 0


_COMMANDS = {"run": _cmd_run, "check": _cmd_check, "rules": _cmd_rules}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bisq-watcher",
        description="Tail the Bisq log file and forward matching events to console, file and Telegram.",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Config file (YAML or JSON). Default: $BISQ_WATCHER_CONFIG or bisq-watcher.yml",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help=f"Diagnostic log level (default: ${LOG_LEVEL_ENV} or INFO)",
    )
    sub = p.add_subparsers(dest="command")
    sub.add_parser("run", help="Watch the configured log files (default)")
    sub.add_parser("check", help="Validate the configuration and rule catalog")
    sub.add_parser("rules", help="Print the effective rules of every sink")
    return p


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    command = _COMMANDS[args.command or "run"]

    try:
        code = command(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(e.exit_code)

    raise SystemExit(code)


if __name__ == "__main__":
    main()

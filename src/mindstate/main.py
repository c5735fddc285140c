"""Command-line entrypoint — replay recorded samples or show the effective config."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TextIO

import structlog
from pydantic import ValidationError

from mindstate.config import EngineConfig, get_settings
from mindstate.engine import MindStateEngine
from mindstate.logger import setup_logging
from mindstate.models import Sample

logger = structlog.get_logger(__name__)


def _load_config(path: str | None, *, include_debug: bool) -> EngineConfig:
    settings = get_settings()
    overrides: dict = {}
    if path is not None:
        overrides = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(overrides, dict):
            raise ValueError(f"{path}: expected a JSON object of engine settings")
    if not include_debug:
        overrides["include_debug"] = False
    return settings.engine_config(**overrides)


def replay(source: TextIO, out: TextIO, config: EngineConfig) -> int:
    """Feed every JSON-encoded sample in ``source`` through a fresh engine.

    Each sample's ``timestamp_ms`` is used as the tick clock.  One
    DisplayModel JSON document is written per line.  Returns the number of
    ticks emitted.
    """
    engine: MindStateEngine | None = None
    ticks = 0
    for lineno, line in enumerate(source, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            sample = Sample.model_validate_json(line)
        except ValidationError as exc:
            raise ValueError(f"line {lineno}: invalid sample: {exc}") from exc
        if engine is None:
            engine = MindStateEngine(config, start_ms=sample.timestamp_ms)
        model = engine.tick(sample, now_ms=sample.timestamp_ms)
        out.write(model.model_dump_json() + "\n")
        ticks += 1

    logger.info("replay.finished", ticks=ticks)
    return ticks


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mindstate",
        description="Streaming mental-state classification with hysteresis stabilisation.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── replay ────────────────────────────────────────────────
    replay_parser = sub.add_parser("replay", help="Replay a JSONL file of samples.")
    replay_parser.add_argument("file", help="JSONL file, one sample per line ('-' for stdin).")
    replay_parser.add_argument("--config", default=None, help="JSON file with engine overrides.")
    replay_parser.add_argument("--no-debug", action="store_true", help="Omit the debug trace.")

    # ── config ────────────────────────────────────────────────
    config_parser = sub.add_parser("config", help="Print the effective engine configuration.")
    config_parser.add_argument("--config", default=None, help="JSON file with engine overrides.")

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "replay":
        try:
            config = _load_config(args.config, include_debug=not args.no_debug)
            if args.file == "-":
                replay(sys.stdin, sys.stdout, config)
            else:
                with open(args.file, encoding="utf-8") as source:
                    replay(source, sys.stdout, config)
        except (OSError, ValueError) as exc:
            print(f"mindstate: {exc}", file=sys.stderr)
            sys.exit(2)
    elif args.command == "config":
        try:
            config = _load_config(args.config, include_debug=True)
        except (OSError, ValueError) as exc:
            print(f"mindstate: {exc}", file=sys.stderr)
            sys.exit(2)
        print(config.model_dump_json(indent=2))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

"""CLI entrypoint for kazari."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from .config import ensure_config_dir, load_config
from .logging_utils import configure_logging
from .runtime import KazariRuntime, format_ms


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kazari",
        description="Kazari - phase timer for planning, focus and breaks",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument("--tick-ms", type=int, default=None, help="Override the tick cadence")
    parser.add_argument("--ticks", action="store_true", help="Print every tick")
    parser.add_argument(
        "--plan", action="store_true", help="Print today's planned slots and exit"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Load configuration, handle CLI flags, and run the timer."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("kazari")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"kazari {version}")
        return

    if args.config is None:
        ensure_config_dir()
    config = load_config(args.config)
    if args.tick_ms is not None:
        if args.tick_ms <= 0:
            parser.error("--tick-ms must be positive")
        config["timer"]["tick_duration_ms"] = args.tick_ms
    configure_logging(config["logging"])

    runtime = KazariRuntime(config, show_ticks=args.ticks)
    try:
        if args.plan:
            for slot in runtime.scheduler.get_available_slots():
                print(
                    f"{slot.start:%H:%M}-{slot.end:%H:%M} "
                    f"{slot.type.value} ({format_ms(slot.duration_ms)})"
                )
            return
        asyncio.run(runtime.run(args.duration))
    except KeyboardInterrupt:
        pass
    finally:
        runtime.close()


if __name__ == "__main__":
    main()

"""`boundary fetch` command implementation."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from rich.console import Console

from boundary.config import BoundaryConfig, load_config
from boundary.logging import configure_logging
from boundary.presentation import MessageCatalog
from boundary.reporter import ErrorReporter
from boundary.resolver import ResolverRegistry


def add_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Register the `fetch` command."""
    parser = subparsers.add_parser("fetch", help="Fetch one day of Rescuetime activity.")
    parser.add_argument("--date", required=True, help="Day to fetch (YYYY-MM-DD).")
    parser.add_argument("--locale", default=None, help="Locale for user-facing messages.")
    parser.add_argument("--log-dir", default=None, help="Directory for run logs and JSONL events.")
    parser.add_argument("--config-root", default=None, help="Directory holding boundary.yaml (default: cwd).")
    parser.set_defaults(command="fetch")


def run(args: argparse.Namespace, console: Console | None = None) -> int:
    """Execute the `fetch` command; returns the process exit code."""
    from boundary.rescuetime import RescuetimeSettings, fetch_activity, fetch_activity_async  # local import keeps parser startup light

    out = console or Console()
    config = load_config(Path(args.config_root) if args.config_root else Path.cwd())

    cfg = BoundaryConfig.from_env(
        default=BoundaryConfig.from_mapping(config.get("logging") or {}, default=BoundaryConfig(env_prefix="BOUNDARY_"))
    )
    if args.log_dir:
        cfg = BoundaryConfig.from_mapping({"log_dir": args.log_dir}, default=cfg)

    logger, event_logger = configure_logging(cfg=cfg)
    reporter = ErrorReporter(logger=logger, event_logger=event_logger)
    catalog = MessageCatalog.from_config(config.get("messages") or {})
    resolvers = config.get("resolvers")
    registry = ResolverRegistry.from_config(resolvers) if resolvers else None

    options = dict(
        registry=registry,
        settings=RescuetimeSettings.from_env(config=config.get("rescuetime") or {}),
        sink=reporter,
        max_frames=cfg.max_frames,
    )
    if cfg.step_timeout is not None:
        result = asyncio.run(fetch_activity_async(args.date, step_timeout=cfg.step_timeout, **options))
    else:
        result = fetch_activity(args.date, **options)
    if result.ok:
        out.print_json(json.dumps(result.value))
        return 0

    out.print(catalog.message(result.outcome, locale=args.locale))
    return 1

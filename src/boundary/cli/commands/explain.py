"""`boundary explain` command implementation."""

from __future__ import annotations

import argparse
from pathlib import Path

from rich.console import Console

from boundary.config import load_config
from boundary.presentation import MessageCatalog


def add_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Register the `explain` command."""
    parser = subparsers.add_parser("explain", help="Show the user-facing message for an outcome code.")
    parser.add_argument("code", help="Outcome code, e.g. invalid_date.")
    parser.add_argument("--locale", default=None)
    parser.add_argument("--config-root", default=None, help="Directory holding boundary.yaml (default: cwd).")
    parser.set_defaults(command="explain")


def run(args: argparse.Namespace, console: Console | None = None) -> int:
    """Execute the `explain` command."""
    config = load_config(Path(args.config_root) if args.config_root else Path.cwd())
    catalog = MessageCatalog.from_config(config.get("messages") or {})
    (console or Console()).print(catalog.message(args.code, locale=args.locale))
    return 0

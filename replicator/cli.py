#!/usr/bin/env python3
"""Cross-account replication CLI."""

from __future__ import annotations

import argparse
import sys

from replicator.commands import lambda_batch, lambda_fn, rds, role
from replicator.config import config as default_config
from replicator.core import logging as console
from replicator.core.context import RunContext
from replicator.core.errors import ReplicationError, UserAbort
from replicator.core.logging import setup_logging
from replicator.core.prompts import Prompter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replicate Lambda functions, their triggers and RDS snapshots across accounts",
    )
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL or INFO)")
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Answer yes to confirmations and skip optional prompts",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    lambda_fn.register_parser(subparsers)
    lambda_batch.register_parser(subparsers)
    rds.register_parser(subparsers)
    role.register_parser(subparsers)

    return parser


def main(argv: list[str] | None = None, context: RunContext | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    if context is None:
        setup_logging(args.log_level or default_config.LOG_LEVEL, default_config.LOG_CONFIG_PATH)
        context = RunContext(
            config=default_config, prompter=Prompter(assume_yes=bool(args.yes))
        )

    try:
        return int(args.func(args, context))
    except UserAbort:
        print("Operation cancelled.")
        return 0
    except ReplicationError as exc:
        console.error(f"Error: {exc}")
        return 1
    except ValueError as exc:
        console.error(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

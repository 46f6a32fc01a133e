"""CLI parser for replicating several functions selected from the source account."""

from __future__ import annotations

import argparse

from replicator.commands.lambda_fn import (
    add_replication_arguments,
    assume_source,
    build_options,
    replicate_one,
)
from replicator.core import logging as console
from replicator.core.context import RunContext
from replicator.core.credentials import caller_identity
from replicator.core.errors import NotFoundError
from replicator.core.functions import list_function_names
from replicator.core.iam import SOURCE_ADMIN_ROLE
from replicator.core.models import FunctionAddress


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "lambda-batch",
        help="List source functions, select several and replicate each of them",
    )
    parser.add_argument("--source-account", required=True, help="Source account id")
    parser.add_argument("--region", required=True, help="Source region")
    parser.add_argument(
        "--function",
        action="append",
        dest="functions",
        help="Function name to replicate (repeatable). Omit to select interactively.",
    )
    add_replication_arguments(parser)
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, context: RunContext) -> int:
    destination = context.destination(args.region)
    dest_account, dest_user = caller_identity(destination)

    # Only the account and region matter for assuming the source role.
    account = FunctionAddress(args.source_account, args.region, "_")
    source = assume_source(args, context, account, destination, default_role=SOURCE_ADMIN_ROLE)

    console.step("Fetching list of Lambda functions from source account...")
    available = list_function_names(source.client("lambda", args.region))
    if not available:
        raise NotFoundError("no Lambda functions found in source account")

    selected = args.functions or context.prompter.checkbox(
        "Select the functions to replicate:", available
    )
    unknown = sorted(set(selected) - set(available))
    if unknown:
        raise NotFoundError(f"functions not found in source account: {', '.join(unknown)}")
    if not selected:
        console.warning("No functions selected.")
        return 0

    console.info(f"Selected functions for replication: {', '.join(selected)}")
    console.info(f"Destination Account: {dest_account} ({dest_user})")
    context.prompter.require_confirmation(f"Replicate {len(selected)} function(s)?")
    options = build_options(args, context, keep_source_vpc=True)

    for name in selected:
        function = FunctionAddress(args.source_account, args.region, name)
        replicate_one(args, context, function, source, destination, dest_account, options)
    return 0

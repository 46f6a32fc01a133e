"""CLI parser for creating the cross-account admin role."""

from __future__ import annotations

import argparse
import json

from replicator.core import logging as console
from replicator.core.context import RunContext
from replicator.core.iam import (
    DESTINATION_ADMIN_ROLE,
    SOURCE_ADMIN_ROLE,
    cross_account_trust_policy,
    ensure_cross_account_role,
    get_role_arn,
)


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "role",
        help="Create or update the cross-account admin role in the current account",
    )
    parser.add_argument("--side", choices=["source", "destination"], required=True)
    parser.add_argument("--source-account", required=True, help="Source account id")
    parser.add_argument("--dest-account", required=True, help="Destination account id")
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, context: RunContext) -> int:
    role_name = SOURCE_ADMIN_ROLE if args.side == "source" else DESTINATION_ADMIN_ROLE
    iam = context.destination(None).client("iam")

    console.info(f"Role Name: {role_name}")
    console.info(f"Source Account: {args.source_account}")
    console.info(f"Destination Account: {args.dest_account}")

    update_trust = False
    if get_role_arn(iam, role_name) is not None:
        console.warning(f"Role '{role_name}' already exists.")
        update_trust = context.prompter.confirm("Do you want to update the trust policy?")

    role = ensure_cross_account_role(
        iam,
        role_name,
        args.source_account,
        args.dest_account,
        update_trust=update_trust,
    )
    if role.admin_attached:
        console.info("Attached AdministratorAccess policy")
    console.success(f"Role created/updated successfully: {console.highlight(role.arn)}")
    print(
        json.dumps(
            cross_account_trust_policy(args.source_account, args.dest_account), indent=2
        )
    )
    return 0

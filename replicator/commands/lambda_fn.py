"""CLI parser for single-function replication."""

from __future__ import annotations

import argparse
import functools

from replicator.core import logging as console
from replicator.core.api_replication import ApiReplicationOptions
from replicator.core.context import RunContext
from replicator.core.credentials import (
    CredentialScope,
    assume_role_scope,
    caller_identity,
    role_arn,
)
from replicator.core.functions import VpcSettings, download_code
from replicator.core.models import FunctionAddress, PermissionMode
from replicator.core.replication import ReplicationOptions, replicate_function


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "lambda",
        help="Replicate one Lambda function with its event sources and API Gateway trigger",
    )
    parser.add_argument(
        "--arn", help="Full ARN of the source Lambda function (prompted if omitted)"
    )
    add_replication_arguments(parser)
    parser.set_defaults(func=run)


def add_replication_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--role-name",
        help=(
            "Cross-account role in the source account "
            "(default: SOURCE_ROLE_NAME, or rl-crossaccount-admin-source for lambda-batch)"
        ),
    )
    parser.add_argument("--subnets", help="Destination subnet ids, comma separated")
    parser.add_argument("--security-groups", help="Destination security group ids, comma separated")
    parser.add_argument(
        "--permission-mode",
        choices=[mode.value for mode in PermissionMode],
        help="Invoke-permission statement ids: accumulate (fresh per run) or reconcile",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        default=None,
        help="Skip methods already bound on destination resources",
    )
    parser.add_argument("--stage", help="Stage name to deploy (default: API_STAGE_NAME)")


def run(args: argparse.Namespace, context: RunContext) -> int:
    arn = args.arn or context.prompter.text("Enter the full ARN of the source Lambda function:")
    function = FunctionAddress.from_arn(arn)
    destination = context.destination(function.region)
    dest_account, dest_user = caller_identity(destination)

    console.info(f"Source Account : {function.account_id}")
    console.info(f"Source Region  : {function.region}")
    console.info(f"Lambda Name    : {function.name}")
    console.info(f"Destination Account: {dest_account} ({dest_user})")
    context.prompter.require_confirmation("Proceed to replicate Lambda?")

    source = assume_source(args, context, function, destination)
    replicate_one(args, context, function, source, destination, dest_account)
    return 0


def assume_source(
    args: argparse.Namespace,
    context: RunContext,
    function: FunctionAddress,
    destination: CredentialScope,
    default_role: str | None = None,
) -> CredentialScope:
    role_name = args.role_name or default_role or context.config.SOURCE_ROLE_NAME
    console.step(f"Assuming role {role_name} in source account...")
    return assume_role_scope(
        destination.client("sts"),
        role_arn(function.account_id, role_name),
        context.config.ROLE_SESSION_NAME,
        function.region,
    )


def replicate_one(
    args: argparse.Namespace,
    context: RunContext,
    function: FunctionAddress,
    source: CredentialScope,
    destination: CredentialScope,
    dest_account: str,
    options: ReplicationOptions | None = None,
) -> None:
    options = options or build_options(args, context)
    prompter = context.prompter

    def resolve_event_source(mapping: dict) -> str | None:
        source_arn = mapping.get("EventSourceArn", "")
        if prompter.assume_yes:
            console.warning(f"Skipping event source {source_arn} (unattended run)")
            return None
        return prompter.text(
            f"Destination ARN for event source {source_arn} (leave empty to skip):"
        ) or None

    result = replicate_function(
        function,
        source,
        destination,
        dest_account,
        options,
        resolve_event_source=resolve_event_source,
        http_get=functools.partial(download_code, timeout=context.config.CODE_DOWNLOAD_TIMEOUT),
    )
    console.success(
        f"Lambda '{function.name}' replication completed: {console.highlight(result.function_arn)}"
    )
    console.info(f"Destination Role ARN: {result.role_arn}")


def build_options(
    args: argparse.Namespace, context: RunContext, *, keep_source_vpc: bool = False
) -> ReplicationOptions:
    """
    Options from flags and config. With `keep_source_vpc`, a missing
    --subnets/--security-groups pair means "reuse each source function's VPC"
    instead of prompting.
    """
    cfg = context.config
    vpc = VpcSettings.from_csv(args.subnets, args.security_groups)
    prompt_vpc = not (keep_source_vpc or context.prompter.assume_yes)
    if not vpc.enabled and prompt_vpc and args.subnets is None:
        vpc = VpcSettings.from_csv(
            context.prompter.text("Destination subnet IDs (comma separated, empty to skip VPC):"),
            context.prompter.text(
                "Destination security group IDs (comma separated, empty to skip VPC):"
            ),
        )

    resume = cfg.RESUME if args.resume is None else bool(args.resume)
    return ReplicationOptions(
        vpc=vpc,
        api=ApiReplicationOptions(
            stage_name=args.stage or cfg.API_STAGE_NAME,
            permission_mode=PermissionMode(args.permission_mode or cfg.PERMISSION_MODE),
            resume=resume,
        ),
        role_create_wait=cfg.ROLE_CREATE_WAIT_SECONDS,
        propagation_wait=cfg.IAM_PROPAGATION_WAIT_SECONDS,
        keep_source_vpc=keep_source_vpc,
    )

"""CLI parser for destination-side RDS/Aurora snapshot restore."""

from __future__ import annotations

import argparse

from replicator.core import logging as console
from replicator.core.context import RunContext
from replicator.core.credentials import caller_identity
from replicator.core.errors import NotFoundError
from replicator.core.rds import (
    MAX_IDENTIFIER_LENGTH,
    RestoreOptions,
    copy_snapshot,
    list_security_groups,
    list_shared_snapshots,
    list_subnet_groups,
    restore_snapshot,
)


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "rds",
        help="Copy a snapshot shared with this account and restore it (multi-AZ)",
    )
    parser.add_argument("--region", help="Region (default: RDS_REGION)")
    parser.add_argument("--kms-key-id", help="KMS key for the copy (default: RDS_KMS_KEY_ID)")
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, context: RunContext) -> int:
    cfg = context.config
    prompter = context.prompter
    region = args.region or cfg.RDS_REGION
    destination = context.destination(region)
    rds = destination.client("rds", region)
    ec2 = destination.client("ec2", region)

    account, _ = caller_identity(destination)
    console.info(f"Running in destination account: {account} ({region})")

    console.step("Select shared snapshot")
    snapshots = list_shared_snapshots(rds)
    if not snapshots:
        raise NotFoundError("no snapshots shared with this account")
    labels = [f"[{snap.kind}] {snap.identifier}" for snap in snapshots]
    snapshot = snapshots[labels.index(prompter.select("Snapshot to restore:", labels))]
    console.success(f"Selected snapshot: {snapshot.identifier}")

    console.step("Copying snapshot with the destination KMS key (this can take a while)")
    copy_name = copy_snapshot(
        rds, snapshot, args.kms_key_id or cfg.RDS_KMS_KEY_ID, cfg.SNAPSHOT_COPY_SUFFIX
    )
    console.success(f"Snapshot copy completed: {copy_name}")

    console.step("Select subnet group and security groups")
    subnet_group = prompter.select("Subnet group:", list_subnet_groups(rds))
    groups = list_security_groups(ec2)
    group_labels = [f"{name} ({group_id})" for group_id, name in groups]
    chosen = prompter.checkbox("Security groups:", group_labels)
    security_group_ids = tuple(groups[group_labels.index(label)][0] for label in chosen)

    db_identifier = prompter.text(
        f"DB identifier (same as source, max {MAX_IDENTIFIER_LENGTH} chars):"
    )
    if not db_identifier or len(db_identifier) > MAX_IDENTIFIER_LENGTH:
        raise ValueError(f"invalid DB identifier: {db_identifier!r}")
    instance_class = prompter.text("DB instance class (e.g. db.t3.micro):")

    console.step("Restoring snapshot")
    instances = restore_snapshot(
        rds,
        ec2,
        snapshot,
        copy_name,
        RestoreOptions(
            db_identifier=db_identifier,
            instance_class=instance_class,
            subnet_group=subnet_group,
            security_group_ids=security_group_ids,
        ),
    )
    console.success(f"DB restored: {', '.join(instances)}")
    return 0

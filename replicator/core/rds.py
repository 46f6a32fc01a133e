"""
Shared RDS/Aurora snapshot copy and restore on the destination side.

The source account shares a snapshot; the destination copies it with its own
KMS key (shared snapshots cannot be restored directly when encrypted with the
source key) and restores it into a multi-AZ instance or an Aurora cluster.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from replicator.core.errors import remote_call

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 63
CLUSTER = "cluster"
INSTANCE = "instance"

_COPY_SUFFIX_RE = re.compile(r"(-copy|-destination)*$")


@dataclass(frozen=True)
class SharedSnapshot:
    identifier: str
    kind: str

    @property
    def is_cluster(self) -> bool:
        return self.kind == CLUSTER


@dataclass(frozen=True)
class RestoreOptions:
    db_identifier: str
    instance_class: str
    subnet_group: str
    security_group_ids: tuple[str, ...]
    engine: str = "aurora-mysql"


def list_shared_snapshots(client: Any) -> list[SharedSnapshot]:
    """Cluster snapshots first, then instance snapshots."""
    snapshots: list[SharedSnapshot] = []
    with remote_call("describe_db_cluster_snapshots"):
        for page in client.get_paginator("describe_db_cluster_snapshots").paginate(
            IncludeShared=True
        ):
            snapshots.extend(
                SharedSnapshot(snap["DBClusterSnapshotIdentifier"], CLUSTER)
                for snap in page.get("DBClusterSnapshots", [])
            )
    with remote_call("describe_db_snapshots"):
        for page in client.get_paginator("describe_db_snapshots").paginate(IncludeShared=True):
            snapshots.extend(
                SharedSnapshot(snap["DBSnapshotIdentifier"], INSTANCE)
                for snap in page.get("DBSnapshots", [])
            )
    return snapshots


def copy_snapshot_name(
    identifier: str, suffix: str = "-destination", max_length: int = MAX_IDENTIFIER_LENGTH
) -> str:
    """
    Derive a valid target snapshot identifier from a (possibly ARN) identifier.

    Example: "arn:aws:rds:us-east-1:111:snapshot:My_DB-copy" -> "mydb-destination"
    """
    base = identifier.rsplit(":", 1)[-1].rsplit("/", 1)[-1]
    base = _COPY_SUFFIX_RE.sub("", base)
    base = re.sub(r"[^A-Za-z0-9-]", "", base).lower()
    if not re.match(r"^[a-z]", base):
        base = f"db-{base}"
    base = base.rstrip("-")
    base = base[: max_length - len(suffix)].rstrip("-")
    return f"{base}{suffix}"


def copy_snapshot(
    client: Any, snapshot: SharedSnapshot, kms_key_id: str, suffix: str = "-destination"
) -> str:
    target = copy_snapshot_name(snapshot.identifier, suffix)
    logger.info("Copying snapshot %s as %s", snapshot.identifier, target)
    if snapshot.is_cluster:
        with remote_call(f"copy_db_cluster_snapshot({target})"):
            client.copy_db_cluster_snapshot(
                SourceDBClusterSnapshotIdentifier=snapshot.identifier,
                TargetDBClusterSnapshotIdentifier=target,
                KmsKeyId=kms_key_id,
            )
            client.get_waiter("db_cluster_snapshot_available").wait(
                DBClusterSnapshotIdentifier=target
            )
    else:
        with remote_call(f"copy_db_snapshot({target})"):
            client.copy_db_snapshot(
                SourceDBSnapshotIdentifier=snapshot.identifier,
                TargetDBSnapshotIdentifier=target,
                KmsKeyId=kms_key_id,
            )
            client.get_waiter("db_snapshot_available").wait(DBSnapshotIdentifier=target)
    return target


def list_subnet_groups(client: Any) -> list[str]:
    with remote_call("describe_db_subnet_groups"):
        return [
            group["DBSubnetGroupName"]
            for page in client.get_paginator("describe_db_subnet_groups").paginate()
            for group in page.get("DBSubnetGroups", [])
        ]


def list_security_groups(ec2_client: Any) -> list[tuple[str, str]]:
    """(group id, group name) pairs."""
    with remote_call("describe_security_groups"):
        return [
            (group["GroupId"], group["GroupName"])
            for page in ec2_client.get_paginator("describe_security_groups").paginate()
            for group in page.get("SecurityGroups", [])
        ]


def subnet_group_zones(client: Any, ec2_client: Any, subnet_group: str) -> list[str]:
    with remote_call(f"describe_db_subnet_groups({subnet_group})"):
        group = client.describe_db_subnet_groups(DBSubnetGroupName=subnet_group)
    subnet_ids = [s["SubnetIdentifier"] for s in group["DBSubnetGroups"][0]["Subnets"]]
    with remote_call("describe_subnets"):
        subnets = ec2_client.describe_subnets(SubnetIds=subnet_ids)["Subnets"]
    zones: list[str] = []
    for subnet in subnets:
        if subnet["AvailabilityZone"] not in zones:
            zones.append(subnet["AvailabilityZone"])
    return zones


def restore_snapshot(
    client: Any,
    ec2_client: Any,
    snapshot: SharedSnapshot,
    copy_name: str,
    options: RestoreOptions,
) -> list[str]:
    """Restore the copied snapshot; returns the created DB instance identifiers."""
    security_groups = list(options.security_group_ids)
    if not snapshot.is_cluster:
        with remote_call(f"restore_db_instance_from_db_snapshot({options.db_identifier})"):
            client.restore_db_instance_from_db_snapshot(
                DBInstanceIdentifier=options.db_identifier,
                DBSnapshotIdentifier=copy_name,
                DBSubnetGroupName=options.subnet_group,
                VpcSecurityGroupIds=security_groups,
                DBInstanceClass=options.instance_class,
                MultiAZ=True,
            )
        return [options.db_identifier]

    with remote_call(f"restore_db_cluster_from_snapshot({options.db_identifier})"):
        client.restore_db_cluster_from_snapshot(
            DBClusterIdentifier=options.db_identifier,
            SnapshotIdentifier=copy_name,
            Engine=options.engine,
            DBSubnetGroupName=options.subnet_group,
            VpcSecurityGroupIds=security_groups,
        )

    # Writer and reader in separate zones for multi-AZ.
    zones = subnet_group_zones(client, ec2_client, options.subnet_group)
    instances: list[str] = []
    for index, zone in enumerate(zones[:2], start=1):
        instance_id = f"{options.db_identifier}-instance-{index}"
        with remote_call(f"create_db_instance({instance_id})"):
            client.create_db_instance(
                DBInstanceIdentifier=instance_id,
                DBClusterIdentifier=options.db_identifier,
                Engine=options.engine,
                DBInstanceClass=options.instance_class,
                AvailabilityZone=zone,
            )
        instances.append(instance_id)
    return instances

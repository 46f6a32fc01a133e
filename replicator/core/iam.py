"""IAM roles: Lambda execution roles and cross-account admin roles."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from botocore.exceptions import ClientError

from replicator.core.errors import RemoteOperationError, error_code, remote_call

logger = logging.getLogger(__name__)

BASIC_EXECUTION_POLICY = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
VPC_ACCESS_POLICY = "arn:aws:iam::aws:policy/service-role/AWSLambdaVPCAccessExecutionRole"
ADMIN_POLICY = "arn:aws:iam::aws:policy/AdministratorAccess"

SOURCE_ADMIN_ROLE = "rl-crossaccount-admin-source"
DESTINATION_ADMIN_ROLE = "rl-crossaccount-admin-destination"

LAMBDA_TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


def cross_account_trust_policy(source_account: str, dest_account: str) -> dict:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {
                    "AWS": [
                        f"arn:aws:iam::{source_account}:root",
                        f"arn:aws:iam::{dest_account}:root",
                    ]
                },
                "Action": "sts:AssumeRole",
            }
        ],
    }


def get_role_arn(client: Any, role_name: str) -> str | None:
    """Role ARN, or None when the role does not exist."""
    try:
        return client.get_role(RoleName=role_name)["Role"]["Arn"]
    except ClientError as exc:
        if error_code(exc) == "NoSuchEntity":
            return None
        raise RemoteOperationError(f"get_role({role_name})", exc) from exc


def ensure_execution_role(
    client: Any,
    role_name: str,
    *,
    vpc: bool = False,
    create_wait: int = 10,
    propagation_wait: int = 15,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Reuse or create the function's execution role and attach managed policies."""
    role_arn = get_role_arn(client, role_name)
    if role_arn is None:
        logger.info("IAM role %s not found, creating it", role_name)
        with remote_call(f"create_role({role_name})"):
            role_arn = client.create_role(
                RoleName=role_name,
                AssumeRolePolicyDocument=json.dumps(LAMBDA_TRUST_POLICY),
            )["Role"]["Arn"]
        sleep(create_wait)
    else:
        logger.info("Reusing existing role %s", role_name)

    policies = [BASIC_EXECUTION_POLICY]
    if vpc:
        policies.append(VPC_ACCESS_POLICY)
    for policy_arn in policies:
        with remote_call(f"attach_role_policy({role_name})"):
            client.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

    # IAM is eventually consistent; Lambda rejects roles it cannot assume yet.
    sleep(propagation_wait)
    return role_arn


@dataclass(frozen=True)
class CrossAccountRole:
    name: str
    arn: str
    created: bool
    trust_updated: bool
    admin_attached: bool


def ensure_cross_account_role(
    client: Any,
    role_name: str,
    source_account: str,
    dest_account: str,
    *,
    update_trust: bool = False,
) -> CrossAccountRole:
    trust = json.dumps(cross_account_trust_policy(source_account, dest_account))
    created = trust_updated = False

    role_arn = get_role_arn(client, role_name)
    if role_arn is None:
        with remote_call(f"create_role({role_name})"):
            role_arn = client.create_role(
                RoleName=role_name,
                AssumeRolePolicyDocument=trust,
                Description=(
                    f"Cross-account administrator role trusted by {source_account} "
                    f"and {dest_account}"
                ),
            )["Role"]["Arn"]
        created = True
    elif update_trust:
        with remote_call(f"update_assume_role_policy({role_name})"):
            client.update_assume_role_policy(RoleName=role_name, PolicyDocument=trust)
        trust_updated = True

    with remote_call(f"list_attached_role_policies({role_name})"):
        attached = [
            policy["PolicyArn"]
            for page in client.get_paginator("list_attached_role_policies").paginate(
                RoleName=role_name
            )
            for policy in page.get("AttachedPolicies", [])
        ]
    admin_attached = False
    if ADMIN_POLICY not in attached:
        with remote_call(f"attach_role_policy({role_name})"):
            client.attach_role_policy(RoleName=role_name, PolicyArn=ADMIN_POLICY)
        admin_attached = True

    return CrossAccountRole(role_name, role_arn, created, trust_updated, admin_attached)

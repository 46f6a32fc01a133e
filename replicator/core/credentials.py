"""
Credential scopes.

A scope is an explicit value that owns a boto3 session. Source reads and
destination writes each build clients from their own scope, so no process-wide
credential state is ever exported or reverted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import ClientError

from replicator.core.errors import CredentialError
from replicator.core.models import Scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialScope:
    """Named boto3 session bound to one account."""

    scope: Scope
    session: Any
    region: str | None = None

    def client(self, service: str, region: str | None = None) -> Any:
        return self.session.client(service, region_name=region or self.region)


def role_arn(account_id: str, role_name: str) -> str:
    return f"arn:aws:iam::{account_id}:role/{role_name}"


def ambient_scope(region: str | None = None) -> CredentialScope:
    """Destination scope backed by the default credential chain."""
    return CredentialScope(Scope.DESTINATION, boto3.session.Session(), region)


def assume_role_scope(
    sts_client: Any,
    arn: str,
    session_name: str,
    region: str | None = None,
) -> CredentialScope:
    logger.info("Assuming role %s", arn)
    try:
        response = sts_client.assume_role(RoleArn=arn, RoleSessionName=session_name)
    except ClientError as exc:
        raise CredentialError(f"assume role {arn} rejected: {exc}") from exc

    creds = response["Credentials"]
    session = boto3.session.Session(
        aws_access_key_id=creds["AccessKeyId"],
        aws_secret_access_key=creds["SecretAccessKey"],
        aws_session_token=creds["SessionToken"],
        region_name=region,
    )
    return CredentialScope(Scope.SOURCE, session, region)


def caller_identity(scope: CredentialScope) -> tuple[str, str]:
    """Return (account id, caller ARN) for the scope."""
    try:
        identity = scope.client("sts").get_caller_identity()
    except ClientError as exc:
        raise CredentialError(f"cannot resolve caller identity: {exc}") from exc
    return identity["Account"], identity["Arn"]

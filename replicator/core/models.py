"""
Data model for API Gateway trigger replication.

These are plain value objects; the boto3 responses are translated into them
at the fetch boundary so the reconciler never touches raw dicts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

ROOT_PATH = "/"
INVOKE_PRINCIPAL = "apigateway.amazonaws.com"

_FUNCTION_ARN_RE = re.compile(
    r"^arn:(?P<partition>aws[a-zA-Z-]*):lambda:(?P<region>[a-z0-9-]+):"
    r"(?P<account>\d{12}):function:(?P<name>[A-Za-z0-9_-]+)(?::[A-Za-z0-9$_-]+)?$"
)


class Scope(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


class PermissionMode(str, Enum):
    ACCUMULATE = "accumulate"
    RECONCILE = "reconcile"


@dataclass(frozen=True)
class FunctionAddress:
    account_id: str
    region: str
    name: str
    partition: str = "aws"

    @classmethod
    def from_arn(cls, arn: str) -> "FunctionAddress":
        match = _FUNCTION_ARN_RE.match(arn.strip())
        if match is None:
            raise ValueError(f"not a Lambda function ARN: {arn}")
        return cls(
            account_id=match.group("account"),
            region=match.group("region"),
            name=match.group("name"),
            partition=match.group("partition"),
        )

    @property
    def arn(self) -> str:
        return (
            f"arn:{self.partition}:lambda:{self.region}:{self.account_id}:function:{self.name}"
        )


@dataclass(frozen=True)
class RoutingContainer:
    id: str
    name: str
    scope: Scope
    region: str


@dataclass(frozen=True)
class ResourceNode:
    id: str
    path: str
    path_part: str = ""
    parent_id: str | None = None
    methods: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_root(self) -> bool:
        return self.path == ROOT_PATH

    @classmethod
    def from_api(cls, item: dict) -> "ResourceNode":
        return cls(
            id=item["id"],
            path=item.get("path", ""),
            path_part=item.get("pathPart", ""),
            parent_id=item.get("parentId"),
            methods=frozenset((item.get("resourceMethods") or {}).keys()),
        )


@dataclass(frozen=True)
class MethodBinding:
    resource_id: str
    http_method: str
    integration_uri: str
    authorization: str = "NONE"
    integration_type: str = "AWS_PROXY"
    integration_http_method: str = "POST"


@dataclass(frozen=True)
class InvocationPermission:
    function_name: str
    statement_id: str
    source_arn: str
    principal: str = INVOKE_PRINCIPAL
    action: str = "lambda:InvokeFunction"


@dataclass(frozen=True)
class Deployment:
    id: str
    api_id: str
    stage_name: str
    created_at: datetime | None = None


def integration_uri(region: str, function_arn: str, partition: str = "aws") -> str:
    return (
        f"arn:{partition}:apigateway:{region}:lambda:path/2015-03-31/functions/"
        f"{function_arn}/invocations"
    )


def execute_api_source_arn(
    region: str, account_id: str, api_id: str, http_method: str, partition: str = "aws"
) -> str:
    return f"arn:{partition}:execute-api:{region}:{account_id}:{api_id}/*/{http_method}/*"

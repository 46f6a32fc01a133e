"""
Method, integration and invoke-permission replication.

Every (resource, verb) pair of the source tree becomes a method on the
mapped destination resource with an AWS_PROXY integration to the destination
function, plus a Lambda permission that lets API Gateway invoke it.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from botocore.exceptions import ClientError

from replicator.core.api_tree import ResourceTree
from replicator.core.errors import RemoteOperationError, error_code, remote_call
from replicator.core.models import (
    FunctionAddress,
    InvocationPermission,
    MethodBinding,
    PermissionMode,
    execute_api_source_arn,
    integration_uri,
)

logger = logging.getLogger(__name__)

STATEMENT_PREFIX = "APIGatewayInvoke"


@dataclass(frozen=True)
class MethodTarget:
    """Destination API and function the methods are wired to."""

    api_id: str
    function: FunctionAddress

    @property
    def function_arn(self) -> str:
        return self.function.arn


@dataclass
class MethodReplicationResult:
    bindings: list[MethodBinding] = field(default_factory=list)
    permissions: list[InvocationPermission] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)


class StatementIdFactory:
    """Mints invoke-permission statement ids for one run."""

    def __init__(
        self,
        mode: PermissionMode,
        clock: Callable[[], float] = time.time,
        run_token: str | None = None,
    ):
        self.mode = mode
        self._clock = clock
        # Separates runs that start within the same second.
        self.run_token = run_token or uuid.uuid4().hex[:8]
        self._counter = 0

    def next_id(self, api_id: str, http_method: str) -> str:
        if self.mode is PermissionMode.RECONCILE:
            digest = hashlib.sha1(f"{api_id}/{http_method}".encode("utf-8")).hexdigest()
            return f"{STATEMENT_PREFIX}-{http_method}-{digest[:16]}"
        self._counter += 1
        return f"{STATEMENT_PREFIX}{int(self._clock())}-{self.run_token}-{self._counter}"


class MethodReplicator:
    def __init__(
        self,
        apigateway: Any,
        lambda_client: Any,
        target: MethodTarget,
        *,
        permission_mode: PermissionMode = PermissionMode.ACCUMULATE,
        resume: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.apigateway = apigateway
        self.lambda_client = lambda_client
        self.target = target
        self.permission_mode = permission_mode
        self.resume = resume
        self._statement_ids = StatementIdFactory(permission_mode, clock)
        self._granted: set[str] = set()

    def replicate(
        self,
        source: ResourceTree,
        id_map: Mapping[str, str],
        existing_methods: Mapping[str, frozenset[str]] | None = None,
    ) -> MethodReplicationResult:
        existing_methods = existing_methods or {}
        result = MethodReplicationResult()

        for node in source.walk():
            if not node.methods:
                continue
            dest_id = id_map[node.id]
            for http_method in sorted(node.methods):
                if self.resume and http_method in existing_methods.get(dest_id, frozenset()):
                    logger.info("Skipping %s %s (already bound)", http_method, node.path)
                    result.skipped.append((dest_id, http_method))
                    continue
                result.bindings.append(self._put_method(dest_id, http_method, node.path))
                permission = self._grant(http_method)
                if permission is not None:
                    result.permissions.append(permission)

        return result

    def _put_method(self, resource_id: str, http_method: str, path: str) -> MethodBinding:
        binding = MethodBinding(
            resource_id=resource_id,
            http_method=http_method,
            integration_uri=integration_uri(
                self.target.function.region,
                self.target.function_arn,
                self.target.function.partition,
            ),
        )
        try:
            self.apigateway.put_method(
                restApiId=self.target.api_id,
                resourceId=resource_id,
                httpMethod=http_method,
                authorizationType=binding.authorization,
            )
        except ClientError as exc:
            if error_code(exc) != "ConflictException":
                raise RemoteOperationError(f"put_method({http_method} {path})", exc) from exc
            logger.info("Method %s %s already exists", http_method, path)

        with remote_call(f"put_integration({http_method} {path})"):
            self.apigateway.put_integration(
                restApiId=self.target.api_id,
                resourceId=resource_id,
                httpMethod=http_method,
                type=binding.integration_type,
                integrationHttpMethod=binding.integration_http_method,
                uri=binding.integration_uri,
            )
        logger.info("Bound %s %s -> %s", http_method, path, self.target.function.name)
        return binding

    def _grant(self, http_method: str) -> InvocationPermission | None:
        statement_id = self._statement_ids.next_id(self.target.api_id, http_method)
        if statement_id in self._granted:
            return None

        function = self.target.function
        permission = InvocationPermission(
            function_name=function.name,
            statement_id=statement_id,
            source_arn=execute_api_source_arn(
                function.region,
                function.account_id,
                self.target.api_id,
                http_method,
                function.partition,
            ),
        )
        try:
            self.lambda_client.add_permission(
                FunctionName=permission.function_name,
                StatementId=permission.statement_id,
                Action=permission.action,
                Principal=permission.principal,
                SourceArn=permission.source_arn,
            )
        except ClientError as exc:
            if (
                self.permission_mode is PermissionMode.RECONCILE
                and error_code(exc) == "ResourceConflictException"
            ):
                logger.info("Permission %s already granted", statement_id)
                self._granted.add(statement_id)
                return None
            raise RemoteOperationError(f"add_permission({statement_id})", exc) from exc
        self._granted.add(statement_id)
        return permission

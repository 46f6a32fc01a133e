"""
API Gateway trigger replication.

Sequence: find the source API bound to the function (source scope), fetch its
resource tree (source scope), then locate-or-create the destination API,
reconcile the tree, replicate methods and deploy (destination scope).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from replicator.core.api_tree import ResourceTree, fetch_tree
from replicator.core.credentials import CredentialScope
from replicator.core.errors import remote_call
from replicator.core.methods import MethodReplicationResult, MethodReplicator, MethodTarget
from replicator.core.models import (
    Deployment,
    FunctionAddress,
    PermissionMode,
    RoutingContainer,
    Scope,
)
from replicator.core.reconciler import ReconcileResult, TreeReconciler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiReplicationOptions:
    stage_name: str = "prod"
    permission_mode: PermissionMode = PermissionMode.ACCUMULATE
    resume: bool = False


@dataclass
class ApiReplicationResult:
    source: RoutingContainer
    destination: RoutingContainer
    created_api: bool
    reconcile: ReconcileResult
    methods: MethodReplicationResult
    deployment: Deployment


def _rest_apis(client: Any) -> list[dict]:
    items: list[dict] = []
    with remote_call("get_rest_apis"):
        for page in client.get_paginator("get_rest_apis").paginate():
            items.extend(page.get("items", []))
    return items


def find_source_api(client: Any, function_name: str, region: str) -> RoutingContainer | None:
    """First API whose name contains the function name."""
    for item in _rest_apis(client):
        if function_name in item.get("name", ""):
            return RoutingContainer(item["id"], item["name"], Scope.SOURCE, region)
    return None


def ensure_destination_api(client: Any, name: str, region: str) -> tuple[RoutingContainer, bool]:
    """Return the API named exactly `name`, creating it when absent."""
    for item in _rest_apis(client):
        if item.get("name") == name:
            logger.info("Reusing destination API %s (%s)", name, item["id"])
            return RoutingContainer(item["id"], name, Scope.DESTINATION, region), False

    with remote_call(f"create_rest_api({name})"):
        created = client.create_rest_api(name=name)
    logger.info("Created destination API %s (%s)", name, created["id"])
    return RoutingContainer(created["id"], name, Scope.DESTINATION, region), True


def deploy(client: Any, api_id: str, stage_name: str) -> Deployment:
    with remote_call(f"create_deployment({api_id}/{stage_name})"):
        response = client.create_deployment(restApiId=api_id, stageName=stage_name)
    created_at = response.get("createdDate")
    logger.info("Deployed API %s to stage %s", api_id, stage_name)
    return Deployment(
        id=response.get("id", ""),
        api_id=api_id,
        stage_name=stage_name,
        created_at=created_at if isinstance(created_at, datetime) else None,
    )


def replicate_api_trigger(
    source: CredentialScope,
    destination: CredentialScope,
    function: FunctionAddress,
    target: FunctionAddress,
    options: ApiReplicationOptions | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> ApiReplicationResult | None:
    """
    Replicate the API Gateway trigger of `function` onto `target`.

    Returns None when no API in the source account is bound to the function;
    in that case the destination is never touched.
    """
    options = options or ApiReplicationOptions()

    source_apigw = source.client("apigateway", function.region)
    source_api = find_source_api(source_apigw, function.name, function.region)
    if source_api is None:
        logger.info("No API Gateway trigger detected for %s", function.name)
        return None
    logger.info("Source API found: %s (%s)", source_api.name, source_api.id)
    source_tree = fetch_tree(source_apigw, source_api.id)

    dest_apigw = destination.client("apigateway", target.region)
    dest_lambda = destination.client("lambda", target.region)
    dest_api, created_api = ensure_destination_api(dest_apigw, function.name, target.region)
    dest_tree = fetch_tree(dest_apigw, dest_api.id)

    reconcile = TreeReconciler(dest_apigw, dest_api.id).reconcile(source_tree, dest_tree)
    existing = _existing_methods(dest_tree)

    replicator = MethodReplicator(
        dest_apigw,
        dest_lambda,
        MethodTarget(api_id=dest_api.id, function=target),
        permission_mode=options.permission_mode,
        resume=options.resume,
        clock=clock,
    )
    methods = replicator.replicate(source_tree, reconcile.id_map, existing)

    deployment = deploy(dest_apigw, dest_api.id, options.stage_name)
    return ApiReplicationResult(
        source=source_api,
        destination=dest_api,
        created_api=created_api,
        reconcile=reconcile,
        methods=methods,
        deployment=deployment,
    )


def _existing_methods(tree: ResourceTree) -> dict[str, frozenset[str]]:
    return {node.id: node.methods for node in tree.nodes if node.methods}

"""
End-to-end replication of one Lambda function and its triggers.

All source reads happen with the assumed source scope; every write uses the
destination scope. The function keeps its name and region in the
destination account.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from replicator.core import logging as console
from replicator.core.api_replication import (
    ApiReplicationOptions,
    ApiReplicationResult,
    replicate_api_trigger,
)
from replicator.core.credentials import CredentialScope
from replicator.core.event_sources import list_event_source_mappings, replicate_event_sources
from replicator.core.functions import (
    VpcSettings,
    deploy_function,
    download_code,
    fetch_function_package,
)
from replicator.core.iam import ensure_execution_role
from replicator.core.models import FunctionAddress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplicationOptions:
    vpc: VpcSettings = field(default_factory=VpcSettings)
    api: ApiReplicationOptions = field(default_factory=ApiReplicationOptions)
    role_create_wait: int = 10
    propagation_wait: int = 15
    # Reuse the source function's own VPC config when no destination VPC is given.
    keep_source_vpc: bool = False


@dataclass
class FunctionReplicationResult:
    function_arn: str
    role_arn: str
    event_sources: list[str]
    api: ApiReplicationResult | None


def replicate_function(
    function: FunctionAddress,
    source: CredentialScope,
    destination: CredentialScope,
    destination_account: str,
    options: ReplicationOptions,
    *,
    resolve_event_source: Callable[[dict], str | None],
    http_get: Callable[[str], bytes] = download_code,
    sleep: Callable[[float], None] = time.sleep,
) -> FunctionReplicationResult:
    source_lambda = source.client("lambda", function.region)
    dest_lambda = destination.client("lambda", function.region)

    console.step(f"Fetching configuration and code of {function.name}")
    package = fetch_function_package(source_lambda, function.name, http_get=http_get)
    mappings = list_event_source_mappings(source_lambda, function.name)

    vpc = options.vpc
    if not vpc.enabled and options.keep_source_vpc and package.source_vpc.enabled:
        vpc = package.source_vpc
        console.info(f"Keeping source VPC config: {', '.join(vpc.subnet_ids)}")

    console.step(f"Ensuring execution role {package.role_name}")
    role_arn = ensure_execution_role(
        destination.client("iam"),
        package.role_name,
        vpc=vpc.enabled,
        create_wait=options.role_create_wait,
        propagation_wait=options.propagation_wait,
        sleep=sleep,
    )

    console.step(f"Deploying {function.name} to account {destination_account}")
    function_arn = deploy_function(dest_lambda, package, role_arn, vpc)

    console.step("Replicating event source mappings")
    event_sources = replicate_event_sources(
        mappings, dest_lambda, function.name, resolve_event_source
    )

    console.step("Checking for API Gateway trigger")
    target = FunctionAddress.from_arn(function_arn)
    api = replicate_api_trigger(source, destination, function, target, options.api)
    if api is None:
        console.info(f"No API Gateway trigger detected for Lambda '{function.name}'")
    else:
        console.success(
            f"API Gateway replicated: {api.destination.id} "
            f"({len(api.reconcile.created)} resources created, "
            f"{len(api.methods.bindings)} methods, stage '{api.deployment.stage_name}')"
        )

    logger.info("Replicated %s -> %s", function.arn, function_arn)
    return FunctionReplicationResult(function_arn, role_arn, event_sources, api)

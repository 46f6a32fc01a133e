"""Event source mapping (SQS, Kinesis, DynamoDB streams) replication."""

from __future__ import annotations

import logging
from typing import Any, Callable

from replicator.core.errors import remote_call

logger = logging.getLogger(__name__)


def list_event_source_mappings(client: Any, function_name: str) -> list[dict]:
    mappings: list[dict] = []
    with remote_call(f"list_event_source_mappings({function_name})"):
        paginator = client.get_paginator("list_event_source_mappings")
        for page in paginator.paginate(FunctionName=function_name):
            mappings.extend(page.get("EventSourceMappings", []))
    return mappings


def replicate_event_sources(
    mappings: list[dict],
    client: Any,
    function_name: str,
    resolve_destination_arn: Callable[[dict], str | None],
) -> list[str]:
    """
    Create one destination mapping per source mapping the resolver maps.

    Source event ARNs belong to the source account, so the operator supplies
    the destination ARN; an empty answer skips the mapping.
    """
    created: list[str] = []
    for mapping in mappings:
        dest_arn = resolve_destination_arn(mapping)
        if not dest_arn:
            logger.info("Skipping event source %s", mapping.get("EventSourceArn"))
            continue
        params = {
            "FunctionName": function_name,
            "EventSourceArn": dest_arn,
            "Enabled": True,
        }
        if mapping.get("BatchSize"):
            params["BatchSize"] = mapping["BatchSize"]
        with remote_call(f"create_event_source_mapping({dest_arn})"):
            client.create_event_source_mapping(**params)
        logger.info("Mapped %s -> %s", dest_arn, function_name)
        created.append(dest_arn)
    return created

"""
Resource tree reconciliation.

Maps every source resource onto a destination resource, creating the ones
that are missing. Identity is (destination parent id, path part): two
resources with the same path part under different parents are distinct.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from replicator.core.api_tree import ResourceTree
from replicator.core.errors import ReplicationError, remote_call
from replicator.core.models import ResourceNode

logger = logging.getLogger(__name__)


class NodeIdentityMap:
    """(parent id, path part) -> destination resource id, built once per run."""

    def __init__(self, tree: ResourceTree):
        self.root_id = tree.root.id
        self._ids: dict[tuple[str, str], str] = {}
        for node in tree.nodes:
            if node.parent_id is not None:
                self._ids[(node.parent_id, node.path_part)] = node.id

    def lookup(self, parent_id: str, path_part: str) -> str | None:
        return self._ids.get((parent_id, path_part))

    def add(self, node: ResourceNode) -> None:
        if node.parent_id is None:
            raise ReplicationError(f"cannot map root resource {node.id} by parent")
        self._ids[(node.parent_id, node.path_part)] = node.id

    def __len__(self) -> int:
        return len(self._ids)


@dataclass
class ReconcileResult:
    id_map: dict[str, str] = field(default_factory=dict)
    created: list[ResourceNode] = field(default_factory=list)
    reused: list[str] = field(default_factory=list)


class TreeReconciler:
    def __init__(self, client: Any, api_id: str):
        self.client = client
        self.api_id = api_id

    def reconcile(self, source: ResourceTree, destination: ResourceTree) -> ReconcileResult:
        """
        Resolve every source node to a destination node id.

        `destination` must be fetched after the destination API is confirmed to
        exist; its root is looked up by path rather than cached.
        """
        identity = NodeIdentityMap(destination)
        result = ReconcileResult()

        for node in source.walk():
            if node.is_root:
                result.id_map[node.id] = identity.root_id
                continue

            dest_parent = result.id_map.get(node.parent_id or "")
            if dest_parent is None:
                raise ReplicationError(
                    f"parent of {node.path} was not resolved before the node itself"
                )

            existing = identity.lookup(dest_parent, node.path_part)
            if existing is not None:
                logger.debug("Reusing %s -> %s", node.path, existing)
                result.id_map[node.id] = existing
                result.reused.append(existing)
                continue

            created = self._create(dest_parent, node.path_part)
            identity.add(created)
            result.id_map[node.id] = created.id
            result.created.append(created)

        logger.info(
            "Reconciled %d resources (%d created, %d reused)",
            len(result.id_map),
            len(result.created),
            len(result.reused),
        )
        return result

    def _create(self, parent_id: str, path_part: str) -> ResourceNode:
        with remote_call(f"create_resource({path_part})"):
            response = self.client.create_resource(
                restApiId=self.api_id, parentId=parent_id, pathPart=path_part
            )
        logger.info("Created resource %s (%s)", response.get("path", path_part), response["id"])
        return ResourceNode(
            id=response["id"],
            path=response.get("path", ""),
            path_part=response.get("pathPart", path_part),
            parent_id=response.get("parentId", parent_id),
        )

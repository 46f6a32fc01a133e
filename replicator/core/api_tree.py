"""Resource tree fetching for REST APIs."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterator

from replicator.core.errors import NotFoundError, remote_call
from replicator.core.models import ResourceNode

logger = logging.getLogger(__name__)


@dataclass
class ResourceTree:
    """Flat resource set of one API with parent/child lookups."""

    api_id: str
    nodes: list[ResourceNode] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.by_id: dict[str, ResourceNode] = {node.id: node for node in self.nodes}
        self._children: dict[str | None, list[ResourceNode]] = {}
        for node in self.nodes:
            self._children.setdefault(node.parent_id, []).append(node)
        for siblings in self._children.values():
            siblings.sort(key=lambda node: (node.path_part, node.id))

    @property
    def root(self) -> ResourceNode:
        for node in self.nodes:
            if node.is_root:
                return node
        raise NotFoundError(f"API {self.api_id} has no root resource")

    def children_of(self, node_id: str) -> list[ResourceNode]:
        return list(self._children.get(node_id, []))

    def walk(self) -> Iterator[ResourceNode]:
        """Yield nodes breadth-first from the root; parents always precede children."""
        root = self.root
        seen = {root.id}
        queue = deque([root])
        while queue:
            node = queue.popleft()
            yield node
            for child in self.children_of(node.id):
                if child.id not in seen:
                    seen.add(child.id)
                    queue.append(child)

        # Nodes whose parent chain never reaches the root.
        orphans = sorted(
            (node for node in self.nodes if node.id not in seen), key=lambda n: n.path
        )
        for node in orphans:
            logger.warning("Resource %s (%s) is not reachable from root", node.id, node.path)
            yield node

    def __len__(self) -> int:
        return len(self.nodes)


def fetch_tree(client: Any, api_id: str) -> ResourceTree:
    """
    Return every resource of `api_id` with the HTTP verbs bound to it.

    Raises:
        NotFoundError: the API id does not resolve.
    """
    nodes: list[ResourceNode] = []
    with remote_call(f"get_resources({api_id})"):
        paginator = client.get_paginator("get_resources")
        for page in paginator.paginate(restApiId=api_id, embed=["methods"]):
            nodes.extend(ResourceNode.from_api(item) for item in page.get("items", []))
    logger.info("Fetched %d resources from API %s", len(nodes), api_id)
    return ResourceTree(api_id=api_id, nodes=nodes)

"""
Relationship graph - undirected adjacency between entities.

Nodes are entity keys ("service:Entity"), edges are RelationshipBindings.
Used by the mapping builder for the reachability check and by the
aggregator to drive the join traversal.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from ..core.defs import RelationshipBinding


class RelationshipGraph:
    """
    Usage:
        graph = RelationshipGraph(plan.relationships)
        for key in graph.neighbors("guest-service:Guest"):
            edge = graph.edge_between("guest-service:Guest", key)
    """

    def __init__(self, relationships: Iterable[RelationshipBinding]):
        self.relationships = list(relationships)
        self._adjacency: dict[str, list[str]] = {}

        for rel in self.relationships:
            a, b = rel.entity_keys
            self._link(a, b)
            self._link(b, a)

    def _link(self, a: str, b: str):
        neighbors = self._adjacency.setdefault(a, [])
        if b not in neighbors:
            neighbors.append(b)

    def neighbors(self, key: str) -> list[str]:
        return list(self._adjacency.get(key, []))

    def edges_of(self, key: str) -> list[RelationshipBinding]:
        return [rel for rel in self.relationships if rel.touches(key)]

    def edge_between(self, a: str, b: str) -> Optional[RelationshipBinding]:
        """First declared relationship linking the two entities."""
        return next(
            (rel for rel in self.relationships if rel.touches(a) and rel.touches(b)),
            None,
        )

    def reachable(self, root: str) -> set[str]:
        """All entity keys reachable from root, root included."""
        seen = {root}
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for neighbor in self._adjacency.get(current, []):
                if neighbor not in seen:
                    seen.add(neighbor)
                    queue.append(neighbor)
        return seen

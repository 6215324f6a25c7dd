"""
Directed dependency graph of rotation nodes.

Edges point from an upstream node to the node that depends on it. The
topological order is the order in which plan actions are applied.
"""

from collections import deque
from typing import Dict, List, Tuple

from ..enums import NodeKind
from ..exceptions import CyclicDependencyError, ErrorCode, ValidationError


class DependencyGraph:
    """Typed nodes plus directed edges, iterated in insertion order."""

    def __init__(self):
        self._nodes: Dict[str, NodeKind] = {}
        self._edges: Dict[str, List[str]] = {}

    def add_node(self, address: str, kind: NodeKind) -> None:
        existing = self._nodes.get(address)
        if existing is not None and existing != kind:
            raise ValidationError(
                f"Node '{address}' already registered as {existing.value}",
                error_code=ErrorCode.CONFLICT,
                field="address",
                value=address,
            )
        if existing is None:
            self._nodes[address] = kind
            self._edges[address] = []

    def add_edge(self, upstream: str, downstream: str) -> None:
        """Declare that ``downstream`` depends on ``upstream``."""
        for address in (upstream, downstream):
            if address not in self._nodes:
                raise ValidationError(
                    f"Unknown node '{address}'",
                    error_code=ErrorCode.NOT_FOUND,
                    field="address",
                    value=address,
                )
        if downstream not in self._edges[upstream]:
            self._edges[upstream].append(downstream)

    @property
    def nodes(self) -> Dict[str, NodeKind]:
        return dict(self._nodes)

    @property
    def edges(self) -> List[Tuple[str, str]]:
        return [(up, down) for up, downs in self._edges.items() for down in downs]

    def kind(self, address: str) -> NodeKind:
        return self._nodes[address]

    def upstream_of(self, address: str) -> List[str]:
        return [up for up, downs in self._edges.items() if address in downs]

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm; ties are broken by insertion order.

        Raises:
            CyclicDependencyError: Listing the nodes that could not be ordered
        """
        in_degree = {address: 0 for address in self._nodes}
        for downs in self._edges.values():
            for down in downs:
                in_degree[down] += 1

        ready = deque(address for address in self._nodes if in_degree[address] == 0)
        order: List[str] = []
        while ready:
            address = ready.popleft()
            order.append(address)
            for down in self._edges[address]:
                in_degree[down] -= 1
                if in_degree[down] == 0:
                    ready.append(down)

        if len(order) != len(self._nodes):
            remaining = [address for address in self._nodes if address not in order]
            raise CyclicDependencyError(
                f"Dependency cycle among: {', '.join(remaining)}",
                nodes=remaining,
            )
        return order

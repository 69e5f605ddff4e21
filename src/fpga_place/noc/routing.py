"""Traffic flow routing algorithms over a NoC topology."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List

import networkx as nx

from ..errors import ConfigError, PlacementError
from .topology import Link, NocTopology


class NocRoutingAlgorithm(Enum):
    SHORTEST_PATH = "shortest_path"
    XY = "xy"


class NocRouting(ABC):
    """Base class for NoC routing algorithms."""

    @abstractmethod
    def route(self, topology: NocTopology, src_router: int, dst_router: int) -> List[Link]:
        """Route a flow between two routers.

        Args:
            topology: NoC topology
            src_router: Router of the flow source block
            dst_router: Router of the flow destination block

        Returns:
            Ordered list of links (empty if src == dst)
        """
        pass


class ShortestPathRouting(NocRouting):
    """Minimum-hop routing (breadth-first; ties follow router insertion order)."""

    def route(self, topology: NocTopology, src_router: int, dst_router: int) -> List[Link]:
        if src_router == dst_router:
            return []
        try:
            path = nx.shortest_path(topology.graph, src_router, dst_router)
        except nx.NetworkXNoPath as e:
            raise PlacementError(f"No NoC path from router {src_router} to {dst_router}") from e
        return list(zip(path[:-1], path[1:]))


class XYRouting(NocRouting):
    """Dimension-ordered routing on a mesh: all X hops, then all Y hops.

    Deadlock free on a mesh, so its channel dependency graph is acyclic.
    """

    def route(self, topology: NocTopology, src_router: int, dst_router: int) -> List[Link]:
        if src_router == dst_router:
            return []
        by_mesh = {data["mesh"]: r for r, data in topology.graph.nodes(data=True)}
        col, row = topology.graph.nodes[src_router]["mesh"]
        dst_col, dst_row = topology.graph.nodes[dst_router]["mesh"]

        links = []
        current = src_router
        while (col, row) != (dst_col, dst_row):
            if col != dst_col:
                col += 1 if dst_col > col else -1
            else:
                row += 1 if dst_row > row else -1
            nxt = by_mesh.get((col, row))
            if nxt is None or not topology.graph.has_edge(current, nxt):
                raise PlacementError(f"XY routing hit a missing mesh link at {(col, row)}")
            links.append((current, nxt))
            current = nxt
        return links


def create_noc_routing(algorithm: NocRoutingAlgorithm) -> NocRouting:
    if algorithm == NocRoutingAlgorithm.SHORTEST_PATH:
        return ShortestPathRouting()
    if algorithm == NocRoutingAlgorithm.XY:
        return XYRouting()
    raise ConfigError(f"Unknown NoC routing algorithm: {algorithm}")

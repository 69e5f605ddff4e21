"""NoC topology (routers and directed links) and traffic flows."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import networkx as nx

from ..core.grid import Location

Link = Tuple[int, int]  # (source router id, sink router id)


@dataclass(frozen=True)
class TrafficFlow:
    """Traffic between two NoC-attached blocks."""
    flow_id: int
    src_block: int
    dst_block: int
    bandwidth: float
    max_latency: float = float("inf")
    priority: float = 1.0

    def __post_init__(self):
        if self.bandwidth < 0:
            raise ValueError(f"Traffic flow {self.flow_id} bandwidth must be non-negative")
        if self.priority <= 0:
            raise ValueError(f"Traffic flow {self.flow_id} priority must be positive")


class NocTopology:
    """Physical NoC: routers pinned to grid tiles, directed links between them.

    The topology is a networkx DiGraph; router nodes carry `x`, `y`,
    `layer` and an optional `mesh` coordinate, links carry `bandwidth`
    and `latency`.
    """

    def __init__(self, router_latency: float = 1.0e-9):
        self.graph = nx.DiGraph()
        self.router_latency = router_latency
        self._router_at: Dict[Tuple[int, int, int], int] = {}

    def add_router(self, router_id: int, x: int, y: int, layer: int = 0,
                   mesh: Optional[Tuple[int, int]] = None) -> None:
        key = (x, y, layer)
        if key in self._router_at:
            raise ValueError(f"Two routers at tile {key}")
        self.graph.add_node(router_id, x=x, y=y, layer=layer, mesh=mesh)
        self._router_at[key] = router_id

    def add_link(self, src: int, dst: int, bandwidth: float, latency: float = 1.0e-9) -> None:
        if src not in self.graph or dst not in self.graph:
            raise ValueError(f"Link {src}->{dst} references an unknown router")
        if bandwidth <= 0:
            raise ValueError(f"Link {src}->{dst} bandwidth must be positive")
        self.graph.add_edge(src, dst, bandwidth=bandwidth, latency=latency)

    @classmethod
    def mesh(
        cls,
        tiles: List[List[Tuple[int, int]]],
        link_bandwidth: float,
        link_latency: float = 1.0e-9,
        router_latency: float = 1.0e-9,
        layer: int = 0
    ) -> 'NocTopology':
        """2D mesh; `tiles[row][col]` is the grid tile of the router at mesh (col, row)."""
        topology = cls(router_latency=router_latency)
        ids: Dict[Tuple[int, int], int] = {}
        for row, tile_row in enumerate(tiles):
            for col, (x, y) in enumerate(tile_row):
                ids[(col, row)] = len(ids)
                topology.add_router(ids[(col, row)], x, y, layer, mesh=(col, row))
        for (col, row), router_id in ids.items():
            for neighbour in ((col + 1, row), (col, row + 1)):
                if neighbour in ids:
                    topology.add_link(router_id, ids[neighbour], link_bandwidth, link_latency)
                    topology.add_link(ids[neighbour], router_id, link_bandwidth, link_latency)
        return topology

    def router_at(self, loc: Location) -> Optional[int]:
        """Router on the tile of `loc` (sub-tile ignored), or None."""
        return self._router_at.get((loc.x, loc.y, loc.layer))

    def link_bandwidth(self, link: Link) -> float:
        return self.graph.edges[link]["bandwidth"]

    def link_latency(self, link: Link) -> float:
        return self.graph.edges[link]["latency"]

    @property
    def links(self) -> List[Link]:
        return list(self.graph.edges)

    @property
    def routers(self) -> List[int]:
        return list(self.graph.nodes)

    def __repr__(self) -> str:
        return f"NocTopology({self.graph.number_of_nodes()} routers, {self.graph.number_of_edges()} links)"

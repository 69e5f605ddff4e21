"""Setup timing analysis over the block-level timing graph.

Each block contributes an input node and an output node. Combinational
blocks join them with their intrinsic delay; sequential blocks (registers,
IOs) do not, so they end and start timing paths. Connections add
output -> input edges carrying the placement-dependent delay.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional

import networkx as nx

from ..core.netlist import Connection, Netlist
from ..errors import TimingAnalysisError

logger = logging.getLogger(__name__)

DEFAULT_SEQUENTIAL_TYPES = frozenset({"io"})


class TimingAnalyzer(ABC):
    """Timing analysis collaborator used by the placer."""

    @abstractmethod
    def update(self, connection_delays: Mapping[Connection, float]) -> None:
        """Re-run analysis with new connection delays."""
        pass

    @abstractmethod
    def criticality(self, conn: Connection) -> float:
        """Criticality in [0, 1] of a connection from the last analysis."""
        pass

    @abstractmethod
    def critical_path_delay(self) -> float:
        pass

    @abstractmethod
    def setup_worst_negative_slack(self) -> float:
        pass

    @abstractmethod
    def setup_total_negative_slack(self) -> float:
        pass


class GraphTimingAnalyzer(TimingAnalyzer):
    """Static timing analysis with networkx.

    Required time at every path endpoint is the clock period when given,
    otherwise the critical path delay (so the worst path has zero slack).
    Criticality is 1 - slack / max(required time).
    """

    def __init__(
        self,
        netlist: Netlist,
        clock_period: Optional[float] = None,
        block_delays: Optional[Mapping[str, float]] = None,
        sequential_types: Iterable[str] = DEFAULT_SEQUENTIAL_TYPES
    ):
        """Initialize analyzer.

        Args:
            netlist: Design netlist
            clock_period: Target period in seconds (None: critical path delay)
            block_delays: Intrinsic delay per combinational block type
            sequential_types: Block types that start and end timing paths
        """
        self.netlist = netlist
        self.clock_period = clock_period
        self.block_delays = dict(block_delays or {})
        sequential_types = frozenset(sequential_types)

        self.graph = nx.DiGraph()
        for block in netlist.blocks:
            self.graph.add_node(("in", block.block_id))
            self.graph.add_node(("out", block.block_id))
            if not (block.is_sequential or block.block_type in sequential_types):
                self.graph.add_edge(("in", block.block_id), ("out", block.block_id),
                                    delay=self.block_delays.get(block.block_type, 0.0), conns=[])

        self._connections: List[Connection] = netlist.connections()
        for conn in self._connections:
            driver, sink = netlist.connection_blocks(conn)
            u, v = ("out", driver), ("in", sink)
            if self.graph.has_edge(u, v):
                self.graph.edges[u, v]["conns"].append(conn)
            else:
                self.graph.add_edge(u, v, delay=0.0, conns=[conn])

        if not nx.is_directed_acyclic_graph(self.graph):
            cycle = nx.find_cycle(self.graph)
            raise TimingAnalysisError(f"Combinational loop in timing graph: {cycle}")
        self._order = list(nx.topological_sort(self.graph))

        self._conn_delay: Dict[Connection, float] = {conn: 0.0 for conn in self._connections}
        self._criticality: Dict[Connection, float] = {conn: 0.0 for conn in self._connections}
        self._arrival: Dict = {}
        self._required: Dict = {}
        self._cpd = 0.0
        self._wns = 0.0
        self._tns = 0.0

    def update(self, connection_delays: Mapping[Connection, float]) -> None:
        for conn in self._connections:
            self._conn_delay[conn] = connection_delays[conn]
        for u, v, data in self.graph.edges(data=True):
            if data["conns"]:
                data["delay"] = max(self._conn_delay[c] for c in data["conns"])

        arrival = {}
        for node in self._order:
            arrival[node] = max(
                (arrival[p] + self.graph.edges[p, node]["delay"] for p in self.graph.predecessors(node)),
                default=0.0
            )
        endpoints = [n for n in self._order if self.graph.out_degree(n) == 0]
        self._cpd = max((arrival[n] for n in endpoints), default=0.0)
        target = self.clock_period if self.clock_period is not None else self._cpd

        required = {}
        for node in reversed(self._order):
            required[node] = min(
                (required[s] - self.graph.edges[node, s]["delay"] for s in self.graph.successors(node)),
                default=target
            )

        endpoint_slacks = [required[n] - arrival[n] for n in endpoints]
        self._wns = min(0.0, min(endpoint_slacks, default=0.0))
        self._tns = sum(s for s in endpoint_slacks if s < 0)

        scale = max(target, self._cpd)
        for conn in self._connections:
            driver, sink = self.netlist.connection_blocks(conn)
            slack = required[("in", sink)] - arrival[("out", driver)] - self._conn_delay[conn]
            crit = 1.0 - slack / scale if scale > 0 else 0.0
            self._criticality[conn] = min(1.0, max(0.0, crit))

        self._arrival, self._required = arrival, required
        logger.debug(f"Timing analysis: CPD={self._cpd:.3e}s WNS={self._wns:.3e}s TNS={self._tns:.3e}s")

    def criticality(self, conn: Connection) -> float:
        return self._criticality[conn]

    def critical_path_delay(self) -> float:
        return self._cpd

    def setup_worst_negative_slack(self) -> float:
        return self._wns

    def setup_total_negative_slack(self) -> float:
        return self._tns

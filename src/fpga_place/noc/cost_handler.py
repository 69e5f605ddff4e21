"""NoC traffic cost: flow routing, link usage and the four NoC cost terms.

Per flow f routed over links L(f):
    aggregate_bandwidth = priority * bandwidth * |L(f)|
    latency             = priority * (sum link latency + (|L(f)| + 1) * router latency)
    latency_overrun     = priority * max(0, raw latency - max_latency)
Per link l:
    congestion          = max(0, usage(l) - bandwidth(l)) / bandwidth(l)
"""

import logging
from typing import Dict, List, Optional, Sequence

import networkx as nx

from ..core.grid import Location
from ..core.netlist import Netlist
from ..core.placement import BlockLocRegistry, BlocksToBeMoved
from ..cost.costs import CostMethod, NocCostTerms, PlacerCosts, cost_within_tolerance
from ..errors import PlacementError
from .routing import NocRouting
from .topology import Link, NocTopology, TrafficFlow

logger = logging.getLogger(__name__)


class NocCostHandler:
    """Routes traffic flows for the current placement and tracks NoC costs.

    Committed state: `flow_routes`, `flow_costs`, `link_usage`. A proposed
    move only fills the `_proposed_*` buffers until commit_noc_costs().
    """

    def __init__(
        self,
        netlist: Netlist,
        registry: BlockLocRegistry,
        topology: NocTopology,
        flows: Sequence[TrafficFlow],
        routing: NocRouting
    ):
        self.netlist = netlist
        self.registry = registry
        self.topology = topology
        self.flows: Dict[int, TrafficFlow] = {f.flow_id: f for f in flows}
        self.routing = routing

        self.flow_routes: Dict[int, List[Link]] = {}
        self.flow_costs: Dict[int, NocCostTerms] = {}
        self.link_usage: Dict[Link, float] = {link: 0.0 for link in topology.links}

        self._block_flows: Dict[int, List[int]] = {}
        for flow in flows:
            for block_id in {flow.src_block, flow.dst_block}:
                self._block_flows.setdefault(block_id, []).append(flow.flow_id)

        self._proposed_routes: Dict[int, List[Link]] = {}
        self._proposed_costs: Dict[int, NocCostTerms] = {}
        self._proposed_usage: Dict[Link, float] = {}

    def router_of_block(self, block_id: int, loc: Optional[Location] = None) -> int:
        loc = loc if loc is not None else self.registry.loc_of(block_id)
        router = self.topology.router_at(loc)
        if router is None:
            raise PlacementError(f"NoC block {block_id} at {loc} is not on a router tile")
        return router

    def _route_flow(self, flow: TrafficFlow, new_locs: Optional[Dict[int, Location]] = None) -> List[Link]:
        new_locs = new_locs or {}
        src = self.router_of_block(flow.src_block, new_locs.get(flow.src_block))
        dst = self.router_of_block(flow.dst_block, new_locs.get(flow.dst_block))
        return self.routing.route(self.topology, src, dst)

    def _flow_cost(self, flow: TrafficFlow, route: List[Link]) -> NocCostTerms:
        raw_latency = (sum(self.topology.link_latency(link) for link in route)
                       + (len(route) + 1) * self.topology.router_latency)
        return NocCostTerms(
            aggregate_bandwidth=flow.priority * flow.bandwidth * len(route),
            latency=flow.priority * raw_latency,
            latency_overrun=flow.priority * max(0.0, raw_latency - flow.max_latency)
        )

    def _link_congestion(self, link: Link, usage: float) -> float:
        bandwidth = self.topology.link_bandwidth(link)
        return max(0.0, usage - bandwidth) / bandwidth

    def initial_noc_routing(self) -> None:
        """Route every flow for the committed placement and rebuild link usage."""
        self.link_usage = {link: 0.0 for link in self.topology.links}
        for flow_id, flow in self.flows.items():
            route = self._route_flow(flow)
            self.flow_routes[flow_id] = route
            self.flow_costs[flow_id] = self._flow_cost(flow, route)
            for link in route:
                self.link_usage[link] += flow.bandwidth
        self._clear_proposed()

    def comp_noc_costs(self, method: CostMethod = CostMethod.NORMAL) -> NocCostTerms:
        """All four NoC terms.

        NORMAL sums the committed per-flow and per-link state; CHECK reroutes
        every flow from the placement into local buffers and sums those.
        """
        if method == CostMethod.NORMAL:
            total = NocCostTerms()
            for terms in self.flow_costs.values():
                total = total + terms
            total.congestion = sum(self._link_congestion(link, usage) for link, usage in self.link_usage.items())
            return total

        total = NocCostTerms()
        usage = {link: 0.0 for link in self.topology.links}
        for flow in self.flows.values():
            route = self._route_flow(flow)
            total = total + self._flow_cost(flow, route)
            for link in route:
                usage[link] += flow.bandwidth
        total.congestion = sum(self._link_congestion(link, u) for link, u in usage.items())
        return total

    def find_affected_noc_routers_and_update_noc_costs(self, blocks_affected: BlocksToBeMoved) -> NocCostTerms:
        """Reroute flows whose endpoints moved and return the NoC cost delta."""
        self._clear_proposed()
        new_locs = blocks_affected.new_locations()
        affected = set()
        for moved in blocks_affected:
            affected.update(self._block_flows.get(moved.block_id, ()))
        if not affected:
            return NocCostTerms()

        delta = NocCostTerms()
        usage_change: Dict[Link, float] = {}
        for flow_id in sorted(affected):
            flow = self.flows[flow_id]
            route = self._route_flow(flow, new_locs)
            terms = self._flow_cost(flow, route)
            old = self.flow_costs[flow_id]
            delta = delta + NocCostTerms(
                terms.aggregate_bandwidth - old.aggregate_bandwidth,
                terms.latency - old.latency,
                terms.latency_overrun - old.latency_overrun
            )
            for link in self.flow_routes[flow_id]:
                usage_change[link] = usage_change.get(link, 0.0) - flow.bandwidth
            for link in route:
                usage_change[link] = usage_change.get(link, 0.0) + flow.bandwidth
            self._proposed_routes[flow_id] = route
            self._proposed_costs[flow_id] = terms

        for link, change in usage_change.items():
            old_usage = self.link_usage[link]
            new_usage = old_usage + change
            self._proposed_usage[link] = new_usage
            delta.congestion += self._link_congestion(link, new_usage) - self._link_congestion(link, old_usage)
        return delta

    def commit_noc_costs(self) -> None:
        self.flow_routes.update(self._proposed_routes)
        self.flow_costs.update(self._proposed_costs)
        self.link_usage.update(self._proposed_usage)
        self._clear_proposed()

    def revert_noc_traffic_flow_routes(self) -> None:
        self._clear_proposed()

    def _clear_proposed(self) -> None:
        self._proposed_routes.clear()
        self._proposed_costs.clear()
        self._proposed_usage.clear()

    def check_noc_placement_costs(self, costs: PlacerCosts, tolerance: float) -> int:
        """Compare tracked NoC terms against a full reroute.

        Returns:
            Number of terms outside tolerance (each logged at ERROR)
        """
        recomputed = self.comp_noc_costs(CostMethod.CHECK).as_dict()
        tracked = costs.noc_cost_terms.as_dict()
        errors = 0
        for term, value in tracked.items():
            if not cost_within_tolerance(value, recomputed[term], tolerance):
                logger.error(
                    f"noc_{term}_check: {recomputed[term]:g} and noc_{term}: {value:g} "
                    f"differ in check_noc_placement_costs"
                )
                errors += 1
        return errors

    def channel_dependency_graph(self) -> nx.DiGraph:
        """Links as nodes; an edge joins consecutive links of any flow route."""
        cdg = nx.DiGraph()
        cdg.add_nodes_from(self.topology.links)
        for route in self.flow_routes.values():
            cdg.add_edges_from(zip(route[:-1], route[1:]))
        return cdg

    def find_routing_cycle(self) -> Optional[List]:
        """Channel dependency cycle of the committed routes, or None."""
        cdg = self.channel_dependency_graph()
        if nx.is_directed_acyclic_graph(cdg):
            return None
        return [edge[0] for edge in nx.find_cycle(cdg)]

    def noc_routing_has_cycle(self) -> bool:
        return self.find_routing_cycle() is not None

    def __repr__(self) -> str:
        return f"NocCostHandler({len(self.flows)} flows, {self.topology!r})"

"""Criticality-weighted connection delay cost.

timing_cost = sum over connections of criticality^exponent * delay

Delays come from the delay model for the current block locations;
criticalities come from the timing analyzer and are only refreshed by
update_criticalities(), not on every move.
"""

import logging
from typing import Dict, List, Set

from ..core.netlist import Connection, Netlist
from ..core.placement import BlockLocRegistry, BlocksToBeMoved
from ..timing.analyzer import TimingAnalyzer
from ..timing.delay_model import PlaceDelayModel
from .costs import CostMethod

logger = logging.getLogger(__name__)


class TimingCostHandler:
    """Connection delays, criticalities and the timing cost built from them."""

    def __init__(
        self,
        netlist: Netlist,
        registry: BlockLocRegistry,
        delay_model: PlaceDelayModel,
        analyzer: TimingAnalyzer
    ):
        self.netlist = netlist
        self.registry = registry
        self.delay_model = delay_model
        self.analyzer = analyzer
        self.crit_exponent = 1.0

        self.connections: List[Connection] = netlist.connections()
        self.connection_delay: Dict[Connection, float] = {c: 0.0 for c in self.connections}
        self.connection_timing_cost: Dict[Connection, float] = {c: 0.0 for c in self.connections}
        self.criticality: Dict[Connection, float] = {c: 0.0 for c in self.connections}
        self._proposed_delay: Dict[Connection, float] = {}

        # Connections whose delay changes when a block moves.
        self._block_connections: List[List[Connection]] = [[] for _ in netlist.blocks]
        for conn in self.connections:
            driver, sink = netlist.connection_blocks(conn)
            self._block_connections[driver].append(conn)
            self._block_connections[sink].append(conn)

    def _delay_of(self, conn: Connection, new_locs=None) -> float:
        driver, sink = self.netlist.connection_blocks(conn)
        new_locs = new_locs or {}
        from_loc = new_locs.get(driver) or self.registry.loc_of(driver)
        to_loc = new_locs.get(sink) or self.registry.loc_of(sink)
        return self.delay_model.delay(from_loc, to_loc)

    def comp_td_connection_delays(self) -> None:
        """Recompute every connection delay from the committed placement."""
        for conn in self.connections:
            self.connection_delay[conn] = self._delay_of(conn)
        self._proposed_delay.clear()

    def update_criticalities(self, crit_exponent: float) -> float:
        """Re-run timing analysis and rebuild the timing cost from scratch.

        Args:
            crit_exponent: Exponent sharpening criticalities toward critical paths

        Returns:
            New timing cost
        """
        self.crit_exponent = crit_exponent
        self.analyzer.update(self.connection_delay)
        for conn in self.connections:
            self.criticality[conn] = self.analyzer.criticality(conn) ** crit_exponent
        return self.comp_td_costs(CostMethod.NORMAL)

    def comp_td_costs(self, method: CostMethod = CostMethod.NORMAL) -> float:
        """Total timing cost.

        NORMAL recomputes delays and per-connection costs into the handler;
        CHECK recomputes from the placement without storing anything.
        """
        total = 0.0
        for conn in self.connections:
            delay = self._delay_of(conn)
            cost = self.criticality[conn] * delay
            if method == CostMethod.NORMAL:
                self.connection_delay[conn] = delay
                self.connection_timing_cost[conn] = cost
            total += cost
        if method == CostMethod.NORMAL:
            self._proposed_delay.clear()
        return total

    def find_affected_connections_and_update_costs(self, blocks_affected: BlocksToBeMoved) -> float:
        """Proposed delays for connections touching moved blocks.

        Returns:
            Timing cost delta of the move
        """
        self._proposed_delay.clear()
        new_locs = blocks_affected.new_locations()
        affected: Set[Connection] = set()
        for moved in blocks_affected:
            affected.update(self._block_connections[moved.block_id])

        delta = 0.0
        for conn in affected:
            delay = self._delay_of(conn, new_locs)
            self._proposed_delay[conn] = delay
            delta += self.criticality[conn] * delay - self.connection_timing_cost[conn]
        return delta

    def commit_td_cost(self) -> None:
        for conn, delay in self._proposed_delay.items():
            self.connection_delay[conn] = delay
            self.connection_timing_cost[conn] = self.criticality[conn] * delay
        self._proposed_delay.clear()

    def revert_td_cost(self) -> None:
        self._proposed_delay.clear()

    def critical_blocks(self, crit_limit: float) -> List[int]:
        """Moveable blocks on at least one connection above `crit_limit`."""
        blocks = set()
        for conn, crit in self.criticality.items():
            if crit > crit_limit:
                blocks.update(self.netlist.connection_blocks(conn))
        return sorted(b for b in blocks if not self.netlist.get_block(b).is_fixed)

    def block_criticality(self, block_id: int) -> Dict[int, float]:
        """Criticality of each connection partner of a block, keyed by partner block."""
        partners: Dict[int, float] = {}
        for conn in self._block_connections[block_id]:
            driver, sink = self.netlist.connection_blocks(conn)
            other = sink if driver == block_id else driver
            partners[other] = max(partners.get(other, 0.0), self.criticality[conn])
        return partners

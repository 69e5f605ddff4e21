"""Bounding-box (half-perimeter) wirelength cost with incremental updates."""

import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ..core.grid import Location
from ..core.netlist import Netlist
from ..core.placement import BlockLocRegistry, BlocksToBeMoved
from .costs import CostMethod

logger = logging.getLogger(__name__)

# Nets with fewer pins are always recomputed; larger ones are updated from edge counts.
SMALL_NET = 4

# Bounding box layout: (xmin, xmax, ymin, ymax, lmin, lmax)
BoundingBox = Tuple[int, int, int, int, int, int]
EdgeCounts = Tuple[int, int, int, int, int, int]


class NetCostHandler:
    """Per-net bounding boxes and their summed cost.

    Committed state lives in `bb_coords`, `bb_edge_counts` and `net_cost`.
    A proposed move fills the `_proposed` buffer only; it is folded into the
    committed state by update_move_nets() or dropped by reset_move_nets().
    """

    def __init__(self, netlist: Netlist, registry: BlockLocRegistry, cube_bb: Optional[bool] = None):
        self.netlist = netlist
        self.registry = registry
        self.cube_bb = registry.grid.num_layers > 1 if cube_bb is None else cube_bb

        num_nets = len(netlist.nets)
        self.bb_coords = np.zeros((num_nets, 6), dtype=np.int64)
        self.bb_edge_counts = np.zeros((num_nets, 6), dtype=np.int64)
        self.net_cost = np.zeros(num_nets)
        self._placement_nets = netlist.placement_nets()
        self._proposed: Dict[int, Tuple[BoundingBox, EdgeCounts, float]] = {}

    def comp_bb_cost(self, method: CostMethod = CostMethod.NORMAL) -> float:
        """Total bounding-box cost over all placement nets.

        Args:
            method: NORMAL refreshes the cached boxes, CHECK leaves them untouched

        Returns:
            Sum of net costs
        """
        total = 0.0
        for net_id in self._placement_nets:
            bb, counts = self._get_bb_from_scratch(net_id, self.registry.loc_of)
            cost = self._bb_cost(net_id, bb)
            if method == CostMethod.NORMAL:
                self.bb_coords[net_id] = bb
                self.bb_edge_counts[net_id] = counts
                self.net_cost[net_id] = cost
            total += cost
        if method == CostMethod.NORMAL:
            self._proposed.clear()
        return total

    def find_affected_nets_and_update_costs(self, blocks_affected: BlocksToBeMoved) -> float:
        """Proposed bounding boxes for every net touching a moved block.

        Args:
            blocks_affected: Proposed move

        Returns:
            Bounding-box cost delta of the move
        """
        self._proposed.clear()
        new_locs = blocks_affected.new_locations()

        def loc_of(block_id: int) -> Location:
            loc = new_locs.get(block_id)
            return loc if loc is not None else self.registry.loc_of(block_id)

        moves_per_net: Dict[int, List[Tuple[Location, Location]]] = {}
        for moved in blocks_affected:
            for net_id, _ in self.netlist.block_nets(moved.block_id):
                if self.netlist.net_is_ignored_for_placement(net_id):
                    continue
                moves_per_net.setdefault(net_id, []).append((moved.old_loc, moved.new_loc))

        delta = 0.0
        for net_id, pin_moves in moves_per_net.items():
            bb, counts = None, None
            if len(self.netlist.net_blocks(net_id)) >= SMALL_NET:
                bb, counts = self._update_bb(net_id, pin_moves)
            if bb is None:
                bb, counts = self._get_bb_from_scratch(net_id, loc_of)
            cost = self._bb_cost(net_id, bb)
            self._proposed[net_id] = (bb, counts, cost)
            delta += cost - self.net_cost[net_id]
        return delta

    def update_move_nets(self) -> None:
        """Commit the proposed bounding boxes of the last evaluated move."""
        for net_id, (bb, counts, cost) in self._proposed.items():
            self.bb_coords[net_id] = bb
            self.bb_edge_counts[net_id] = counts
            self.net_cost[net_id] = cost
        self._proposed.clear()

    def reset_move_nets(self) -> None:
        """Drop the proposed bounding boxes of a rejected move."""
        self._proposed.clear()

    def get_net_bb(self, net_id: int) -> BoundingBox:
        return tuple(int(v) for v in self.bb_coords[net_id])

    def get_net_cost(self, net_id: int) -> float:
        return float(self.net_cost[net_id])

    def _bb_cost(self, net_id: int, bb: BoundingBox) -> float:
        xmin, xmax, ymin, ymax, lmin, lmax = bb
        span = (xmax - xmin) + (ymax - ymin)
        if self.cube_bb:
            span += lmax - lmin
        return float(span) * self.netlist.nets[net_id].weight

    def _get_bb_from_scratch(self, net_id: int, loc_of: Callable[[int], Location]):
        locs = [loc_of(b) for b in self.netlist.net_blocks(net_id)]
        xs = [loc.x for loc in locs]
        ys = [loc.y for loc in locs]
        ls = [loc.layer for loc in locs]
        bb = (min(xs), max(xs), min(ys), max(ys), min(ls), max(ls))
        counts = (xs.count(bb[0]), xs.count(bb[1]), ys.count(bb[2]),
                  ys.count(bb[3]), ls.count(bb[4]), ls.count(bb[5]))
        return bb, counts

    def _update_bb(self, net_id: int, pin_moves: List[Tuple[Location, Location]]):
        """Edge-count update of a committed box; (None, None) when a full recompute is needed."""
        bb = [int(v) for v in self.bb_coords[net_id]]
        counts = [int(v) for v in self.bb_edge_counts[net_id]]
        for old, new in pin_moves:
            for axis, (o, n) in enumerate(((old.x, new.x), (old.y, new.y), (old.layer, new.layer))):
                lo, hi = 2 * axis, 2 * axis + 1
                result = _update_axis(bb[lo], bb[hi], counts[lo], counts[hi], o, n)
                if result is None:
                    return None, None
                bb[lo], bb[hi], counts[lo], counts[hi] = result
        return tuple(bb), tuple(counts)


def _update_axis(lo: int, hi: int, n_lo: int, n_hi: int, old: int, new: int):
    """Move one pin from `old` to `new` along one axis of a bounding box."""
    if new < old:
        if old == hi:
            if n_hi == 1:
                return None
            n_hi -= 1
        if new < lo:
            lo, n_lo = new, 1
        elif new == lo:
            n_lo += 1
    elif new > old:
        if old == lo:
            if n_lo == 1:
                return None
            n_lo -= 1
        if new > hi:
            hi, n_hi = new, 1
        elif new == hi:
            n_hi += 1
    return lo, hi, n_lo, n_hi

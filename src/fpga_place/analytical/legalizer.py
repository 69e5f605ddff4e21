"""Greedy legalizer for analytical solutions.

Every moveable node takes the nearest free legal site to its rounded
solved position. Candidate sites are visited ring by ring (Chebyshev
distance), ties broken by Manhattan distance, then by staying on the same
layer. Macros go first and largest first, then single blocks whose type
has the fewest legal sites.
"""

import logging
from typing import Optional

import numpy as np

from ..core.grid import Location
from ..core.initial_placement import macro_head_fits
from ..core.placement import BlockLocRegistry
from ..errors import LegalizationError
from .partial_placement import PartialPlacement

logger = logging.getLogger(__name__)


def legalize(p_placement: PartialPlacement, registry: BlockLocRegistry) -> float:
    """Rebuild a legal placement in `registry` from continuous node positions.

    Legalized node coordinates are written back into `p_placement`.

    Args:
        p_placement: Solved partial placement
        registry: Registry holding the previous legal placement

    Returns:
        Total Manhattan displacement between solved and legal positions

    Raises:
        LegalizationError: Some node has no free legal site; `registry` is
            left holding the previous placement
    """
    previous = registry.snapshot()
    registry.clear()
    try:
        return _place_nodes(p_placement, registry, previous)
    except LegalizationError:
        registry.restore(previous)
        raise


def _place_nodes(p_placement: PartialPlacement, registry: BlockLocRegistry, previous) -> float:
    netlist, grid = registry.netlist, registry.grid
    for node_id in range(p_placement.num_moveable_nodes, p_placement.num_nodes):
        for block_id in _node_members(p_placement, node_id):
            registry.place_block(block_id, previous[block_id])

    def priority(node_id: int):
        head = p_placement.node_blocks[node_id]
        macro = netlist.macro_of(head)
        scarcity = len(grid.legal_sites(netlist.get_block(head).block_type))
        return (0 if macro is not None else 1, -(len(macro) if macro else 1), scarcity, node_id)

    displacement = 0.0
    for node_id in sorted(range(p_placement.num_moveable_nodes), key=priority):
        head = p_placement.node_blocks[node_id]
        target_x = p_placement.node_loc_x[node_id]
        target_y = p_placement.node_loc_y[node_id]
        head_loc = _nearest_free_site(p_placement, registry, node_id, target_x, target_y,
                                      previous[head].layer)
        if head_loc is None:
            raise LegalizationError(
                f"No free legal site for node {node_id} ({netlist.get_block(head)}) "
                f"near ({target_x:.2f}, {target_y:.2f})"
            )
        macro = netlist.macro_of(head)
        if macro is None:
            registry.place_block(head, head_loc)
        else:
            for member in macro.members:
                registry.place_block(member.block_id, head_loc + member.offset)

        displacement += abs(head_loc.x - target_x) + abs(head_loc.y - target_y)
        p_placement.node_loc_x[node_id] = head_loc.x
        p_placement.node_loc_y[node_id] = head_loc.y

    logger.debug(f"Legalized {p_placement.num_moveable_nodes} nodes, displacement {displacement:.2f}")
    return displacement


def _node_members(p_placement: PartialPlacement, node_id: int):
    head = p_placement.node_blocks[node_id]
    macro = p_placement.netlist.macro_of(head)
    return [head] if macro is None else [m.block_id for m in macro.members]


def _nearest_free_site(
    p_placement: PartialPlacement,
    registry: BlockLocRegistry,
    node_id: int,
    target_x: float,
    target_y: float,
    preferred_layer: int
) -> Optional[Location]:
    netlist, grid = registry.netlist, registry.grid
    head = p_placement.node_blocks[node_id]
    macro = netlist.macro_of(head)
    sites = grid.legal_sites(netlist.get_block(head).block_type)
    if len(sites) == 0:
        return None

    tx = int(np.clip(np.rint(target_x), 0, grid.width - 1))
    ty = int(np.clip(np.rint(target_y), 0, grid.height - 1))
    dx = np.abs(sites[:, 0] - tx)
    dy = np.abs(sites[:, 1] - ty)
    other_layer = (sites[:, 3] != preferred_layer).astype(np.int64)
    order = np.lexsort((sites[:, 2], sites[:, 1], sites[:, 0], other_layer, dx + dy, np.maximum(dx, dy)))

    for index in order:
        loc = Location.from_row(sites[index])
        if macro is None:
            if registry.is_free(loc):
                return loc
        elif macro_head_fits(registry, macro, loc):
            return loc
    return None

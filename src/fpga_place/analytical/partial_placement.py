"""Net connectivity model for the analytical solver.

Each macro collapses into one node at its head; every other block is a
node. Moveable nodes are numbered first so they index the linear system
directly; fixed nodes follow.
"""

from typing import List, Tuple

import numpy as np

from ..core.netlist import Netlist
from ..core.placement import BlockLocRegistry


class PartialPlacement:
    """Continuous node positions plus the block <-> node mapping."""

    def __init__(self, netlist: Netlist, registry: BlockLocRegistry):
        self.netlist = netlist

        representatives: List[int] = []
        seen_macros = set()
        for block in netlist.blocks:
            macro = netlist.macro_of(block.block_id)
            if macro is None:
                representatives.append(block.block_id)
            elif macro.macro_id not in seen_macros:
                seen_macros.add(macro.macro_id)
                representatives.append(macro.head)

        moveable = [b for b in representatives if not self._node_is_fixed(b)]
        fixed = [b for b in representatives if self._node_is_fixed(b)]
        self.node_blocks: List[int] = moveable + fixed
        self.num_moveable_nodes = len(moveable)

        self.block_to_node = np.empty(len(netlist.blocks), dtype=np.int64)
        for node_id, block_id in enumerate(self.node_blocks):
            macro = netlist.macro_of(block_id)
            if macro is None:
                self.block_to_node[block_id] = node_id
            else:
                for member in macro.members:
                    self.block_to_node[member.block_id] = node_id

        self.node_loc_x = np.zeros(len(self.node_blocks))
        self.node_loc_y = np.zeros(len(self.node_blocks))
        self.update_from_registry(registry)

        self._net_nodes: List[Tuple[int, ...]] = [
            tuple(dict.fromkeys(int(self.block_to_node[b]) for b in netlist.net_blocks(net_id)))
            for net_id in range(len(netlist.nets))
        ]

    def _node_is_fixed(self, block_id: int) -> bool:
        macro = self.netlist.macro_of(block_id)
        if macro is None:
            return self.netlist.get_block(block_id).is_fixed
        return any(self.netlist.get_block(m.block_id).is_fixed for m in macro.members)

    @property
    def num_nodes(self) -> int:
        return len(self.node_blocks)

    def is_moveable_node(self, node_id: int) -> bool:
        return node_id < self.num_moveable_nodes

    def get_node_id_from_blk(self, block_id: int) -> int:
        return int(self.block_to_node[block_id])

    def net_nodes(self, net_id: int) -> Tuple[int, ...]:
        """Distinct nodes on a net."""
        return self._net_nodes[net_id]

    def net_is_ignored_for_placement(self, net_id: int) -> bool:
        """A net is ignored if the netlist ignores it or it collapses onto < 2 nodes."""
        if self.netlist.net_is_ignored_for_placement(net_id):
            return True
        nodes = self._net_nodes[net_id]
        if len(nodes) < 2:
            return True
        return not any(self.is_moveable_node(n) for n in nodes)

    def update_from_registry(self, registry: BlockLocRegistry) -> None:
        """Load node positions from a legal placement."""
        for node_id, block_id in enumerate(self.node_blocks):
            loc = registry.loc_of(block_id)
            self.node_loc_x[node_id] = loc.x
            self.node_loc_y[node_id] = loc.y

    def moveable_positions(self) -> np.ndarray:
        """Float array [num_moveable_nodes, 2]."""
        n = self.num_moveable_nodes
        return np.stack([self.node_loc_x[:n], self.node_loc_y[:n]], axis=1)

    def __repr__(self) -> str:
        return (f"PartialPlacement({self.num_moveable_nodes} moveable, "
                f"{self.num_nodes - self.num_moveable_nodes} fixed nodes)")

"""Block placement state: the per-run location registry and move records."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np

from .grid import DeviceGrid, Location
from .netlist import Netlist, PlacementMacro


@dataclass
class MovedBlock:
    """One block relocated by a proposed move."""
    block_id: int
    old_loc: Location
    new_loc: Location


@dataclass
class BlocksToBeMoved:
    """Blocks affected by one proposed move.

    Filled by a move generator, consumed by the cost handlers and finally
    committed or reverted through BlockLocRegistry.
    """
    moved_blocks: List[MovedBlock] = field(default_factory=list)

    def add(self, block_id: int, old_loc: Location, new_loc: Location) -> bool:
        """Record a relocation. Returns False if the block is already moved."""
        if any(mb.block_id == block_id for mb in self.moved_blocks):
            return False
        self.moved_blocks.append(MovedBlock(block_id, old_loc, new_loc))
        return True

    def clear(self) -> None:
        self.moved_blocks.clear()

    def block_ids(self) -> List[int]:
        return [mb.block_id for mb in self.moved_blocks]

    def new_locations(self) -> Dict[int, Location]:
        return {mb.block_id: mb.new_loc for mb in self.moved_blocks}

    def __len__(self) -> int:
        return len(self.moved_blocks)

    def __iter__(self) -> Iterator[MovedBlock]:
        return iter(self.moved_blocks)

    def __repr__(self) -> str:
        return f"BlocksToBeMoved({len(self.moved_blocks)} blocks)"


class BlockLocRegistry:
    """Block -> location map and its inverse occupancy map.

    One registry is owned by a placement run and handed by reference to the
    components that need location lookups.
    """

    def __init__(self, netlist: Netlist, grid: DeviceGrid):
        self.netlist = netlist
        self.grid = grid
        self._locs: List[Optional[Location]] = [None] * len(netlist.blocks)
        self._occupant: Dict[Location, int] = {}

    def loc_of(self, block_id: int) -> Location:
        """Location of a placed block."""
        loc = self._locs[block_id]
        if loc is None:
            raise KeyError(f"Block {block_id} is not placed")
        return loc

    def is_placed(self, block_id: int) -> bool:
        return self._locs[block_id] is not None

    def block_at(self, loc: Location) -> Optional[int]:
        """Block occupying a site, or None if the site is free."""
        return self._occupant.get(loc)

    def is_free(self, loc: Location) -> bool:
        return loc not in self._occupant

    def place_block(self, block_id: int, loc: Location) -> None:
        """Place an unplaced block on a free legal site."""
        block = self.netlist.get_block(block_id)
        if self._locs[block_id] is not None:
            raise ValueError(f"Block {block_id} is already placed at {self._locs[block_id]}")
        if not self.grid.is_legal(loc, block.block_type):
            raise ValueError(f"{loc} is not a legal site for {block}")
        if loc in self._occupant:
            raise ValueError(f"{loc} is already occupied by block {self._occupant[loc]}")
        self._locs[block_id] = loc
        self._occupant[loc] = block_id

    def unplace_block(self, block_id: int) -> None:
        loc = self._locs[block_id]
        if loc is None:
            return
        del self._occupant[loc]
        self._locs[block_id] = None

    def clear(self) -> None:
        self._locs = [None] * len(self.netlist.blocks)
        self._occupant.clear()

    def apply_move(self, blocks_affected: BlocksToBeMoved) -> None:
        """Commit a proposed move to the location and occupancy maps."""
        for moved in blocks_affected:
            if self._occupant.get(moved.old_loc) == moved.block_id:
                del self._occupant[moved.old_loc]
        for moved in blocks_affected:
            self._locs[moved.block_id] = moved.new_loc
            self._occupant[moved.new_loc] = moved.block_id

    def revert_move(self, blocks_affected: BlocksToBeMoved) -> None:
        """Undo a move previously committed with apply_move."""
        for moved in blocks_affected:
            if self._occupant.get(moved.new_loc) == moved.block_id:
                del self._occupant[moved.new_loc]
        for moved in blocks_affected:
            self._locs[moved.block_id] = moved.old_loc
            self._occupant[moved.old_loc] = moved.block_id

    def snapshot(self) -> List[Optional[Location]]:
        """Copy of all block locations (Locations are immutable)."""
        return list(self._locs)

    def restore(self, locs: Sequence[Optional[Location]]) -> None:
        """Replace the whole placement with a snapshot."""
        if len(locs) != len(self._locs):
            raise ValueError("Snapshot does not match the netlist")
        self._locs = list(locs)
        self._occupant = {loc: block_id for block_id, loc in enumerate(self._locs) if loc is not None}

    def positions(self) -> np.ndarray:
        """Float array [num_blocks, 3] of (x, y, layer); NaN for unplaced blocks."""
        pos = np.full((len(self._locs), 3), np.nan)
        for block_id, loc in enumerate(self._locs):
            if loc is not None:
                pos[block_id] = (loc.x, loc.y, loc.layer)
        return pos

    def macro_is_intact(self, macro: PlacementMacro) -> bool:
        """All members sit at head location + offset."""
        head_loc = self._locs[macro.head]
        if head_loc is None:
            return False
        return all(self._locs[m.block_id] == head_loc + m.offset for m in macro.members)

    def verify(self) -> List[str]:
        """Check placement invariants independent of any cost.

        Returns:
            Human-readable description of every violation (empty if legal)
        """
        problems = []
        for block in self.netlist.blocks:
            loc = self._locs[block.block_id]
            if loc is None:
                problems.append(f"{block} is not placed")
                continue
            if not self.grid.is_legal(loc, block.block_type):
                problems.append(f"{block} is at illegal site {loc}")
            if self._occupant.get(loc) != block.block_id:
                problems.append(
                    f"{block} at {loc} but grid reports block {self._occupant.get(loc)} there"
                )
            if block.is_fixed and loc != block.fixed_loc:
                problems.append(f"Fixed {block} moved from {block.fixed_loc} to {loc}")
        for loc, block_id in self._occupant.items():
            if self._locs[block_id] != loc:
                problems.append(f"Grid lists block {block_id} at {loc} but it is at {self._locs[block_id]}")
        for macro in self.netlist.macros:
            if not self.macro_is_intact(macro):
                problems.append(f"Macro {macro.macro_id} members are not at their offsets")
        return problems

    def __repr__(self) -> str:
        placed = sum(1 for loc in self._locs if loc is not None)
        return f"BlockLocRegistry({placed}/{len(self._locs)} blocks placed)"

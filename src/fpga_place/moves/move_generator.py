"""Move generator interface and the macro-aware move recorder."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..core.grid import Location
from ..core.placement import BlockLocRegistry, BlocksToBeMoved


class MoveOutcome(Enum):
    """VALID moves go on to cost evaluation; ABORT is a normal, non-error rejection."""
    VALID = "valid"
    ABORT = "abort"


class MoveGeneratorKind(Enum):
    UNIFORM = "uniform"
    MEDIAN = "median"
    CENTROID = "centroid"
    WEIGHTED_CENTROID = "weighted_centroid"
    CRITICAL_UNIFORM = "critical_uniform"
    UNIFORM_INTER_LAYER = "uniform_inter_layer"
    STATIC = "static"


class MoveGenerator(ABC):
    """Base class for move generators.

    A generator picks a block and a target location and records the full
    set of relocations (macro members, displaced occupants) into a
    BlocksToBeMoved. It never touches the registry.
    """

    def __init__(self, registry: BlockLocRegistry, rng: np.random.Generator):
        self.registry = registry
        self.rng = rng
        netlist = registry.netlist
        self._moveable: List[int] = [
            b for b in netlist.moveable_blocks() if _macro_is_moveable(registry, b)
        ]

    @abstractmethod
    def propose_move(self, blocks_affected: BlocksToBeMoved, rlim: float) -> MoveOutcome:
        """Propose one move.

        Args:
            blocks_affected: Empty move record to fill
            rlim: Range limit (Chebyshev radius in tiles)

        Returns:
            MoveOutcome.VALID if blocks_affected holds a legal move
        """
        pass

    def pick_random_block(self, candidates: Optional[Sequence[int]] = None) -> Optional[int]:
        """Uniform random moveable block, or None if there is none."""
        candidates = self._moveable if candidates is None else candidates
        if len(candidates) == 0:
            return None
        return int(candidates[self.rng.integers(len(candidates))])

    def random_site_near(
        self,
        block_id: int,
        center_x: int,
        center_y: int,
        rlim: float,
        layer: Optional[int] = None,
        exclude_layer: Optional[int] = None
    ) -> Optional[Location]:
        """Uniform random legal site within `rlim` of a centre, excluding the block's own site."""
        block_type = self.registry.netlist.get_block(block_id).block_type
        sites = self.registry.grid.sites_in_window(
            block_type, center_x, center_y, max(1, int(rlim)), layer=layer, exclude_layer=exclude_layer
        )
        own = self.registry.loc_of(block_id).as_tuple()
        sites = sites[np.any(sites != np.array(own), axis=1)]
        if len(sites) == 0:
            return None
        return Location.from_row(sites[self.rng.integers(len(sites))])

    def move_block_to(self, blocks_affected: BlocksToBeMoved, block_id: int, to_loc: Location) -> MoveOutcome:
        return find_affected_blocks(self.registry, blocks_affected, block_id, to_loc)


def _macro_is_moveable(registry: BlockLocRegistry, block_id: int) -> bool:
    macro = registry.netlist.macro_of(block_id)
    if macro is None:
        return True
    return not any(registry.netlist.get_block(m.block_id).is_fixed for m in macro.members)


def find_affected_blocks(
    registry: BlockLocRegistry,
    blocks_affected: BlocksToBeMoved,
    block_id: int,
    to_loc: Location
) -> MoveOutcome:
    """Record the relocations needed to move `block_id` to `to_loc`.

    A macro member drags its whole macro by the same offset. Blocks sitting
    on target sites are swapped into the vacated sites; fixed blocks and
    members of other macros cannot be displaced.
    """
    macro = registry.netlist.macro_of(block_id)
    if macro is None:
        return _record_single_block_swap(registry, blocks_affected, block_id, to_loc)
    delta = to_loc - registry.loc_of(block_id)
    return _record_macro_move(registry, blocks_affected, [m.block_id for m in macro.members], delta)


def _record_single_block_swap(registry, blocks_affected, block_id, to_loc) -> MoveOutcome:
    netlist, grid = registry.netlist, registry.grid
    from_loc = registry.loc_of(block_id)
    if to_loc == from_loc or not grid.is_legal(to_loc, netlist.get_block(block_id).block_type):
        return MoveOutcome.ABORT

    occupant = registry.block_at(to_loc)
    if occupant is not None:
        other = netlist.get_block(occupant)
        if other.is_fixed or netlist.macro_of(occupant) is not None:
            return MoveOutcome.ABORT
        if not grid.is_legal(from_loc, other.block_type):
            return MoveOutcome.ABORT

    if not blocks_affected.add(block_id, from_loc, to_loc):
        return MoveOutcome.ABORT
    if occupant is not None and not blocks_affected.add(occupant, to_loc, from_loc):
        return MoveOutcome.ABORT
    return MoveOutcome.VALID


def _record_macro_move(registry, blocks_affected, members: List[int], delta: Location) -> MoveOutcome:
    netlist, grid = registry.netlist, registry.grid
    if delta == Location(0, 0, 0, 0):
        return MoveOutcome.ABORT

    old_locs: Dict[int, Location] = {b: registry.loc_of(b) for b in members}
    new_locs: Dict[int, Location] = {b: loc + delta for b, loc in old_locs.items()}
    member_set = set(members)
    targets = set(new_locs.values())
    for b, loc in new_locs.items():
        if not grid.is_legal(loc, netlist.get_block(b).block_type):
            return MoveOutcome.ABORT

    displaced: Dict[int, Location] = {}
    for b in members:
        target = new_locs[b]
        occupant = registry.block_at(target)
        if occupant is None or occupant in member_set:
            continue
        other = netlist.get_block(occupant)
        if other.is_fixed or netlist.macro_of(occupant) is not None:
            return MoveOutcome.ABORT
        # Walk back along -delta through the macro until a vacated site.
        site = target - delta
        while site in targets:
            site = site - delta
        if not grid.is_legal(site, other.block_type):
            return MoveOutcome.ABORT
        displaced[occupant] = site

    for b in members:
        if not blocks_affected.add(b, old_locs[b], new_locs[b]):
            return MoveOutcome.ABORT
    for occupant, site in displaced.items():
        if not blocks_affected.add(occupant, registry.loc_of(occupant), site):
            return MoveOutcome.ABORT
    return MoveOutcome.VALID

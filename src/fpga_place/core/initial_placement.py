"""Random legal initial placement.

Stand-in for the external initial placer: fixed blocks go to their fixed
sites, macros with a fixed member around that member, then the other
macros (largest first), then single blocks ordered by how scarce their
legal sites are.
"""

import logging
from typing import List, Optional

import numpy as np

from ..errors import LegalizationError
from .grid import Location
from .netlist import PlacementMacro
from .placement import BlockLocRegistry

logger = logging.getLogger(__name__)

MAX_RANDOM_MACRO_ATTEMPTS = 64


def initial_placement(registry: BlockLocRegistry, rng: np.random.Generator) -> None:
    """Place every block of the registry's netlist legally.

    Args:
        registry: Empty (or partially placed) registry to fill
        rng: Shared placement random stream
    """
    netlist, grid = registry.netlist, registry.grid

    for block in netlist.blocks:
        if block.is_fixed and netlist.macro_of(block.block_id) is None and not registry.is_placed(block.block_id):
            registry.place_block(block.block_id, block.fixed_loc)

    macros = [m for m in netlist.macros if not registry.is_placed(m.head)]
    for macro in macros:
        head_loc = _fixed_head_loc(netlist, macro)
        if head_loc is not None:
            _place_fixed_macro(registry, macro, head_loc)
    for macro in sorted(macros, key=len, reverse=True):
        if not registry.is_placed(macro.head):
            _place_macro(registry, macro, rng)

    singles = [
        b for b in netlist.blocks
        if not registry.is_placed(b.block_id) and netlist.macro_of(b.block_id) is None
    ]
    singles.sort(key=lambda b: len(grid.legal_sites(b.block_type)))
    for block in singles:
        sites = grid.legal_sites(block.block_type)
        free = [i for i in range(len(sites)) if registry.is_free(Location.from_row(sites[i]))]
        if not free:
            raise LegalizationError(f"No free legal site for {block} in initial placement")
        registry.place_block(block.block_id, Location.from_row(sites[free[rng.integers(len(free))]]))

    logger.info(f"Initial placement done: {registry}")


def macro_head_fits(registry: BlockLocRegistry, macro: PlacementMacro, head_loc: Location,
                    ignore_blocks: Optional[List[int]] = None) -> bool:
    """Check that every member of `macro` fits on a free legal site when the head is at `head_loc`."""
    netlist, grid = registry.netlist, registry.grid
    ignore = set(ignore_blocks or ())
    for member in macro.members:
        loc = head_loc + member.offset
        if not grid.is_legal(loc, netlist.get_block(member.block_id).block_type):
            return False
        occupant = registry.block_at(loc)
        if occupant is not None and occupant not in ignore:
            return False
    return True


def _fixed_head_loc(netlist, macro: PlacementMacro) -> Optional[Location]:
    """Head location pinned by the macro's fixed members, or None if none is fixed.

    Raises:
        LegalizationError: Fixed members disagree on where the head goes
    """
    head_locs = {
        netlist.get_block(m.block_id).fixed_loc - m.offset
        for m in macro.members if netlist.get_block(m.block_id).is_fixed
    }
    if len(head_locs) > 1:
        raise LegalizationError(f"Fixed members of macro {macro.macro_id} are not at their offsets")
    return head_locs.pop() if head_locs else None


def _place_fixed_macro(registry: BlockLocRegistry, macro: PlacementMacro, head_loc: Location) -> None:
    if not macro_head_fits(registry, macro, head_loc):
        raise LegalizationError(f"Macro {macro.macro_id} does not fit around its fixed members at {head_loc}")
    for member in macro.members:
        registry.place_block(member.block_id, head_loc + member.offset)


def _place_macro(registry: BlockLocRegistry, macro: PlacementMacro, rng: np.random.Generator) -> None:
    head_type = registry.netlist.get_block(macro.head).block_type
    sites = registry.grid.legal_sites(head_type)
    if len(sites) == 0:
        raise LegalizationError(f"No legal site for head of macro {macro.macro_id}")

    candidates = [Location.from_row(sites[i]) for i in rng.integers(len(sites), size=MAX_RANDOM_MACRO_ATTEMPTS)]
    candidates.extend(Location.from_row(site) for site in sites)
    for head_loc in candidates:
        if macro_head_fits(registry, macro, head_loc):
            for member in macro.members:
                registry.place_block(member.block_id, head_loc + member.offset)
            return
    raise LegalizationError(f"Macro {macro.macro_id} ({len(macro)} blocks) does not fit the device")

"""Pytest fixtures for testing."""

import numpy as np
import pytest

from fpga_place.config import AnnealConfig, PlacerConfig
from fpga_place.core.grid import DeviceGrid, Location, TileType
from fpga_place.core.initial_placement import initial_placement
from fpga_place.core.netlist import Block, MacroMember, Net, Netlist, PlacementMacro
from fpga_place.core.placement import BlockLocRegistry
from fpga_place.cost.costs import PlaceAlgorithm

CLB = TileType("clb", capacity=1, compatible_blocks=frozenset({"clb"}))


def make_netlist(num_blocks, pin_lists, fixed=None, sequential=(), macros=(), block_type="clb"):
    """Build a netlist of same-type blocks from plain pin lists.

    Args:
        num_blocks: Number of blocks
        pin_lists: One pin tuple per net, driver first
        fixed: block_id -> fixed Location
        sequential: Ids of sequential blocks
        macros: Lists of (block_id, (dx, dy)) per macro
        block_type: Type of every block
    """
    fixed = fixed or {}
    blocks = [
        Block(i, f"b{i}", block_type, fixed.get(i), i in sequential)
        for i in range(num_blocks)
    ]
    nets = [Net(i, tuple(pins), f"n{i}") for i, pins in enumerate(pin_lists)]
    placement_macros = [
        PlacementMacro(m, tuple(MacroMember(b, Location(dx, dy)) for b, (dx, dy) in members))
        for m, members in enumerate(macros)
    ]
    return Netlist(blocks, nets, placement_macros)


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def clb_grid():
    """6x6 single-layer grid of logic tiles."""
    return DeviceGrid.uniform(6, 6, CLB)


@pytest.fixture
def island_grid():
    """8x8 island-style grid: IO ring (capacity 2) around a 6x6 logic core."""
    return DeviceGrid.island_style(8, 8)


@pytest.fixture
def island_netlist():
    """20-block design with IOs, sequential logic, a 2-block macro and a global net.

    Every net drives higher-id blocks only, so the timing graph is acyclic.
    """
    blocks = [
        Block(0, "in0", "io", Location(0, 3), True),
        Block(1, "in1", "io", None, True),
    ]
    for i in range(16):
        block_id = 2 + i
        blocks.append(Block(block_id, f"clb{i}", "clb", None, block_id in (7, 13)))
    blocks.append(Block(18, "out0", "io", Location(7, 4), True))
    blocks.append(Block(19, "out1", "io", None, True))

    pin_lists = [
        (0, 2, 3), (1, 4, 5), (2, 6, 7), (3, 8, 9, 10), (4, 11),
        (5, 12, 13, 14, 15), (6, 16), (7, 17, 8), (8, 18), (9, 10),
        (10, 19), (11, 12), (12, 18), (13, 14), (14, 15, 19),
        (15, 16), (16, 17), (17, 19)
    ]
    nets = [Net(i, pins, f"n{i}") for i, pins in enumerate(pin_lists)]
    nets.append(Net(len(nets), (0, 1, 2, 3), "clk", is_global=True))
    macro = PlacementMacro(0, (MacroMember(16, Location(0, 0)), MacroMember(17, Location(0, 1))))
    return Netlist(blocks, nets, [macro])


@pytest.fixture
def placed_registry(island_grid, island_netlist, rng):
    """Registry with a random legal placement of the island design."""
    registry = BlockLocRegistry(island_netlist, island_grid)
    initial_placement(registry, rng)
    return registry


@pytest.fixture
def fast_config():
    """Short timing-driven anneal for end-to-end tests."""
    return PlacerConfig(
        seed=7,
        place_algorithm=PlaceAlgorithm.CRITICALITY_TIMING,
        anneal=AnnealConfig(inner_num=1.0, max_num_temps=25)
    )


@pytest.fixture
def netlist_factory():
    """The make_netlist helper, for tests that build their own small designs."""
    return make_netlist

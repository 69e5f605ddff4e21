"""Tests for the block location registry and initial placement."""

import numpy as np
import pytest

from fpga_place.core.grid import Location
from fpga_place.core.initial_placement import initial_placement
from fpga_place.core.placement import BlockLocRegistry, BlocksToBeMoved
from fpga_place.errors import LegalizationError


@pytest.fixture
def registry(clb_grid, netlist_factory):
    netlist = netlist_factory(3, [(0, 1, 2)])
    registry = BlockLocRegistry(netlist, clb_grid)
    registry.place_block(0, Location(0, 0))
    registry.place_block(1, Location(1, 1))
    registry.place_block(2, Location(2, 2))
    return registry


class TestBlocksToBeMoved:
    """Tests for move records."""

    def test_duplicate_block_rejected(self):
        moves = BlocksToBeMoved()
        assert moves.add(0, Location(0, 0), Location(1, 0))
        assert not moves.add(0, Location(1, 0), Location(2, 0))
        assert len(moves) == 1
        assert moves.new_locations() == {0: Location(1, 0)}


class TestBlockLocRegistry:
    """Tests for BlockLocRegistry."""

    def test_place_and_lookup(self, registry):
        assert registry.loc_of(1) == Location(1, 1)
        assert registry.block_at(Location(2, 2)) == 2
        assert registry.is_free(Location(3, 3))

    def test_place_errors(self, registry):
        with pytest.raises(ValueError):
            registry.place_block(0, Location(4, 4))       # already placed
        registry.unplace_block(0)
        with pytest.raises(ValueError):
            registry.place_block(0, Location(1, 1))       # occupied
        with pytest.raises(ValueError):
            registry.place_block(0, Location(9, 9))       # out of bounds
        with pytest.raises(KeyError):
            registry.loc_of(0)

    def test_swap_apply_revert_is_exact(self, registry):
        before = registry.snapshot()
        moves = BlocksToBeMoved()
        moves.add(0, Location(0, 0), Location(1, 1))
        moves.add(1, Location(1, 1), Location(0, 0))
        registry.apply_move(moves)
        assert registry.loc_of(0) == Location(1, 1)
        assert registry.block_at(Location(0, 0)) == 1
        assert registry.verify() == []

        registry.revert_move(moves)
        assert registry.snapshot() == before
        assert registry.block_at(Location(1, 1)) == 1
        assert registry.verify() == []

    def test_snapshot_restore(self, registry):
        snapshot = registry.snapshot()
        registry.clear()
        assert not registry.is_placed(0)
        registry.restore(snapshot)
        assert registry.loc_of(2) == Location(2, 2)
        assert registry.block_at(Location(0, 0)) == 0

    def test_positions(self, registry):
        registry.unplace_block(2)
        pos = registry.positions()
        assert pos.shape == (3, 3)
        assert np.allclose(pos[1], [1, 1, 0])
        assert np.all(np.isnan(pos[2]))

    def test_verify_reports_unplaced(self, registry):
        registry.unplace_block(1)
        problems = registry.verify()
        assert len(problems) == 1
        assert "not placed" in problems[0]


class TestInitialPlacement:
    """Tests for random legal initial placement."""

    def test_legal_and_fixed(self, placed_registry, island_netlist):
        assert placed_registry.verify() == []
        assert placed_registry.loc_of(0) == Location(0, 3)
        assert placed_registry.loc_of(18) == Location(7, 4)

    def test_macro_intact(self, placed_registry, island_netlist):
        macro = island_netlist.macros[0]
        assert placed_registry.macro_is_intact(macro)
        head = placed_registry.loc_of(16)
        assert placed_registry.loc_of(17) == head + Location(0, 1)

    def test_deterministic(self, island_grid, island_netlist):
        first = BlockLocRegistry(island_netlist, island_grid)
        second = BlockLocRegistry(island_netlist, island_grid)
        initial_placement(first, np.random.default_rng(5))
        initial_placement(second, np.random.default_rng(5))
        assert first.snapshot() == second.snapshot()

    @pytest.mark.parametrize("fixed_block, fixed_loc", [(0, Location(2, 2)), (1, Location(2, 3))])
    def test_macro_with_fixed_member(self, netlist_factory, fixed_block, fixed_loc):
        from fpga_place.core.grid import DeviceGrid, TileType
        grid = DeviceGrid.uniform(5, 5, TileType("clb", 1, frozenset({"clb"})))
        netlist = netlist_factory(
            4, [(0, 2), (1, 3)], fixed={fixed_block: fixed_loc},
            macros=[[(0, (0, 0)), (1, (0, 1))]]
        )
        registry = BlockLocRegistry(netlist, grid)
        initial_placement(registry, np.random.default_rng(0))
        assert registry.verify() == []
        assert registry.loc_of(0) == Location(2, 2)
        assert registry.loc_of(1) == Location(2, 3)

    def test_fixed_macro_conflicts(self, netlist_factory):
        from fpga_place.core.grid import DeviceGrid, TileType
        grid = DeviceGrid.uniform(5, 5, TileType("clb", 1, frozenset({"clb"})))
        netlist = netlist_factory(
            3, [(0, 1, 2)], fixed={0: Location(2, 2), 1: Location(4, 4)},
            macros=[[(0, (0, 0)), (1, (0, 1))]]
        )
        with pytest.raises(LegalizationError):
            initial_placement(BlockLocRegistry(netlist, grid), np.random.default_rng(0))

        netlist = netlist_factory(
            2, [(0, 1)], fixed={0: Location(2, 4)}, macros=[[(0, (0, 0)), (1, (0, 1))]]
        )
        with pytest.raises(LegalizationError):
            initial_placement(BlockLocRegistry(netlist, grid), np.random.default_rng(0))

    def test_device_too_small(self, netlist_factory):
        from fpga_place.core.grid import DeviceGrid, TileType
        grid = DeviceGrid.uniform(2, 1, TileType("clb", 1, frozenset({"clb"})))
        registry = BlockLocRegistry(netlist_factory(3, [(0, 1, 2)]), grid)
        with pytest.raises(LegalizationError):
            initial_placement(registry, np.random.default_rng(0))

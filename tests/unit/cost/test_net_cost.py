"""Tests for the bounding-box cost handler."""

import numpy as np
import pytest

from fpga_place.core.grid import DeviceGrid, Location, TileType
from fpga_place.core.placement import BlockLocRegistry, BlocksToBeMoved
from fpga_place.cost.costs import CostMethod
from fpga_place.cost.net_cost import NetCostHandler
from fpga_place.moves.move_generator import MoveOutcome
from fpga_place.moves.generators import UniformMoveGenerator


@pytest.fixture
def line_registry(clb_grid, netlist_factory):
    """Five blocks on one net plus a two-pin net."""
    netlist = netlist_factory(6, [(0, 1, 2, 3, 4), (4, 5)])
    registry = BlockLocRegistry(netlist, clb_grid)
    for block_id, loc in enumerate([Location(0, 0), Location(1, 2), Location(4, 1),
                                    Location(2, 5), Location(4, 4), Location(5, 5)]):
        registry.place_block(block_id, loc)
    return registry


class TestNetCostHandler:
    """Tests for NetCostHandler."""

    def test_half_perimeter(self, line_registry):
        handler = NetCostHandler(line_registry.netlist, line_registry)
        assert handler.comp_bb_cost() == pytest.approx((4 + 5) + (1 + 1))
        assert handler.get_net_bb(0) == (0, 4, 0, 5, 0, 0)
        assert handler.get_net_cost(1) == pytest.approx(2.0)

    def test_check_does_not_touch_state(self, line_registry):
        handler = NetCostHandler(line_registry.netlist, line_registry)
        handler.comp_bb_cost()
        line_registry.unplace_block(5)
        line_registry.place_block(5, Location(0, 5))
        check = handler.comp_bb_cost(CostMethod.CHECK)
        assert check == pytest.approx(9 + 4 + 1)
        assert handler.get_net_cost(1) == pytest.approx(2.0)

    def test_net_weight_scales_cost(self, clb_grid):
        from fpga_place.core.netlist import Block, Net, Netlist
        netlist = Netlist([Block(0, "a", "clb"), Block(1, "b", "clb")], [Net(0, (0, 1), weight=2.5)])
        registry = BlockLocRegistry(netlist, clb_grid)
        registry.place_block(0, Location(0, 0))
        registry.place_block(1, Location(2, 1))
        assert NetCostHandler(netlist, registry).comp_bb_cost() == pytest.approx(7.5)

    def test_edge_count_update_matches_scratch(self, line_registry):
        handler = NetCostHandler(line_registry.netlist, line_registry)
        before = handler.comp_bb_cost()
        moves = BlocksToBeMoved()
        # Block 3 is the only pin on the ymax edge, forcing a recompute.
        moves.add(3, Location(2, 5), Location(3, 3))
        delta = handler.find_affected_nets_and_update_costs(moves)
        line_registry.apply_move(moves)
        handler.update_move_nets()
        after = handler.comp_bb_cost(CostMethod.CHECK)
        assert after == pytest.approx(before + delta)
        assert handler.get_net_bb(0) == (0, 4, 0, 4, 0, 0)

    def test_reset_drops_proposal(self, line_registry):
        handler = NetCostHandler(line_registry.netlist, line_registry)
        handler.comp_bb_cost()
        moves = BlocksToBeMoved()
        moves.add(5, Location(5, 5), Location(0, 1))
        assert handler.find_affected_nets_and_update_costs(moves) == pytest.approx(5.0)
        handler.reset_move_nets()
        handler.update_move_nets()
        assert handler.get_net_cost(1) == pytest.approx(2.0)

    def test_cube_bb_counts_layers(self, netlist_factory):
        grid = DeviceGrid.uniform(4, 4, TileType("clb", 1, frozenset({"clb"})), num_layers=2)
        netlist = netlist_factory(2, [(0, 1)])
        registry = BlockLocRegistry(netlist, grid)
        registry.place_block(0, Location(0, 0, 0, 0))
        registry.place_block(1, Location(1, 1, 0, 1))
        assert NetCostHandler(netlist, registry).comp_bb_cost() == pytest.approx(3.0)
        assert NetCostHandler(netlist, registry, cube_bb=False).comp_bb_cost() == pytest.approx(2.0)

    def test_incremental_matches_check(self, placed_registry, island_netlist, rng):
        handler = NetCostHandler(island_netlist, placed_registry)
        tracked = handler.comp_bb_cost()
        generator = UniformMoveGenerator(placed_registry, rng)
        for step in range(300):
            moves = BlocksToBeMoved()
            if generator.propose_move(moves, rlim=3) == MoveOutcome.ABORT:
                continue
            delta = handler.find_affected_nets_and_update_costs(moves)
            if step % 3 == 0:
                handler.reset_move_nets()
                continue
            placed_registry.apply_move(moves)
            handler.update_move_nets()
            tracked += delta
        assert placed_registry.verify() == []
        assert handler.comp_bb_cost(CostMethod.CHECK) == pytest.approx(tracked)
        cached = np.array(handler.net_cost)
        handler.comp_bb_cost(CostMethod.NORMAL)
        assert np.allclose(cached, handler.net_cost)

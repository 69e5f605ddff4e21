"""Tests for move generators and the macro-aware move recorder."""

import numpy as np
import pytest

from fpga_place.core.grid import DeviceGrid, Location, TileType
from fpga_place.core.initial_placement import initial_placement
from fpga_place.core.placement import BlockLocRegistry, BlocksToBeMoved
from fpga_place.cost.timing_cost import TimingCostHandler
from fpga_place.errors import ConfigError
from fpga_place.moves.generators import (
    CentroidMoveGenerator,
    CriticalUniformMoveGenerator,
    MedianMoveGenerator,
    StaticMoveGenerator,
    UniformInterLayerMoveGenerator,
    UniformMoveGenerator,
    WeightedCentroidMoveGenerator,
    create_move_generator,
)
from fpga_place.moves.move_generator import MoveGeneratorKind, MoveOutcome, find_affected_blocks
from fpga_place.timing.analyzer import GraphTimingAnalyzer
from fpga_place.timing.delay_model import ManhattanDelayModel


def _place(netlist, grid, locs):
    registry = BlockLocRegistry(netlist, grid)
    for block_id, loc in locs.items():
        registry.place_block(block_id, loc)
    return registry


def _propose(generator, rlim):
    moves = BlocksToBeMoved()
    return generator.propose_move(moves, rlim), moves


class TestFindAffectedBlocks:
    """Tests for move recording."""

    def test_swap_with_occupant(self, clb_grid, netlist_factory):
        registry = _place(netlist_factory(2, []), clb_grid, {0: Location(0, 0), 1: Location(1, 0)})
        moves = BlocksToBeMoved()
        assert find_affected_blocks(registry, moves, 0, Location(1, 0)) == MoveOutcome.VALID
        assert moves.new_locations() == {0: Location(1, 0), 1: Location(0, 0)}

    def test_fixed_occupant_aborts(self, clb_grid, netlist_factory):
        netlist = netlist_factory(2, [], fixed={1: Location(1, 0)})
        registry = _place(netlist, clb_grid, {0: Location(0, 0), 1: Location(1, 0)})
        moves = BlocksToBeMoved()
        assert find_affected_blocks(registry, moves, 0, Location(1, 0)) == MoveOutcome.ABORT

    def test_same_site_and_illegal_abort(self, clb_grid, netlist_factory):
        registry = _place(netlist_factory(1, []), clb_grid, {0: Location(2, 2)})
        assert find_affected_blocks(registry, BlocksToBeMoved(), 0, Location(2, 2)) == MoveOutcome.ABORT
        assert find_affected_blocks(registry, BlocksToBeMoved(), 0, Location(6, 2)) == MoveOutcome.ABORT

    def test_macro_shift_walks_occupant_back(self, clb_grid, netlist_factory):
        netlist = netlist_factory(4, [], macros=[[(0, (0, 0)), (1, (0, 1)), (2, (0, 2))]])
        registry = _place(netlist, clb_grid, {
            0: Location(1, 1), 1: Location(1, 2), 2: Location(1, 3), 3: Location(1, 4)
        })
        moves = BlocksToBeMoved()
        # Dragging the middle member up one row drags the whole column.
        assert find_affected_blocks(registry, moves, 1, Location(1, 3)) == MoveOutcome.VALID
        new = moves.new_locations()
        assert [new[b] for b in (0, 1, 2)] == [Location(1, 2), Location(1, 3), Location(1, 4)]
        assert new[3] == Location(1, 1)
        registry.apply_move(moves)
        assert registry.verify() == []
        assert registry.macro_is_intact(netlist.macros[0])

    def test_macro_out_of_bounds_aborts(self, clb_grid, netlist_factory):
        netlist = netlist_factory(2, [], macros=[[(0, (0, 0)), (1, (0, 1))]])
        registry = _place(netlist, clb_grid, {0: Location(2, 3), 1: Location(2, 4)})
        assert find_affected_blocks(registry, BlocksToBeMoved(), 0, Location(2, 5)) == MoveOutcome.ABORT

    def test_macro_cannot_displace_other_macro(self, clb_grid, netlist_factory):
        netlist = netlist_factory(
            4, [], macros=[[(0, (0, 0)), (1, (0, 1))], [(2, (0, 0)), (3, (0, 1))]]
        )
        registry = _place(netlist, clb_grid, {
            0: Location(0, 0), 1: Location(0, 1), 2: Location(1, 0), 3: Location(1, 1)
        })
        assert find_affected_blocks(registry, BlocksToBeMoved(), 0, Location(1, 0)) == MoveOutcome.ABORT
        assert find_affected_blocks(registry, BlocksToBeMoved(), 3, Location(0, 2)) == MoveOutcome.ABORT


class TestUniformMoves:
    """Tests for uniform move generators."""

    def test_targets_legal_and_in_range(self, placed_registry):
        generator = UniformMoveGenerator(placed_registry, np.random.default_rng(3))
        valid = 0
        for _ in range(200):
            outcome, moves = _propose(generator, rlim=2)
            if outcome == MoveOutcome.ABORT:
                continue
            valid += 1
            for move in moves:
                block = placed_registry.netlist.get_block(move.block_id)
                assert not block.is_fixed
                assert placed_registry.grid.is_legal(move.new_loc, block.block_type)
            first = next(iter(moves))
            assert max(abs(first.new_loc.x - first.old_loc.x), abs(first.new_loc.y - first.old_loc.y)) <= 2
            placed_registry.apply_move(moves)
            assert placed_registry.verify() == []
            assert placed_registry.macro_is_intact(placed_registry.netlist.macros[0])
        assert valid > 50

    def test_no_moveable_blocks(self, clb_grid, netlist_factory):
        netlist = netlist_factory(1, [], fixed={0: Location(0, 0)})
        registry = _place(netlist, clb_grid, {0: Location(0, 0)})
        outcome, moves = _propose(UniformMoveGenerator(registry, np.random.default_rng(0)), rlim=3)
        assert outcome == MoveOutcome.ABORT
        assert len(moves) == 0

    def test_inter_layer(self, netlist_factory):
        grid = DeviceGrid.uniform(4, 4, TileType("clb", 1, frozenset({"clb"})), num_layers=2)
        netlist = netlist_factory(3, [(0, 1, 2)])
        registry = BlockLocRegistry(netlist, grid)
        initial_placement(registry, np.random.default_rng(1))
        generator = UniformInterLayerMoveGenerator(registry, np.random.default_rng(2))
        for _ in range(20):
            outcome, moves = _propose(generator, rlim=1)
            assert outcome == MoveOutcome.VALID
            first = next(iter(moves))
            assert first.new_loc.layer != first.old_loc.layer
            registry.apply_move(moves)

    def test_inter_layer_single_die(self, placed_registry):
        generator = UniformInterLayerMoveGenerator(placed_registry, np.random.default_rng(0))
        assert _propose(generator, rlim=3)[0] == MoveOutcome.ABORT


class TestDirectedMoves:
    """Tests for centroid and median move generators."""

    @pytest.fixture
    def star_registry(self, netlist_factory):
        grid = DeviceGrid.uniform(9, 9, TileType("clb", 1, frozenset({"clb"})))
        fixed = {1: Location(2, 8), 2: Location(8, 2), 3: Location(8, 8)}
        netlist = netlist_factory(4, [(0, 1, 2, 3)], fixed=fixed)
        return _place(netlist, grid, {0: Location(0, 0), **fixed})

    def test_centroid_moves_toward_sinks(self, star_registry):
        generator = CentroidMoveGenerator(star_registry, np.random.default_rng(4))
        assert generator._target_center(0) == (6, 6)
        outcome, moves = _propose(generator, rlim=1)
        assert outcome == MoveOutcome.VALID
        new = moves.new_locations()[0]
        assert max(abs(new.x - 6), abs(new.y - 6)) <= 1

    def test_sink_follows_driver(self, clb_grid, netlist_factory):
        netlist = netlist_factory(3, [(0, 1), (2, 1)], fixed={0: Location(0, 0), 2: Location(0, 4)})
        registry = _place(netlist, clb_grid, {0: Location(0, 0), 1: Location(5, 5), 2: Location(0, 4)})
        generator = CentroidMoveGenerator(registry, np.random.default_rng(0))
        assert generator._target_center(1) == (0, 2)

    def test_median(self, star_registry):
        generator = MedianMoveGenerator(star_registry, np.random.default_rng(4))
        # Box of the other blocks: x in [2, 8], y in [2, 8]
        assert generator._target_center(0) == (5, 5)
        outcome, moves = _propose(generator, rlim=1)
        assert outcome == MoveOutcome.VALID

    def test_unconnected_block_falls_back(self, clb_grid, netlist_factory):
        registry = _place(netlist_factory(1, []), clb_grid, {0: Location(3, 3)})
        generator = MedianMoveGenerator(registry, np.random.default_rng(0))
        assert generator._target_center(0) is None
        outcome, moves = _propose(generator, rlim=1)
        assert outcome == MoveOutcome.VALID
        new = moves.new_locations()[0]
        assert max(abs(new.x - 3), abs(new.y - 3)) <= 1


def _timing_handler(registry):
    netlist = registry.netlist
    handler = TimingCostHandler(netlist, registry, ManhattanDelayModel(), GraphTimingAnalyzer(netlist))
    handler.comp_td_connection_delays()
    handler.update_criticalities(1.0)
    return handler


class TestTimingMoves:
    """Tests for criticality-aware move generators."""

    def test_weighted_centroid_partners(self, placed_registry):
        handler = _timing_handler(placed_registry)
        generator = WeightedCentroidMoveGenerator(placed_registry, np.random.default_rng(0), handler)
        partners = dict(generator._partners(3))
        assert set(partners) == {0, 8, 9, 10}
        outcome, _ = _propose(generator, rlim=3)
        assert outcome in (MoveOutcome.VALID, MoveOutcome.ABORT)

    def test_critical_uniform_picks_critical_blocks(self, placed_registry):
        handler = _timing_handler(placed_registry)
        generator = CriticalUniformMoveGenerator(placed_registry, np.random.default_rng(0), handler, crit_limit=0.5)
        critical = set(handler.critical_blocks(0.5))
        assert critical
        for _ in range(30):
            outcome, moves = _propose(generator, rlim=3)
            if outcome == MoveOutcome.VALID:
                assert next(iter(moves)).block_id in critical

    def test_nothing_critical_aborts(self, placed_registry):
        handler = _timing_handler(placed_registry)
        generator = CriticalUniformMoveGenerator(placed_registry, np.random.default_rng(0), handler, crit_limit=1.0)
        assert _propose(generator, rlim=3)[0] == MoveOutcome.ABORT


class TestStaticMoveGenerator:
    """Tests for StaticMoveGenerator and the factory."""

    def test_mix(self, placed_registry):
        rng = np.random.default_rng(9)
        generator = create_move_generator(
            MoveGeneratorKind.STATIC, placed_registry, rng,
            probabilities={MoveGeneratorKind.UNIFORM: 3, MoveGeneratorKind.MEDIAN: 1,
                           MoveGeneratorKind.CENTROID: 0}
        )
        assert isinstance(generator, StaticMoveGenerator)
        assert np.allclose(generator.probabilities, [0.75, 0.25])
        for _ in range(400):
            _propose(generator, rlim=2)
        counts = generator.num_proposed
        assert MoveGeneratorKind.CENTROID not in counts
        assert sum(counts.values()) == 400
        assert 230 < counts[MoveGeneratorKind.UNIFORM] < 370

    def test_factory_errors(self, placed_registry, rng):
        with pytest.raises(ConfigError):
            create_move_generator(MoveGeneratorKind.CRITICAL_UNIFORM, placed_registry, rng)
        with pytest.raises(ConfigError):
            create_move_generator(MoveGeneratorKind.STATIC, placed_registry, rng)
        with pytest.raises(ConfigError):
            StaticMoveGenerator(placed_registry, rng, {}, {MoveGeneratorKind.UNIFORM: 0.0})

    def test_factory_kinds(self, placed_registry, rng):
        handler = _timing_handler(placed_registry)
        assert isinstance(create_move_generator(MoveGeneratorKind.UNIFORM, placed_registry, rng), UniformMoveGenerator)
        assert isinstance(
            create_move_generator(MoveGeneratorKind.WEIGHTED_CENTROID, placed_registry, rng, handler),
            WeightedCentroidMoveGenerator
        )

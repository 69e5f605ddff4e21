"""Tests for the simulated annealer."""

import numpy as np
import pytest

from fpga_place.anneal.annealer import AnnealerPhase, MoveResult, MoveStats, PlacementAnnealer
from fpga_place.anneal.checkpoint import PlacementCheckpoint
from fpga_place.config import AnnealConfig
from fpga_place.cost.costs import CostMethod, PlaceAlgorithm, PlacerCosts
from fpga_place.cost.net_cost import NetCostHandler
from fpga_place.cost.timing_cost import TimingCostHandler
from fpga_place.errors import CostDriftError
from fpga_place.moves.generators import UniformMoveGenerator
from fpga_place.moves.move_generator import MoveGenerator, MoveOutcome
from fpga_place.timing.analyzer import GraphTimingAnalyzer
from fpga_place.timing.delay_model import ManhattanDelayModel


class ImprovingMoveGenerator(MoveGenerator):
    """Uniform moves, filtered down to the ones that shorten total wirelength."""

    def __init__(self, registry, rng):
        super().__init__(registry, rng)
        self.inner = UniformMoveGenerator(registry, rng)
        self.probe = NetCostHandler(registry.netlist, registry)

    def propose_move(self, blocks_affected, rlim):
        before = self.probe.comp_bb_cost(CostMethod.CHECK)
        if self.inner.propose_move(blocks_affected, rlim) == MoveOutcome.ABORT:
            return MoveOutcome.ABORT
        self.registry.apply_move(blocks_affected)
        after = self.probe.comp_bb_cost(CostMethod.CHECK)
        self.registry.revert_move(blocks_affected)
        if after < before:
            return MoveOutcome.VALID
        blocks_affected.clear()
        return MoveOutcome.ABORT


def make_annealer(registry, config, rng, generator=None, timing=False, checkpoint=None):
    netlist = registry.netlist
    net_cost = NetCostHandler(netlist, registry)
    costs = PlacerCosts(
        place_algorithm=PlaceAlgorithm.CRITICALITY_TIMING if timing else PlaceAlgorithm.BOUNDING_BOX
    )
    costs.bb_cost = net_cost.comp_bb_cost()
    timing_cost = None
    if timing:
        timing_cost = TimingCostHandler(netlist, registry, ManhattanDelayModel(), GraphTimingAnalyzer(netlist))
        timing_cost.comp_td_connection_delays()
        costs.timing_cost = timing_cost.update_criticalities(config.td_place_exp_first)
    costs.update_norm_factors()
    costs.cost = costs.get_total_cost()
    generator = generator or UniformMoveGenerator(registry, rng)
    return PlacementAnnealer(config, registry, costs, net_cost, generator, rng,
                             timing_cost_handler=timing_cost, checkpoint=checkpoint)


class TestMoveStats:
    def test_counts_and_std_dev(self):
        stats = MoveStats()
        for result, cost in [(MoveResult.ACCEPTED, 1.0), (MoveResult.ACCEPTED, 3.0),
                             (MoveResult.REJECTED, 9.0), (MoveResult.ABORTED, 9.0)]:
            stats.record(result, cost)
        assert stats.success_rate == pytest.approx(0.5)
        assert stats.std_dev == pytest.approx(np.std([1.0, 3.0], ddof=1))
        total = MoveStats()
        total.merge(stats)
        total.merge(stats)
        assert (total.num_moves, total.num_accepted, total.num_aborted) == (8, 4, 2)


class TestPlacementAnnealer:
    """Tests for PlacementAnnealer."""

    def test_move_lim_and_rlim_max(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(inner_num=0.5), rng)
        assert annealer.move_lim == int(0.5 * 20 ** (4.0 / 3.0))
        assert annealer.rlim_max == 7.0

    def test_assess_swap(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(), rng)
        assert annealer.assess_swap(-1.0, 0.0)
        assert annealer.assess_swap(0.0, 0.0)
        assert not annealer.assess_swap(1e-12, 0.0)
        accepted = sum(annealer.assess_swap(1.0, 1.0) for _ in range(2000))
        assert 0.3 < accepted / 2000 < 0.44

    def test_starting_t_leaves_placement(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(), rng)
        before = placed_registry.snapshot()
        bb = annealer.costs.bb_cost
        t = annealer.starting_t()
        assert t > 0
        assert placed_registry.snapshot() == before
        assert annealer.costs.bb_cost == bb
        assert annealer.net_cost_handler.comp_bb_cost(CostMethod.CHECK) == pytest.approx(bb)

    def test_initial_temperature_override(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(initial_temperature=3.5), rng)
        assert annealer.starting_t() == 3.5

    def test_quench_never_accepts_uphill(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(), rng)
        for _ in range(300):
            before = annealer.costs.cost
            result = annealer.try_swap(0.0, 3.0)
            if result == MoveResult.ACCEPTED:
                assert annealer.costs.cost <= before + 1e-12
            else:
                assert annealer.costs.cost == before
        annealer.recompute_costs_from_scratch()

    def test_improving_moves_are_monotone(self, placed_registry, rng):
        config = AnnealConfig(inner_num=0.3, max_num_temps=6)
        generator = ImprovingMoveGenerator(placed_registry, rng)
        annealer = make_annealer(placed_registry, config, rng, generator=generator)
        initial_cost = annealer.costs.cost
        accepted_costs = [initial_cost]
        try_swap = annealer.try_swap

        def recording_try_swap(t, rlim):
            result = try_swap(t, rlim)
            if result == MoveResult.ACCEPTED:
                accepted_costs.append(annealer.costs.cost)
            return result

        annealer.try_swap = recording_try_swap
        result = annealer.run()
        assert len(accepted_costs) > 1
        assert all(b <= a * (1 + 1e-9) for a, b in zip(accepted_costs, accepted_costs[1:]))
        assert annealer.costs.cost <= initial_cost
        assert result.total.num_rejected == 0

    def test_norm_factor_refresh_is_opt_in(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(), rng)
        bb_norm = annealer.costs.bb_cost_norm
        annealer.costs.bb_cost *= 0.5
        annealer.update_timing(1.0)
        assert annealer.costs.bb_cost_norm == bb_norm

        annealer.config.update_norm_factors = True
        annealer.update_timing(1.0)
        assert annealer.costs.bb_cost_norm == pytest.approx(1.0 / annealer.costs.bb_cost)

    def test_drift_raises(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(incremental_cost_tolerance=0.01), rng)
        annealer.costs.bb_cost *= 1.5
        with pytest.raises(CostDriftError) as excinfo:
            annealer.recompute_costs_from_scratch()
        assert excinfo.value.term == "bb_cost"

    def test_small_drift_is_resynced(self, placed_registry, rng):
        annealer = make_annealer(placed_registry, AnnealConfig(incremental_cost_tolerance=0.01), rng)
        exact = annealer.costs.bb_cost
        annealer.costs.bb_cost = exact * (1 + 1e-9)
        annealer.recompute_costs_from_scratch()
        assert annealer.costs.bb_cost == exact

    def test_bb_run(self, placed_registry, rng):
        config = AnnealConfig(inner_num=1.0, max_num_temps=30)
        annealer = make_annealer(placed_registry, config, rng)
        initial_bb = annealer.costs.bb_cost
        result = annealer.run()
        assert annealer.phase == AnnealerPhase.TERMINATED
        assert placed_registry.verify() == []
        assert placed_registry.macro_is_intact(placed_registry.netlist.macros[0])
        assert result.num_temps == len(result.history) - 1
        assert result.num_temps <= 30
        assert annealer.costs.bb_cost == pytest.approx(
            annealer.net_cost_handler.comp_bb_cost(CostMethod.CHECK)
        )
        assert annealer.costs.bb_cost < initial_bb
        temperatures = [row.temperature for row in result.history]
        assert temperatures[-1] == 0.0
        assert all(b < a for a, b in zip(temperatures[:-1], temperatures[1:-1]))

    def test_timing_run_takes_checkpoint(self, placed_registry, rng):
        config = AnnealConfig(inner_num=1.0, max_num_temps=20, initial_temperature=1e-3)
        checkpoint = PlacementCheckpoint()
        annealer = make_annealer(placed_registry, config, rng, timing=True, checkpoint=checkpoint)
        result = annealer.run()
        assert annealer.timing_driven
        assert checkpoint.valid
        assert all(row.cpd is not None for row in result.history)
        assert annealer.costs.timing_cost == pytest.approx(
            annealer.timing_cost_handler.comp_td_costs(CostMethod.CHECK)
        )
        exponents = [row.crit_exponent for row in result.history]
        assert exponents[0] == pytest.approx(config.td_place_exp_first)
        assert max(exponents) <= config.td_place_exp_last

    def test_bad_generator_drifts(self, placed_registry, rng):
        class LyingMoveGenerator(UniformMoveGenerator):
            """Corrupts the cached per-net costs on every proposal."""

            def propose_move(self, blocks_affected, rlim):
                outcome = super().propose_move(blocks_affected, rlim)
                if outcome == MoveOutcome.VALID:
                    annealer.net_cost_handler.net_cost[:] += 1.0
                return outcome

        config = AnnealConfig(inner_num=0.2, max_num_temps=3, initial_temperature=1e6)
        annealer = make_annealer(placed_registry, config, rng,
                                 generator=LyingMoveGenerator(placed_registry, rng))
        with pytest.raises(CostDriftError):
            annealer.run()

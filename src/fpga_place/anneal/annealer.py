"""Simulated annealing refinement of a legal placement.

Each temperature runs move_lim moves:

    propose -> bb / timing / NoC deltas -> Metropolis test -> commit or revert

after which the adaptive schedule lowers the temperature and resizes the
range limit. Once the exit criterion holds, a quench at t = 0 accepts only
improving moves.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from ..config import AnnealConfig
from ..core.placement import BlockLocRegistry, BlocksToBeMoved
from ..cost.costs import CostMethod, NocCostTerms, PlacerCosts, cost_within_tolerance
from ..cost.net_cost import NetCostHandler
from ..cost.timing_cost import TimingCostHandler
from ..errors import CostDriftError
from ..moves.move_generator import MoveGenerator, MoveOutcome
from ..noc.cost_handler import NocCostHandler
from .checkpoint import PlacementCheckpoint
from .schedule import AdaptiveSchedule, AnnealingSchedule, AnnealingState

logger = logging.getLogger(__name__)

# Checkpoints are only taken once the range limit has shrunk below this share of rlim_max.
CHECKPOINT_RLIM_FRACTION = 0.75


class AnnealerPhase(Enum):
    INITIALIZING = "initializing"
    ANNEALING = "annealing"
    QUENCHING = "quenching"
    TERMINATED = "terminated"


class MoveResult(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ABORTED = "aborted"


@dataclass
class MoveStats:
    """Move counters for one temperature (or the whole run)."""
    num_moves: int = 0
    num_accepted: int = 0
    num_rejected: int = 0
    num_aborted: int = 0
    sum_of_costs: float = 0.0
    sum_of_squares: float = 0.0

    def record(self, result: MoveResult, cost: float) -> None:
        self.num_moves += 1
        if result == MoveResult.ACCEPTED:
            self.num_accepted += 1
            self.sum_of_costs += cost
            self.sum_of_squares += cost * cost
        elif result == MoveResult.REJECTED:
            self.num_rejected += 1
        else:
            self.num_aborted += 1

    @property
    def success_rate(self) -> float:
        return self.num_accepted / self.num_moves if self.num_moves else 0.0

    @property
    def std_dev(self) -> float:
        """Standard deviation of the cost after each accepted move."""
        n = self.num_accepted
        if n < 2:
            return 0.0
        mean = self.sum_of_costs / n
        return math.sqrt(max(0.0, (self.sum_of_squares - n * mean * mean) / (n - 1)))

    def merge(self, other: 'MoveStats') -> None:
        self.num_moves += other.num_moves
        self.num_accepted += other.num_accepted
        self.num_rejected += other.num_rejected
        self.num_aborted += other.num_aborted
        self.sum_of_costs += other.sum_of_costs
        self.sum_of_squares += other.sum_of_squares


@dataclass
class TemperatureStats:
    """One row of the annealing history."""
    temperature: float
    cost: float
    bb_cost: float
    timing_cost: float
    success_rate: float
    std_dev: float
    rlim: float
    crit_exponent: float
    num_moves: int
    num_aborted: int
    cpd: Optional[float] = None

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class AnnealResult:
    """Summary of an annealer run."""
    history: List[TemperatureStats] = field(default_factory=list)
    total: MoveStats = field(default_factory=MoveStats)
    num_temps: int = 0
    initial_temperature: float = 0.0


class PlacementAnnealer:
    """Runs the annealing and quench phases over an initialized placement.

    The cost handlers must already hold NORMAL-mode state for the current
    placement and `costs` must carry matching totals and norm factors.
    """

    def __init__(
        self,
        config: AnnealConfig,
        registry: BlockLocRegistry,
        costs: PlacerCosts,
        net_cost_handler: NetCostHandler,
        move_generator: MoveGenerator,
        rng: np.random.Generator,
        timing_cost_handler: Optional[TimingCostHandler] = None,
        noc_cost_handler: Optional[NocCostHandler] = None,
        schedule: Optional[AnnealingSchedule] = None,
        checkpoint: Optional[PlacementCheckpoint] = None
    ):
        self.config = config
        self.registry = registry
        self.costs = costs
        self.net_cost_handler = net_cost_handler
        self.move_generator = move_generator
        self.rng = rng
        self.timing_cost_handler = timing_cost_handler
        self.noc_cost_handler = noc_cost_handler
        self.schedule = schedule or AdaptiveSchedule(
            exit_t_factor=config.exit_t_factor,
            max_num_temps=config.max_num_temps,
            td_place_exp_first=config.td_place_exp_first,
            td_place_exp_last=config.td_place_exp_last
        )
        self.checkpoint = checkpoint

        self.phase = AnnealerPhase.INITIALIZING
        self.blocks_affected = BlocksToBeMoved()
        self.num_blocks = len(registry.netlist.blocks)
        self.num_nets = max(1, len(registry.netlist.placement_nets()))
        self.move_lim = max(1, int(config.inner_num * self.num_blocks ** (4.0 / 3.0)))

        grid = registry.grid
        self.rlim_max = config.rlim_max or float(max(1, max(grid.width, grid.height) - 1))
        self.state: Optional[AnnealingState] = None

    @property
    def timing_driven(self) -> bool:
        return self.timing_cost_handler is not None and self.costs.place_algorithm.is_timing_driven()

    def evaluate_move(self, blocks_affected: BlocksToBeMoved):
        """Cost deltas of a proposed move; handler proposal buffers are left filled."""
        bb_delta = self.net_cost_handler.find_affected_nets_and_update_costs(blocks_affected)
        timing_delta = 0.0
        if self.timing_driven:
            timing_delta = self.timing_cost_handler.find_affected_connections_and_update_costs(blocks_affected)
        noc_delta = None
        if self.noc_cost_handler is not None:
            noc_delta = self.noc_cost_handler.find_affected_noc_routers_and_update_noc_costs(blocks_affected)
        delta_c = self.costs.weighted_delta(bb_delta, timing_delta, noc_delta)
        return delta_c, bb_delta, timing_delta, noc_delta

    def assess_swap(self, delta_c: float, t: float) -> bool:
        """Metropolis acceptance test."""
        if delta_c <= 0:
            return True
        if t <= 0:
            return False
        return self.rng.random() < math.exp(-delta_c / t)

    def try_swap(self, t: float, rlim: float) -> MoveResult:
        """Propose, evaluate and accept or reject one move."""
        blocks_affected = self.blocks_affected
        blocks_affected.clear()
        if self.move_generator.propose_move(blocks_affected, rlim) == MoveOutcome.ABORT:
            return MoveResult.ABORTED

        delta_c, bb_delta, timing_delta, noc_delta = self.evaluate_move(blocks_affected)
        if self.assess_swap(delta_c, t):
            self._commit(blocks_affected, delta_c, bb_delta, timing_delta, noc_delta)
            return MoveResult.ACCEPTED
        self._revert()
        return MoveResult.REJECTED

    def _commit(self, blocks_affected, delta_c, bb_delta, timing_delta, noc_delta: Optional[NocCostTerms]):
        self.registry.apply_move(blocks_affected)
        self.net_cost_handler.update_move_nets()
        self.costs.bb_cost += bb_delta
        if self.timing_driven:
            self.timing_cost_handler.commit_td_cost()
            self.costs.timing_cost += timing_delta
        if self.noc_cost_handler is not None:
            self.noc_cost_handler.commit_noc_costs()
            self.costs.noc_cost_terms = self.costs.noc_cost_terms + noc_delta
        self.costs.cost += delta_c

    def _revert(self):
        self.net_cost_handler.reset_move_nets()
        if self.timing_driven:
            self.timing_cost_handler.revert_td_cost()
        if self.noc_cost_handler is not None:
            self.noc_cost_handler.revert_noc_traffic_flow_routes()

    def starting_t(self) -> float:
        """init_t_scale * std(delta cost) over trial moves that are never committed."""
        if self.config.initial_temperature is not None:
            return self.config.initial_temperature
        deltas = []
        rlim = self.rlim_max
        for _ in range(self.num_blocks):
            self.blocks_affected.clear()
            if self.move_generator.propose_move(self.blocks_affected, rlim) == MoveOutcome.ABORT:
                continue
            deltas.append(self.evaluate_move(self.blocks_affected)[0])
            self._revert()
        if len(deltas) < 2:
            return 0.0
        return self.config.init_t_scale * float(np.std(deltas))

    def inner_loop(self, t: float, rlim: float, num_moves: int) -> MoveStats:
        stats = MoveStats()
        for _ in range(num_moves):
            stats.record(self.try_swap(t, rlim), self.costs.cost)
        return stats

    def update_timing(self, crit_exponent: float) -> None:
        """Refresh criticalities and timing cost, then (optionally) normalization."""
        if self.timing_driven:
            self.costs.timing_cost = self.timing_cost_handler.update_criticalities(crit_exponent)
        if self.config.update_norm_factors:
            self.costs.update_norm_factors()
        self.costs.cost = self.costs.get_total_cost()

    def recompute_costs_from_scratch(self) -> None:
        """CHECK-mode recompute of every tracked term.

        Raises:
            CostDriftError: A term drifted beyond incremental_cost_tolerance
        """
        tol = self.config.incremental_cost_tolerance
        bb_check = self.net_cost_handler.comp_bb_cost(CostMethod.CHECK)
        if not cost_within_tolerance(self.costs.bb_cost, bb_check, tol):
            raise CostDriftError("bb_cost", self.costs.bb_cost, bb_check, tol)
        self.costs.bb_cost = bb_check

        if self.timing_driven:
            td_check = self.timing_cost_handler.comp_td_costs(CostMethod.CHECK)
            if not cost_within_tolerance(self.costs.timing_cost, td_check, tol):
                raise CostDriftError("timing_cost", self.costs.timing_cost, td_check, tol)
            self.costs.timing_cost = td_check

        if self.noc_cost_handler is not None:
            noc_check = self.noc_cost_handler.comp_noc_costs(CostMethod.CHECK)
            tracked = self.costs.noc_cost_terms.as_dict()
            for term, value in noc_check.as_dict().items():
                if not cost_within_tolerance(tracked[term], value, tol):
                    raise CostDriftError(f"noc_{term}", tracked[term], value, tol)
            self.costs.noc_cost_terms = noc_check

        self.costs.cost = self.costs.get_total_cost()

    def _maybe_checkpoint(self) -> None:
        if self.checkpoint is None or not self.timing_driven or not self.config.checkpointing:
            return
        if self.state.rlim < CHECKPOINT_RLIM_FRACTION * self.state.rlim_max:
            cpd = self.timing_cost_handler.analyzer.critical_path_delay()
            self.checkpoint.save_if_needed(self.registry, cpd, self.costs.bb_cost, self.costs.cost)

    def _temperature_stats(self, t: float, stats: MoveStats) -> TemperatureStats:
        cpd = None
        if self.timing_driven:
            cpd = self.timing_cost_handler.analyzer.critical_path_delay()
        return TemperatureStats(
            temperature=t,
            cost=self.costs.cost,
            bb_cost=self.costs.bb_cost,
            timing_cost=self.costs.timing_cost,
            success_rate=stats.success_rate,
            std_dev=stats.std_dev,
            rlim=self.state.rlim,
            crit_exponent=self.state.crit_exponent,
            num_moves=stats.num_moves,
            num_aborted=stats.num_aborted,
            cpd=cpd
        )

    def run(self) -> AnnealResult:
        """Anneal, quench and verify.

        Returns:
            Per-temperature history and total move statistics
        """
        config = self.config
        result = AnnealResult()

        self.phase = AnnealerPhase.INITIALIZING
        t = self.starting_t()
        self.state = AnnealingState(
            t=t,
            rlim=self.rlim_max,
            rlim_max=self.rlim_max,
            crit_exponent=config.td_place_exp_first,
            move_lim=self.move_lim
        )
        result.initial_temperature = t
        logger.info(
            f"Annealing: initial t={t:.4g}, move_lim={self.move_lim}, rlim_max={self.rlim_max:g}"
        )
        logger.info(
            f"{'T':>10} {'Cost':>10} {'bb_cost':>10} {'td_cost':>10} {'Ac Rate':>8} "
            f"{'Std Dev':>10} {'R lim':>7} {'Crit Exp':>8}"
        )

        self.phase = AnnealerPhase.ANNEALING
        while not self.schedule.exit_condition(self.state, self.costs.cost, self.num_nets):
            if self.state.num_temps % config.recompute_crit_freq == 0:
                self.update_timing(self.state.crit_exponent)
                self._maybe_checkpoint()

            stats = self.inner_loop(self.state.t, self.state.rlim, self.move_lim)
            result.total.merge(stats)

            if (self.state.num_temps + 1) % config.recompute_cost_every == 0:
                self.recompute_costs_from_scratch()

            row = self._temperature_stats(self.state.t, stats)
            result.history.append(row)
            logger.info(
                f"{row.temperature:10.4g} {row.cost:10.4g} {row.bb_cost:10.4g} {row.timing_cost:10.4g} "
                f"{row.success_rate:8.4f} {row.std_dev:10.4g} {row.rlim:7.2f} {row.crit_exponent:8.3f}"
            )
            self.schedule.update(self.state, stats.success_rate)

        self.phase = AnnealerPhase.QUENCHING
        self.update_timing(self.state.crit_exponent)
        num_quench_moves = max(1, int(self.move_lim * config.quench_moves_factor))
        stats = self.inner_loop(0.0, self.state.rlim, num_quench_moves)
        result.total.merge(stats)
        self.recompute_costs_from_scratch()
        result.history.append(self._temperature_stats(0.0, stats))
        logger.info(
            f"Quench: {stats.num_accepted}/{stats.num_moves} moves accepted, cost={self.costs.cost:.6g}"
        )

        self.phase = AnnealerPhase.TERMINATED
        result.num_temps = self.state.num_temps
        return result

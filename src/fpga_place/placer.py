"""Placement orchestrator: initial placement -> analytical seed -> anneal -> check."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .analytical.legalizer import legalize
from .analytical.partial_placement import PartialPlacement
from .analytical.solver import make_analytical_solver
from .anneal.annealer import AnnealResult, PlacementAnnealer, TemperatureStats
from .anneal.checkpoint import PlacementCheckpoint
from .config import PlacerConfig
from .core.grid import DeviceGrid, Location
from .core.initial_placement import initial_placement
from .core.netlist import Netlist
from .core.placement import BlockLocRegistry
from .cost.costs import CostMethod, PlacerCosts, cost_within_tolerance
from .cost.net_cost import NetCostHandler
from .cost.timing_cost import TimingCostHandler
from .errors import ConfigError, NocRoutingCycleError, PlacementConsistencyError
from .moves.generators import create_move_generator
from .noc.cost_handler import NocCostHandler
from .noc.routing import create_noc_routing
from .noc.topology import NocTopology, TrafficFlow
from .timing.analyzer import GraphTimingAnalyzer, TimingAnalyzer
from .timing.delay_model import ManhattanDelayModel, PlaceDelayModel

logger = logging.getLogger(__name__)


@dataclass
class PlacementReport:
    """Outcome of a placement run."""
    costs: Dict[str, float]
    block_locs: List[Location]
    cpd: Optional[float] = None
    setup_wns: Optional[float] = None
    setup_tns: Optional[float] = None
    num_moves: int = 0
    num_accepted: int = 0
    num_aborted: int = 0
    num_temps: int = 0
    initial_temperature: float = 0.0
    restored_checkpoint: bool = False
    history: List[TemperatureStats] = field(default_factory=list)

    @property
    def acceptance_rate(self) -> float:
        return self.num_accepted / self.num_moves if self.num_moves else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "costs": self.costs,
            "cpd": self.cpd,
            "setup_wns": self.setup_wns,
            "setup_tns": self.setup_tns,
            "num_moves": self.num_moves,
            "num_accepted": self.num_accepted,
            "num_aborted": self.num_aborted,
            "acceptance_rate": self.acceptance_rate,
            "num_temps": self.num_temps,
            "initial_temperature": self.initial_temperature,
            "restored_checkpoint": self.restored_checkpoint,
            "history": [row.as_dict() for row in self.history],
            "block_locs": [list(loc.as_tuple()) for loc in self.block_locs]
        }


class Placer:
    """Owns one placement run: registry, cost handlers, annealer.

    Example:
        placer = Placer(netlist, grid, PlacerConfig.from_yaml("configs/placer.yaml"))
        report = placer.place()
    """

    def __init__(
        self,
        netlist: Netlist,
        grid: DeviceGrid,
        config: Optional[PlacerConfig] = None,
        delay_model: Optional[PlaceDelayModel] = None,
        analyzer: Optional[TimingAnalyzer] = None,
        noc_topology: Optional[NocTopology] = None,
        traffic_flows: Sequence[TrafficFlow] = (),
        initial_locs: Optional[Dict[int, Location]] = None
    ):
        """Initialize placer.

        Args:
            netlist: Design to place
            grid: Target device
            config: Placer configuration (defaults if None)
            delay_model: Placement delay model (Manhattan if None)
            analyzer: Timing analyzer (graph analyzer over the netlist if None)
            noc_topology: NoC topology, required when NoC placement is enabled
            traffic_flows: NoC traffic flows
            initial_locs: Caller-supplied legal placement (random if None)
        """
        self.netlist = netlist
        self.grid = grid
        self.config = config or PlacerConfig()
        self.config.validate()
        self.rng = np.random.default_rng(self.config.seed)
        self.registry = BlockLocRegistry(netlist, grid)
        self.initial_locs = initial_locs

        self.costs = PlacerCosts(
            place_algorithm=self.config.place_algorithm,
            timing_tradeoff=self.config.timing_tradeoff,
            noc_enabled=self.config.noc.enabled
        )

        self.net_cost_handler: Optional[NetCostHandler] = None
        self.timing_cost_handler: Optional[TimingCostHandler] = None
        self.noc_cost_handler: Optional[NocCostHandler] = None
        self.delay_model = delay_model
        self.analyzer = analyzer
        self.noc_topology = noc_topology
        self.traffic_flows = list(traffic_flows)

        if self.config.noc.enabled and noc_topology is None:
            raise ConfigError("NoC placement is enabled but no NoC topology was given")

    @property
    def timing_driven(self) -> bool:
        return self.config.place_algorithm.is_timing_driven()

    def initial_placement(self) -> None:
        """Step 1: caller placement or random legal placement."""
        if self.initial_locs is not None:
            for block in self.netlist.blocks:
                if block.is_fixed:
                    self.registry.place_block(block.block_id, block.fixed_loc)
            for block_id, loc in sorted(self.initial_locs.items()):
                if not self.registry.is_placed(block_id):
                    self.registry.place_block(block_id, loc)
            missing = [b.block_id for b in self.netlist.blocks if not self.registry.is_placed(b.block_id)]
            if missing:
                raise ConfigError(f"Initial placement leaves {len(missing)} blocks unplaced (first: {missing[0]})")
        else:
            initial_placement(self.registry, self.rng)

    def analytical_placement(self) -> None:
        """Step 2: solve/legalize rounds seeded from the current placement."""
        a = self.config.analytical
        if not a.enabled or a.iterations == 0:
            return
        p_placement = PartialPlacement(self.netlist, self.registry)
        solver = make_analytical_solver(
            a.solver, c0=a.c0, decay=a.decay, rtol=a.cg_rtol, atol=a.cg_atol,
            maxiter=a.cg_maxiter, accumulate_anchors=a.accumulate_anchors
        )
        for iteration in range(a.iterations):
            solver.solve(iteration, p_placement)
            displacement = legalize(p_placement, self.registry)
            logger.info(f"Analytical iteration {iteration}: legalization displacement {displacement:.2f}")

    def init_costs(self) -> None:
        """Steps 3-5: create cost handlers and compute every term from scratch."""
        self.net_cost_handler = NetCostHandler(self.netlist, self.registry, cube_bb=self.config.cube_bb)

        if self.timing_driven:
            self.delay_model = self.delay_model or ManhattanDelayModel()
            self.analyzer = self.analyzer or GraphTimingAnalyzer(self.netlist, clock_period=self.config.clock_period)
            self.timing_cost_handler = TimingCostHandler(self.netlist, self.registry, self.delay_model, self.analyzer)

        if self.config.noc.enabled:
            self.costs.noc_weights = self.config.noc.weights().normalized()
            self.noc_cost_handler = NocCostHandler(
                self.netlist, self.registry, self.noc_topology, self.traffic_flows,
                create_noc_routing(self.config.noc.routing_algorithm)
            )

        self.compute_costs_from_scratch(self.config.anneal.td_place_exp_first)
        self.costs.update_norm_factors()
        self.costs.cost = self.costs.get_total_cost()

    def compute_costs_from_scratch(self, crit_exponent: float) -> None:
        """NORMAL-mode recompute of every cost term for the committed placement."""
        self.costs.bb_cost = self.net_cost_handler.comp_bb_cost(CostMethod.NORMAL)
        if self.timing_cost_handler is not None:
            self.timing_cost_handler.comp_td_connection_delays()
            self.costs.timing_cost = self.timing_cost_handler.update_criticalities(crit_exponent)
        else:
            self.costs.timing_cost = math.nan
            self.costs.timing_cost_norm = math.nan
        if self.noc_cost_handler is not None:
            self.noc_cost_handler.initial_noc_routing()
            self.costs.noc_cost_terms = self.noc_cost_handler.comp_noc_costs(CostMethod.NORMAL)

    def print_place_status(self, title: str) -> None:
        logger.info(f"{title}: cost={self.costs.cost:.6g} bb_cost={self.costs.bb_cost:.6g}")
        if self.timing_cost_handler is not None:
            logger.info(
                f"{title}: timing_cost={self.costs.timing_cost:.6g} "
                f"CPD={self.analyzer.critical_path_delay() * 1e9:.4f} ns "
                f"sWNS={self.analyzer.setup_worst_negative_slack() * 1e9:.4f} ns "
                f"sTNS={self.analyzer.setup_total_negative_slack() * 1e9:.4f} ns"
            )
        if self.noc_cost_handler is not None:
            terms = ", ".join(f"{k}={v:.6g}" for k, v in self.costs.noc_cost_terms.as_dict().items())
            logger.info(f"{title}: NoC {terms}")

    def print_initial_stats(self) -> None:
        macros = self.netlist.macros
        logger.info(f"Placing {self.netlist!r} on {self.grid!r}")
        logger.info(f"Placement macros: {len(macros)}")
        if macros:
            sizes = [len(m) for m in macros]
            logger.info(f"Average macro size: {np.mean(sizes):.2f} blocks (largest {max(sizes)})")
        self.print_place_status("Initial placement")

    def check_placement_costs(self) -> int:
        """Compare tracked bb/timing costs with CHECK recomputes.

        Returns:
            Number of terms outside incremental_cost_tolerance
        """
        tol = self.config.anneal.incremental_cost_tolerance
        errors = 0
        bb_check = self.net_cost_handler.comp_bb_cost(CostMethod.CHECK)
        if not cost_within_tolerance(self.costs.bb_cost, bb_check, tol):
            logger.error(f"bb_cost_check: {bb_check:g} and bb_cost: {self.costs.bb_cost:g} differ in check_place")
            errors += 1
        if self.timing_cost_handler is not None:
            td_check = self.timing_cost_handler.comp_td_costs(CostMethod.CHECK)
            if not cost_within_tolerance(self.costs.timing_cost, td_check, tol):
                logger.error(
                    f"timing_cost_check: {td_check:g} and timing_cost: {self.costs.timing_cost:g} differ in check_place"
                )
                errors += 1
        return errors

    def check_place(self) -> None:
        """Verify placement legality and every tracked cost.

        Raises:
            NocRoutingCycleError: NoC routes form a channel dependency cycle
            PlacementConsistencyError: Any other check failed
        """
        problems = self.registry.verify()
        for problem in problems:
            logger.error(problem)
        errors = len(problems) + self.check_placement_costs()

        if self.noc_cost_handler is not None:
            errors += self.noc_cost_handler.check_noc_placement_costs(
                self.costs, self.config.anneal.incremental_cost_tolerance
            )
            cycle = self.noc_cost_handler.find_routing_cycle()
            if cycle is not None:
                raise NocRoutingCycleError(cycle)

        if errors:
            raise PlacementConsistencyError(errors)
        logger.info("Completed placement consistency check successfully.")

    def place(self) -> PlacementReport:
        """Run the full placement flow."""
        self.initial_placement()
        self.analytical_placement()
        self.init_costs()
        self.check_place()
        self.print_initial_stats()

        move_generator = create_move_generator(
            self.config.anneal.move_generator, self.registry, self.rng,
            timing_handler=self.timing_cost_handler,
            crit_limit=self.config.anneal.crit_limit,
            probabilities=self.config.anneal.move_probabilities
        )
        checkpoint = PlacementCheckpoint() if self.timing_driven and self.config.anneal.checkpointing else None
        annealer = PlacementAnnealer(
            self.config.anneal, self.registry, self.costs, self.net_cost_handler, move_generator, self.rng,
            timing_cost_handler=self.timing_cost_handler,
            noc_cost_handler=self.noc_cost_handler,
            checkpoint=checkpoint
        )
        result = annealer.run()

        restored = False
        if self.timing_cost_handler is not None:
            final_exponent = annealer.state.crit_exponent
            self.compute_costs_from_scratch(final_exponent)
            self.costs.cost = self.costs.get_total_cost()
            if checkpoint is not None and checkpoint.should_restore(
                    self.analyzer.critical_path_delay(), self.costs.bb_cost):
                logger.info(
                    f"Restoring placement checkpoint: CPD {checkpoint.cpd * 1e9:.4f} ns beats "
                    f"{self.analyzer.critical_path_delay() * 1e9:.4f} ns"
                )
                checkpoint.restore(self.registry)
                self.compute_costs_from_scratch(final_exponent)
                self.costs.cost = self.costs.get_total_cost()
                restored = True

        self.check_place()
        self.print_place_status("Final placement")
        return self._report(result, restored)

    def _report(self, result: AnnealResult, restored: bool) -> PlacementReport:
        report = PlacementReport(
            costs=self.costs.as_dict(),
            block_locs=[self.registry.loc_of(b.block_id) for b in self.netlist.blocks],
            num_moves=result.total.num_moves,
            num_accepted=result.total.num_accepted,
            num_aborted=result.total.num_aborted,
            num_temps=result.num_temps,
            initial_temperature=result.initial_temperature,
            restored_checkpoint=restored,
            history=result.history
        )
        if self.timing_cost_handler is not None:
            report.cpd = self.analyzer.critical_path_delay()
            report.setup_wns = self.analyzer.setup_worst_negative_slack()
            report.setup_tns = self.analyzer.setup_total_negative_slack()
        return report

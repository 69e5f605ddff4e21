"""Concrete move generators."""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..core.placement import BlockLocRegistry, BlocksToBeMoved
from ..cost.timing_cost import TimingCostHandler
from ..errors import ConfigError
from .move_generator import MoveGenerator, MoveGeneratorKind, MoveOutcome

logger = logging.getLogger(__name__)


class UniformMoveGenerator(MoveGenerator):
    """Random block to a random legal site within rlim on its own layer."""

    def propose_move(self, blocks_affected: BlocksToBeMoved, rlim: float) -> MoveOutcome:
        block_id = self.pick_random_block()
        if block_id is None:
            return MoveOutcome.ABORT
        from_loc = self.registry.loc_of(block_id)
        to_loc = self.random_site_near(block_id, from_loc.x, from_loc.y, rlim, layer=from_loc.layer)
        if to_loc is None:
            return MoveOutcome.ABORT
        return self.move_block_to(blocks_affected, block_id, to_loc)


class UniformInterLayerMoveGenerator(MoveGenerator):
    """Random block to a different die layer, within rlim in x/y."""

    def propose_move(self, blocks_affected: BlocksToBeMoved, rlim: float) -> MoveOutcome:
        if self.registry.grid.num_layers < 2:
            return MoveOutcome.ABORT
        block_id = self.pick_random_block()
        if block_id is None:
            return MoveOutcome.ABORT
        from_loc = self.registry.loc_of(block_id)
        to_loc = self.random_site_near(block_id, from_loc.x, from_loc.y, rlim, exclude_layer=from_loc.layer)
        if to_loc is None:
            return MoveOutcome.ABORT
        return self.move_block_to(blocks_affected, block_id, to_loc)


class CentroidMoveGenerator(MoveGenerator):
    """Random block moved toward the centroid of the blocks it connects to.

    A driver is pulled by all of its sinks, a sink only by its driver.
    Blocks with no connections fall back to a uniform move.
    """

    def _partners(self, block_id: int) -> List[Tuple[int, float]]:
        netlist = self.registry.netlist
        partners = []
        for net_id, pin_index in netlist.block_nets(block_id):
            if netlist.net_is_ignored_for_placement(net_id):
                continue
            net_blocks = netlist.net_blocks(net_id)
            if pin_index == 0:
                partners.extend((b, 1.0) for b in net_blocks[1:])
            else:
                partners.append((net_blocks[0], 1.0))
        return partners

    def _target_center(self, block_id: int) -> Optional[Tuple[int, int]]:
        partners = self._partners(block_id)
        total = sum(w for _, w in partners)
        if not partners or total <= 0:
            return None
        x = sum(w * self.registry.loc_of(b).x for b, w in partners) / total
        y = sum(w * self.registry.loc_of(b).y for b, w in partners) / total
        return int(round(x)), int(round(y))

    def propose_move(self, blocks_affected: BlocksToBeMoved, rlim: float) -> MoveOutcome:
        block_id = self.pick_random_block()
        if block_id is None:
            return MoveOutcome.ABORT
        from_loc = self.registry.loc_of(block_id)
        center = self._target_center(block_id) or (from_loc.x, from_loc.y)
        to_loc = self.random_site_near(block_id, center[0], center[1], rlim, layer=from_loc.layer)
        if to_loc is None:
            return MoveOutcome.ABORT
        return self.move_block_to(blocks_affected, block_id, to_loc)


class MedianMoveGenerator(CentroidMoveGenerator):
    """Random block moved toward the median of its nets' bounding-box edges.

    Each net contributes the edges of the box spanned by its other blocks.
    """

    def _target_center(self, block_id: int) -> Optional[Tuple[int, int]]:
        netlist = self.registry.netlist
        xs, ys = [], []
        for net_id, _ in netlist.block_nets(block_id):
            if netlist.net_is_ignored_for_placement(net_id):
                continue
            others = [self.registry.loc_of(b) for b in netlist.net_blocks(net_id) if b != block_id]
            xs.extend((min(l.x for l in others), max(l.x for l in others)))
            ys.extend((min(l.y for l in others), max(l.y for l in others)))
        if not xs:
            return None
        return int(round(np.median(xs))), int(round(np.median(ys)))


class WeightedCentroidMoveGenerator(CentroidMoveGenerator):
    """Centroid weighted by the criticality of each connection."""

    def __init__(self, registry: BlockLocRegistry, rng: np.random.Generator, timing_handler: TimingCostHandler):
        super().__init__(registry, rng)
        self.timing_handler = timing_handler

    def _partners(self, block_id: int) -> List[Tuple[int, float]]:
        return list(self.timing_handler.block_criticality(block_id).items())


class CriticalUniformMoveGenerator(MoveGenerator):
    """Uniform move of a block on a connection more critical than crit_limit."""

    def __init__(
        self,
        registry: BlockLocRegistry,
        rng: np.random.Generator,
        timing_handler: TimingCostHandler,
        crit_limit: float = 0.7
    ):
        super().__init__(registry, rng)
        self.timing_handler = timing_handler
        self.crit_limit = crit_limit
        self._moveable_set = set(self._moveable)

    def propose_move(self, blocks_affected: BlocksToBeMoved, rlim: float) -> MoveOutcome:
        critical = [b for b in self.timing_handler.critical_blocks(self.crit_limit) if b in self._moveable_set]
        block_id = self.pick_random_block(critical)
        if block_id is None:
            return MoveOutcome.ABORT
        from_loc = self.registry.loc_of(block_id)
        to_loc = self.random_site_near(block_id, from_loc.x, from_loc.y, rlim, layer=from_loc.layer)
        if to_loc is None:
            return MoveOutcome.ABORT
        return self.move_block_to(blocks_affected, block_id, to_loc)


class StaticMoveGenerator(MoveGenerator):
    """Picks one of several generators per move with fixed probabilities."""

    def __init__(
        self,
        registry: BlockLocRegistry,
        rng: np.random.Generator,
        generators: Mapping[MoveGeneratorKind, MoveGenerator],
        probabilities: Mapping[MoveGeneratorKind, float]
    ):
        super().__init__(registry, rng)
        self.kinds = [kind for kind in generators if probabilities.get(kind, 0.0) > 0]
        if not self.kinds:
            raise ConfigError("Static move generator needs at least one positive probability")
        weights = np.array([probabilities[kind] for kind in self.kinds], dtype=float)
        self.probabilities = weights / weights.sum()
        self.generators = dict(generators)
        self.num_proposed: Dict[MoveGeneratorKind, int] = {kind: 0 for kind in self.kinds}
        self.last_kind: Optional[MoveGeneratorKind] = None

    def propose_move(self, blocks_affected: BlocksToBeMoved, rlim: float) -> MoveOutcome:
        kind = self.kinds[self.rng.choice(len(self.kinds), p=self.probabilities)]
        self.last_kind = kind
        self.num_proposed[kind] += 1
        return self.generators[kind].propose_move(blocks_affected, rlim)


def create_move_generator(
    kind: MoveGeneratorKind,
    registry: BlockLocRegistry,
    rng: np.random.Generator,
    timing_handler: Optional[TimingCostHandler] = None,
    crit_limit: float = 0.7,
    probabilities: Optional[Mapping[MoveGeneratorKind, float]] = None
) -> MoveGenerator:
    """Resolve a generator kind into an implementation.

    Args:
        kind: Generator kind
        registry: Placement state the generator reads
        rng: Shared random generator
        timing_handler: Required by the criticality-aware kinds
        crit_limit: Criticality threshold for CRITICAL_UNIFORM
        probabilities: Per-kind probabilities for STATIC

    Returns:
        Move generator
    """
    if kind == MoveGeneratorKind.UNIFORM:
        return UniformMoveGenerator(registry, rng)
    if kind == MoveGeneratorKind.UNIFORM_INTER_LAYER:
        return UniformInterLayerMoveGenerator(registry, rng)
    if kind == MoveGeneratorKind.CENTROID:
        return CentroidMoveGenerator(registry, rng)
    if kind == MoveGeneratorKind.MEDIAN:
        return MedianMoveGenerator(registry, rng)
    if kind in (MoveGeneratorKind.WEIGHTED_CENTROID, MoveGeneratorKind.CRITICAL_UNIFORM):
        if timing_handler is None:
            raise ConfigError(f"{kind.value} moves need a timing-driven placement")
        if kind == MoveGeneratorKind.WEIGHTED_CENTROID:
            return WeightedCentroidMoveGenerator(registry, rng, timing_handler)
        return CriticalUniformMoveGenerator(registry, rng, timing_handler, crit_limit)
    if kind == MoveGeneratorKind.STATIC:
        if not probabilities:
            raise ConfigError("Static move generator needs move probabilities")
        generators = {
            sub_kind: create_move_generator(sub_kind, registry, rng, timing_handler, crit_limit)
            for sub_kind, p in probabilities.items()
            if p > 0 and sub_kind != MoveGeneratorKind.STATIC
        }
        logger.info(f"Static move generator: {', '.join(f'{k.value}={p:g}' for k, p in probabilities.items())}")
        return StaticMoveGenerator(registry, rng, generators, probabilities)
    raise ConfigError(f"Unknown move generator kind: {kind}")

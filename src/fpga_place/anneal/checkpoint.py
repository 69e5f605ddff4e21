"""Timing checkpoint: the best placement seen so far by critical-path delay."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.grid import Location
from ..core.placement import BlockLocRegistry

logger = logging.getLogger(__name__)

# Restoring may cost at most this much bounding-box wirelength.
CHECKPOINT_BB_SLACK = 1.05


@dataclass
class PlacementCheckpoint:
    """Snapshot of block locations with the costs they achieved."""
    block_locs: List[Optional[Location]] = field(default_factory=list)
    cpd: float = float("inf")
    bb_cost: float = float("inf")
    cost: float = float("inf")
    valid: bool = False

    def save(self, registry: BlockLocRegistry, cpd: float, bb_cost: float, cost: float) -> None:
        self.block_locs = registry.snapshot()
        self.cpd = cpd
        self.bb_cost = bb_cost
        self.cost = cost
        self.valid = True

    def save_if_needed(self, registry: BlockLocRegistry, cpd: float, bb_cost: float, cost: float) -> bool:
        """Save when empty, or when both CPD and bounding-box cost improve."""
        if self.valid and not (cpd < self.cpd and bb_cost <= self.bb_cost):
            return False
        self.save(registry, cpd, bb_cost, cost)
        logger.debug(f"Saved placement checkpoint: CPD={cpd:.3e}s bb_cost={bb_cost:g}")
        return True

    def should_restore(self, final_cpd: float, final_bb_cost: float) -> bool:
        """Checkpoint beats the final placement on CPD without giving up much wirelength."""
        return self.valid and self.cpd < final_cpd and final_bb_cost * CHECKPOINT_BB_SLACK > self.bb_cost

    def restore(self, registry: BlockLocRegistry) -> None:
        if not self.valid:
            raise ValueError("Cannot restore an empty placement checkpoint")
        registry.restore(self.block_locs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "cpd": self.cpd,
            "bb_cost": self.bb_cost,
            "cost": self.cost,
            "block_locs": [None if loc is None else list(loc.as_tuple()) for loc in self.block_locs]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlacementCheckpoint':
        return cls(
            block_locs=[None if row is None else Location.from_row(row) for row in data["block_locs"]],
            cpd=float(data["cpd"]),
            bb_cost=float(data["bb_cost"]),
            cost=float(data["cost"]),
            valid=bool(data["valid"])
        )

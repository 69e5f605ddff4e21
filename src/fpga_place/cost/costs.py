"""Placement cost state.

cost = (1 - λ) * bb * bb_norm + λ * td * td_norm + noc     (timing driven)
cost = bb * bb_norm + noc                                  (bounding box only)

noc = w_noc * (w_bw * bw * bw_norm + w_lat * lat * lat_norm
               + w_over * overrun * overrun_norm + w_cong * cong * cong_norm)
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

# Caps on normalization factors so a near-zero baseline cannot explode a term.
MAX_INV_TIMING_COST = 1.e12
MAX_INV_NOC_AGGREGATE_BANDWIDTH_COST = 1.
MAX_INV_NOC_LATENCY_COST = 1.e12
MAX_INV_NOC_CONGESTION_COST = 1.e3

INVALID_COST = math.nan

# Absorbs float residue on terms whose tracked value is exactly zero.
ABS_COST_EPSILON = 1.e-15


class CostMethod(Enum):
    """NORMAL updates the cached per-net state, CHECK recomputes without touching it."""
    NORMAL = "normal"
    CHECK = "check"


class PlaceAlgorithm(Enum):
    BOUNDING_BOX = "bounding_box"
    CRITICALITY_TIMING = "criticality_timing"

    def is_timing_driven(self) -> bool:
        return self == PlaceAlgorithm.CRITICALITY_TIMING


@dataclass
class NocCostTerms:
    """NoC cost sub-terms (also reused for deltas and normalization factors)."""
    aggregate_bandwidth: float = 0.0
    latency: float = 0.0
    latency_overrun: float = 0.0
    congestion: float = 0.0

    def __add__(self, other: 'NocCostTerms') -> 'NocCostTerms':
        return NocCostTerms(
            self.aggregate_bandwidth + other.aggregate_bandwidth,
            self.latency + other.latency,
            self.latency_overrun + other.latency_overrun,
            self.congestion + other.congestion
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "aggregate_bandwidth": self.aggregate_bandwidth,
            "latency": self.latency,
            "latency_overrun": self.latency_overrun,
            "congestion": self.congestion
        }


@dataclass
class NocWeights:
    """Relative NoC term weights (normalized to sum to 1) and the NoC placement weight."""
    placement_weighting: float = 0.6
    aggregate_bandwidth: float = 0.38
    latency: float = 0.02
    latency_overrun: float = 0.2
    congestion: float = 0.4

    def normalized(self) -> 'NocWeights':
        total = self.aggregate_bandwidth + self.latency + self.latency_overrun + self.congestion
        if total <= 0:
            raise ValueError("At least one NoC cost weighting factor must be positive")
        return NocWeights(
            placement_weighting=self.placement_weighting,
            aggregate_bandwidth=self.aggregate_bandwidth / total,
            latency=self.latency / total,
            latency_overrun=self.latency_overrun / total,
            congestion=self.congestion / total
        )


@dataclass
class PlacerCosts:
    """Running totals of every cost term plus their normalization factors."""
    place_algorithm: PlaceAlgorithm = PlaceAlgorithm.BOUNDING_BOX
    timing_tradeoff: float = 0.5
    noc_enabled: bool = False
    noc_weights: Optional[NocWeights] = None

    cost: float = 0.0
    bb_cost: float = 0.0
    timing_cost: float = INVALID_COST
    noc_cost_terms: NocCostTerms = field(default_factory=NocCostTerms)

    bb_cost_norm: float = 1.0
    timing_cost_norm: float = INVALID_COST
    noc_cost_norm_factors: NocCostTerms = field(
        default_factory=lambda: NocCostTerms(1.0, 1.0, 1.0, 1.0)
    )

    def update_norm_factors(self) -> None:
        """Set normalization factors to the reciprocal of the current terms."""
        self.bb_cost_norm = 1.0 / self.bb_cost if self.bb_cost > 0 else 1.0
        if self.place_algorithm.is_timing_driven():
            self.timing_cost_norm = (
                min(1.0 / self.timing_cost, MAX_INV_TIMING_COST) if self.timing_cost > 0 else MAX_INV_TIMING_COST
            )
        if self.noc_enabled:
            self.update_noc_norm_factors()

    def update_noc_norm_factors(self) -> None:
        terms = self.noc_cost_terms
        self.noc_cost_norm_factors = NocCostTerms(
            aggregate_bandwidth=_capped_inverse(terms.aggregate_bandwidth, MAX_INV_NOC_AGGREGATE_BANDWIDTH_COST),
            latency=_capped_inverse(terms.latency, MAX_INV_NOC_LATENCY_COST),
            latency_overrun=_capped_inverse(terms.latency_overrun, MAX_INV_NOC_LATENCY_COST),
            congestion=_capped_inverse(terms.congestion, MAX_INV_NOC_CONGESTION_COST)
        )

    def weighted_noc_cost(self, terms: NocCostTerms) -> float:
        """Normalized, weighted NoC cost of a set of terms (or deltas)."""
        if not self.noc_enabled:
            return 0.0
        w = self.noc_weights
        norm = self.noc_cost_norm_factors
        return w.placement_weighting * (
            w.aggregate_bandwidth * terms.aggregate_bandwidth * norm.aggregate_bandwidth
            + w.latency * terms.latency * norm.latency
            + w.latency_overrun * terms.latency_overrun * norm.latency_overrun
            + w.congestion * terms.congestion * norm.congestion
        )

    def weighted_delta(self, bb_delta: float, timing_delta: float = 0.0,
                       noc_delta: Optional[NocCostTerms] = None) -> float:
        """Combine per-term deltas into one normalized delta cost."""
        if self.place_algorithm.is_timing_driven():
            delta = ((1 - self.timing_tradeoff) * bb_delta * self.bb_cost_norm
                     + self.timing_tradeoff * timing_delta * self.timing_cost_norm)
        else:
            delta = bb_delta * self.bb_cost_norm
        if noc_delta is not None:
            delta += self.weighted_noc_cost(noc_delta)
        return delta

    def get_total_cost(self) -> float:
        """Aggregate cost recomputed from the current terms."""
        timing = self.timing_cost if self.place_algorithm.is_timing_driven() else 0.0
        return self.weighted_delta(self.bb_cost, timing,
                                   self.noc_cost_terms if self.noc_enabled else None)

    def as_dict(self) -> Dict[str, float]:
        report = {"cost": self.cost, "bb_cost": self.bb_cost, "timing_cost": self.timing_cost}
        if self.noc_enabled:
            report.update({f"noc_{k}": v for k, v in self.noc_cost_terms.as_dict().items()})
        return report


def _capped_inverse(value: float, cap: float) -> float:
    return min(1.0 / value, cap) if value > 0 else cap


def cost_within_tolerance(tracked: float, recomputed: float, tolerance: float) -> bool:
    """Relative agreement check used at every cost verification point."""
    return abs(recomputed - tracked) <= tolerance * abs(tracked) + ABS_COST_EPSILON

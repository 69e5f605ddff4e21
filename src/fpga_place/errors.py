"""Placement error taxonomy.

Every fatal condition of a placement run derives from PlacementError.
Illegal move proposals are not errors (see moves.MoveOutcome.ABORT).
"""

from typing import Optional


class PlacementError(RuntimeError):
    """Base class for fatal placement errors."""


class NumericalDivergenceError(PlacementError):
    """Analytical solve produced non-finite values or failed to converge."""

    def __init__(self, message: str, axis: Optional[str] = None, info: Optional[int] = None):
        super().__init__(message)
        self.axis = axis
        self.info = info


class CostDriftError(PlacementError):
    """Incrementally tracked cost disagrees with a from-scratch recomputation."""

    def __init__(self, term: str, tracked: float, recomputed: float, tolerance: float):
        self.term = term
        self.tracked = tracked
        self.recomputed = recomputed
        self.tolerance = tolerance
        self.relative_error = abs(recomputed - tracked) / max(abs(tracked), 1e-300)
        super().__init__(
            f"{term}_check: {recomputed:g} and {term}: {tracked:g} differ "
            f"(relative error {self.relative_error:.3e} > tolerance {tolerance:g})"
        )


class NocRoutingCycleError(PlacementError):
    """NoC traffic flow routes form a cycle in the channel dependency graph."""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(f"NoC routing has a channel dependency cycle through links {self.cycle}")


class PlacementConsistencyError(PlacementError):
    """Final placement consistency check found one or more errors."""

    def __init__(self, error_count: int):
        self.error_count = error_count
        super().__init__(
            f"Completed placement consistency check, {error_count} errors found. Aborting."
        )


class TimingAnalysisError(PlacementError):
    """Timing graph cannot be analysed (e.g. combinational loop)."""


class LegalizationError(PlacementError):
    """No legal free site could be found for a node."""


class ConfigError(ValueError):
    """Invalid placer configuration."""

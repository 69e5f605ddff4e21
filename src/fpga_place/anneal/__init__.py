"""Anneal module: schedule, refinement loop and timing checkpoint."""

from .schedule import AnnealingSchedule, AdaptiveSchedule, AnnealingState
from .annealer import PlacementAnnealer, AnnealerPhase, AnnealResult, MoveStats, TemperatureStats
from .checkpoint import PlacementCheckpoint

__all__ = [
    "AnnealingSchedule",
    "AdaptiveSchedule",
    "AnnealingState",
    "PlacementAnnealer",
    "AnnealerPhase",
    "AnnealResult",
    "MoveStats",
    "TemperatureStats",
    "PlacementCheckpoint"
]

"""Move generators for the annealer."""

from .move_generator import MoveGenerator, MoveGeneratorKind, MoveOutcome, find_affected_blocks
from .generators import (
    UniformMoveGenerator,
    CentroidMoveGenerator,
    MedianMoveGenerator,
    WeightedCentroidMoveGenerator,
    CriticalUniformMoveGenerator,
    UniformInterLayerMoveGenerator,
    StaticMoveGenerator,
    create_move_generator
)

__all__ = [
    "MoveGenerator",
    "MoveGeneratorKind",
    "MoveOutcome",
    "find_affected_blocks",
    "UniformMoveGenerator",
    "CentroidMoveGenerator",
    "MedianMoveGenerator",
    "WeightedCentroidMoveGenerator",
    "CriticalUniformMoveGenerator",
    "UniformInterLayerMoveGenerator",
    "StaticMoveGenerator",
    "create_move_generator"
]

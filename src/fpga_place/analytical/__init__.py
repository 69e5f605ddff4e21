"""Analytical module: quadratic placement seed.

A hybrid clique/star net model gives a sparse SPD system per axis,
solved with conjugate gradient; pseudo-anchors that grow every iteration
pull the solution toward the last legalized placement.
"""

from .partial_placement import PartialPlacement
from .solver import AnalyticalSolver, QPHybridSolver, SolverKind, make_analytical_solver
from .legalizer import legalize

__all__ = [
    "PartialPlacement",
    "AnalyticalSolver",
    "QPHybridSolver",
    "SolverKind",
    "make_analytical_solver",
    "legalize"
]

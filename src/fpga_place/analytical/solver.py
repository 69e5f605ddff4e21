"""Analytical (quadratic) solver for placement seeding.

The hybrid net model:
- nets with <= 3 nodes become cliques of pairwise springs
- larger nets get one synthetic star node they all connect to
Both use the FastPlace weight p / (p - 1). Fixed nodes are never unknowns;
their pull is folded into the diagonal and the right-hand side.

Iteration 0 builds the system. Later iterations add a pseudo-anchor
c0 * exp(k / decay) tying every moveable node to its current position, so
the relaxed solution is gradually pinned to the (legalized) placement.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import cg

from ..errors import ConfigError, NumericalDivergenceError
from .partial_placement import PartialPlacement

logger = logging.getLogger(__name__)

CLIQUE_MAX_PINS = 3


class SolverKind(Enum):
    """Analytical solver formulations."""
    QP_HYBRID = "qp_hybrid"


@dataclass
class LinearSystem:
    """Sparse system A x = b shared by both axes."""
    A: sp.csr_matrix
    b_x: np.ndarray
    b_y: np.ndarray
    num_moveable_nodes: int
    num_star_nodes: int

    def copy(self) -> 'LinearSystem':
        return LinearSystem(
            A=self.A.copy(),
            b_x=self.b_x.copy(),
            b_y=self.b_y.copy(),
            num_moveable_nodes=self.num_moveable_nodes,
            num_star_nodes=self.num_star_nodes
        )

    @property
    def size(self) -> int:
        return self.num_moveable_nodes + self.num_star_nodes


def net_model_weight(num_pins: int, net_weight: float = 1.0) -> float:
    """FastPlace net weight p / (p - 1), scaled by the net's own weight."""
    return net_weight * num_pins / (num_pins - 1)


def pseudo_anchor_weight(iteration: int, c0: float = 0.01, decay: float = 5.0) -> float:
    """Anchor weight c0 * exp(k / decay); grows with the iteration index."""
    if decay <= 0:
        raise ConfigError("Pseudo-anchor decay must be positive")
    return c0 * float(np.exp(iteration / decay))


def build_hybrid_system(p_placement: PartialPlacement) -> LinearSystem:
    """Assemble the clique/star system for every non-ignored net.

    Args:
        p_placement: Node mapping and current (fixed-node) positions

    Returns:
        LinearSystem over moveable nodes followed by star nodes
    """
    netlist = p_placement.netlist
    num_moveable = p_placement.num_moveable_nodes
    star_nets = [
        net_id for net_id in range(len(netlist.nets))
        if not p_placement.net_is_ignored_for_placement(net_id)
        and len(p_placement.net_nodes(net_id)) > CLIQUE_MAX_PINS
    ]
    size = num_moveable + len(star_nets)

    rows: List[int] = []
    cols: List[int] = []
    vals: List[float] = []
    b_x = np.zeros(size)
    b_y = np.zeros(size)
    loc_x, loc_y = p_placement.node_loc_x, p_placement.node_loc_y

    def connect(i: int, j: int, w: float) -> None:
        rows.extend((i, j, i, j))
        cols.extend((i, j, j, i))
        vals.extend((w, w, -w, -w))

    def anchor(i: int, fixed_node: int, w: float) -> None:
        rows.append(i)
        cols.append(i)
        vals.append(w)
        b_x[i] += w * loc_x[fixed_node]
        b_y[i] += w * loc_y[fixed_node]

    star_node_id = num_moveable
    for net_id in range(len(netlist.nets)):
        if p_placement.net_is_ignored_for_placement(net_id):
            continue
        nodes = p_placement.net_nodes(net_id)
        num_pins = len(nodes)
        w = net_model_weight(num_pins, netlist.nets[net_id].weight)

        if num_pins > CLIQUE_MAX_PINS:
            # Star nodes are always moveable.
            for node_id in nodes:
                if p_placement.is_moveable_node(node_id):
                    connect(star_node_id, node_id, w)
                else:
                    anchor(star_node_id, node_id, w)
            star_node_id += 1
        else:
            for ipin in range(num_pins):
                for jpin in range(ipin + 1, num_pins):
                    first, second = nodes[ipin], nodes[jpin]
                    if not p_placement.is_moveable_node(first):
                        if not p_placement.is_moveable_node(second):
                            continue
                        first, second = second, first
                    if p_placement.is_moveable_node(second):
                        connect(first, second, w)
                    else:
                        anchor(first, second, w)

    # Duplicate (row, col) pairs are summed by the COO -> CSR conversion.
    A = sp.coo_matrix((vals, (rows, cols)), shape=(size, size)).tocsr()
    return LinearSystem(A=A, b_x=b_x, b_y=b_y,
                        num_moveable_nodes=num_moveable, num_star_nodes=len(star_nets))


def add_pseudo_anchors(system: LinearSystem, p_placement: PartialPlacement, weight: float) -> LinearSystem:
    """Copy of `system` with every moveable node anchored to its current position."""
    anchored = system.copy()
    n = system.num_moveable_nodes
    diag = np.zeros(system.size)
    diag[:n] = weight
    anchored.A = (anchored.A + sp.diags(diag, format="csr")).tocsr()
    anchored.b_x[:n] += weight * p_placement.node_loc_x[:n]
    anchored.b_y[:n] += weight * p_placement.node_loc_y[:n]
    return anchored


def is_symmetric(A: sp.spmatrix, tol: float = 1e-12) -> bool:
    """Check A == A^T up to `tol`."""
    diff = (A - A.T).tocoo()
    return diff.nnz == 0 or float(np.max(np.abs(diff.data))) <= tol


def is_positive_semidefinite(A: sp.spmatrix, tol: float = 1e-9) -> bool:
    """Dense eigenvalue check; only meant for tests on small systems."""
    dense = A.toarray()
    if dense.size == 0:
        return True
    eigenvalues = np.linalg.eigvalsh(dense)
    return bool(eigenvalues.min() >= -tol * max(1.0, float(np.abs(eigenvalues).max())))


class AnalyticalSolver(ABC):
    """Base class for analytical solvers."""

    @abstractmethod
    def solve(self, iteration: int, p_placement: PartialPlacement) -> None:
        """Move the moveable nodes of `p_placement` to the relaxed optimum.

        Args:
            iteration: Outer iteration index (0 builds the system)
            p_placement: Partial placement, updated in place
        """
        pass


class QPHybridSolver(AnalyticalSolver):
    """Quadratic placement with the hybrid clique/star net model, solved by CG."""

    def __init__(
        self,
        c0: float = 0.01,
        decay: float = 5.0,
        rtol: float = 1e-10,
        atol: float = 1e-9,
        maxiter: Optional[int] = None,
        accumulate_anchors: bool = False
    ):
        """Initialize solver.

        Args:
            c0: Pseudo-anchor base weight
            decay: Pseudo-anchor growth divisor
            rtol: CG relative residual tolerance
            atol: CG absolute residual tolerance (floor for all-zero RHS)
            maxiter: CG iteration cap (None: scipy default of 10 * n)
            accumulate_anchors: Keep anchors from earlier iterations instead of
                re-anchoring a fresh copy of the iteration-0 system
        """
        self.c0 = c0
        self.decay = decay
        self.rtol = rtol
        self.atol = atol
        self.maxiter = maxiter
        self.accumulate_anchors = accumulate_anchors

        self.system: Optional[LinearSystem] = None
        self._anchored: Optional[LinearSystem] = None
        self._x: Optional[np.ndarray] = None
        self._y: Optional[np.ndarray] = None

    def solve(self, iteration: int, p_placement: PartialPlacement) -> None:
        if iteration == 0 or self.system is None:
            self.system = build_hybrid_system(p_placement)
            self._anchored = None
            self._x, self._y = self._initial_guess(p_placement)
            logger.debug(
                f"Built hybrid system: {self.system.num_moveable_nodes} moveable + "
                f"{self.system.num_star_nodes} star nodes, nnz={self.system.A.nnz}"
            )

        system = self.system
        if iteration != 0:
            base = self._anchored if (self.accumulate_anchors and self._anchored is not None) else self.system
            system = add_pseudo_anchors(base, p_placement, pseudo_anchor_weight(iteration, self.c0, self.decay))
            if self.accumulate_anchors:
                self._anchored = system

        if system.size == 0 or system.num_moveable_nodes == 0:
            return

        logger.debug(f"Running quadratic solver (iteration {iteration})")
        self._x = self._solve_axis(system.A, system.b_x, self._x, "x")
        self._y = self._solve_axis(system.A, system.b_y, self._y, "y")

        n = system.num_moveable_nodes
        p_placement.node_loc_x[:n] = self._x[:n]
        p_placement.node_loc_y[:n] = self._y[:n]

    def _initial_guess(self, p_placement: PartialPlacement):
        """Current positions for moveable nodes, net centroids for star nodes."""
        system = self.system
        n = system.num_moveable_nodes
        x0 = np.zeros(system.size)
        y0 = np.zeros(system.size)
        x0[:n] = p_placement.node_loc_x[:n]
        y0[:n] = p_placement.node_loc_y[:n]

        star = n
        for net_id in range(len(p_placement.netlist.nets)):
            if p_placement.net_is_ignored_for_placement(net_id):
                continue
            nodes = list(p_placement.net_nodes(net_id))
            if len(nodes) > CLIQUE_MAX_PINS:
                x0[star] = p_placement.node_loc_x[nodes].mean()
                y0[star] = p_placement.node_loc_y[nodes].mean()
                star += 1
        return x0, y0

    def _solve_axis(self, A: sp.csr_matrix, b: np.ndarray, x0: np.ndarray, axis: str) -> np.ndarray:
        if not np.all(np.isfinite(b)):
            raise NumericalDivergenceError(f"b_{axis} has non-finite entries", axis=axis)
        x, info = cg(A, b, x0=x0, rtol=self.rtol, atol=self.atol, maxiter=self.maxiter)
        if info != 0:
            raise NumericalDivergenceError(
                f"Conjugate gradient failed at solving b_{axis} (info={info})", axis=axis, info=info
            )
        if not np.all(np.isfinite(x)):
            raise NumericalDivergenceError(f"Solution for {axis} has non-finite entries", axis=axis)
        return x


def make_analytical_solver(kind: SolverKind, **kwargs) -> AnalyticalSolver:
    """Create the solver for a configured kind (resolved once per run)."""
    if kind == SolverKind.QP_HYBRID:
        return QPHybridSolver(**kwargs)
    raise ConfigError(f"Unrecognized analytical solver type: {kind}")

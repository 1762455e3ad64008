"""pymassfem.integration.quadrature
Quadrature provider for simplices (line, triangle, tetrahedron) and
tensor-product cells (quadrilateral, hexahedron) of any polynomial order ≥ 0.

Reference domains are the unit simplex ``{ξ ≥ 0, Σξ ≤ 1}`` and the unit
cube ``[0, 1]^d``. Points are returned in homogeneous form: each row is
``(1 - Σξ, ξ_1, ..., ξ_d)`` so that only the last ``d`` entries are
reference coordinates.
"""
import itertools
import logging
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from numpy.polynomial.legendre import leggauss

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuadratureRule:
    points: np.ndarray   # (Q, d+1) homogeneous coordinates
    weights: np.ndarray  # (Q,)
    order: int
    dims: int

    @property
    def n_points(self) -> int:
        return self.weights.shape[0]

    @property
    def reference_points(self) -> np.ndarray:
        """``d x Q`` reference coordinates of the rule's points."""
        return np.ascontiguousarray(self.points[:, 1:].T)


# -------------------------------------------------------------------------
# 1‑D Gauss–Legendre
# -------------------------------------------------------------------------
def gauss_legendre(n_points: int):
    if n_points < 1:
        raise ValueError(n_points)
    return leggauss(n_points)  # (points, weights)


def _gl01(n_points: int):
    """Gauss–Legendre nodes and weights mapped to [0,1]."""
    xi, w = gauss_legendre(int(n_points))
    return 0.5 * (xi + 1.0), 0.5 * w


def _homogeneous(xi: np.ndarray) -> np.ndarray:
    return np.column_stack([1.0 - xi.sum(axis=1), xi])


def _freeze(rule: QuadratureRule) -> QuadratureRule:
    rule.points.flags.writeable = False
    rule.weights.flags.writeable = False
    return rule


# -------------------------------------------------------------------------
# Rules
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def tensor_rule(dims: int, order: int) -> QuadratureRule:
    """Gauss–Legendre tensor rule on [0,1]^d, exact for degree ``order`` per direction."""
    n = max(1, (order + 2) // 2)
    t, w = _gl01(n)
    pts, wts = [], []
    for idx in itertools.product(range(n), repeat=dims):
        idx = idx[::-1]  # first coordinate runs fastest
        pts.append([t[i] for i in idx])
        wts.append(np.prod([w[i] for i in idx]))
    return _freeze(QuadratureRule(_homogeneous(np.array(pts)), np.array(wts), order, dims))


@lru_cache(maxsize=None)
def simplex_rule(dims: int, order: int) -> QuadratureRule:
    """Collapsed (Duffy) Gauss–Legendre rule on the unit d-simplex.

    ``x_k = t_k Π_{j<k} (1 - t_j)`` maps the unit cube onto the simplex with
    Jacobian ``Π_k Π_{j<k} (1 - t_j)``. The Jacobian raises the degree in
    ``t_0`` by ``d - 1``, hence ``ceil((order + d) / 2)`` points per direction.
    """
    n = max(1, (order + dims + 1) // 2)
    t, w = _gl01(n)
    pts, wts = [], []
    for idx in itertools.product(range(n), repeat=dims):
        scale, weight = 1.0, 1.0
        x = np.empty(dims)
        for k, i in enumerate(idx):
            x[k] = t[i] * scale
            weight *= w[i] * scale
            scale *= 1.0 - t[i]
        pts.append(x)
        wts.append(weight)
    return _freeze(QuadratureRule(_homogeneous(np.array(pts)), np.array(wts), order, dims))


# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
def volume(family: str, dims: int, order: int) -> QuadratureRule:
    """Quadrature rule of polynomial ``order`` for a ``family`` ('simplex'|'tensor') cell."""
    if order < 0:
        raise ValueError(f"Quadrature order must be non-negative, got {order}")
    if family == "simplex":
        rule = simplex_rule(int(dims), int(order))
    elif family == "tensor":
        rule = tensor_rule(int(dims), int(order))
    else:
        raise KeyError(family)
    logger.debug(f"{family} rule d={dims} order={order}: {rule.n_points} points.")
    return rule

"""pymassfem.fem.jacobian
Reference → domain mapping of isoparametric elements: Jacobians, their
determinants at quadrature points, and Gauss–Newton inversion of the map.
"""
import logging

import numba as _nb
import numpy as np

from pymassfem.errors import DimensionError, ShapeMismatchError
from pymassfem.integration.pre_tabulates import _basis_at, _basis_grad_at

logger = logging.getLogger(__name__)


# ---------- numba helpers ----------

@_nb.njit(cache=True, fastmath=True)
def _element_jacobian(X, nodes, GN, J):
    """J (d_out, d_in) = X[:, nodes] @ GN (n, d_in)."""
    d_out, d_in = J.shape
    for r in range(d_out):
        for c in range(d_in):
            s = 0.0
            for i in range(nodes.shape[0]):
                s += X[r, nodes[i]] * GN[i, c]
            J[r, c] = s


@_nb.njit(cache=True, fastmath=True)
def _gram(J):
    d_out, d_in = J.shape
    JTJ = np.empty((d_in, d_in))
    for a in range(d_in):
        for b in range(d_in):
            s = 0.0
            for r in range(d_out):
                s += J[r, a] * J[r, b]
            JTJ[a, b] = s
    return JTJ


@_nb.njit(cache=True, fastmath=True)
def _determinant(J):
    d_out, d_in = J.shape
    if d_out == d_in:
        return abs(np.linalg.det(J))
    return np.sqrt(np.linalg.det(_gram(J)))


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _jacobian_determinants(X, E, GNg, detJe):
    Q = GNg.shape[0]
    d_in = GNg.shape[2]
    d_out = X.shape[0]
    for e in _nb.prange(E.shape[1]):
        nodes = E[:, e]
        J = np.empty((d_out, d_in))
        for g in range(Q):
            _element_jacobian(X, nodes, GNg[g], J)
            detJe[g, e] = _determinant(J)


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _reference_positions(X, E, eg, Xg, coeffs, exponents, xi0, max_iterations, tolerance, Xi):
    n = coeffs.shape[0]
    d_in = exponents.shape[1]
    d_out = X.shape[0]
    for p in _nb.prange(Xg.shape[1]):
        nodes = E[:, eg[p]]
        xi = xi0.copy()
        N = np.empty(n)
        GN = np.empty((n, d_in))
        J = np.empty((d_out, d_in))
        r = np.empty(d_out)
        rhs = np.empty(d_in)
        for _ in range(max_iterations):
            _basis_at(coeffs, exponents, xi, N)
            _basis_grad_at(coeffs, exponents, xi, GN)
            for a in range(d_out):
                s = 0.0
                for i in range(n):
                    s += X[a, nodes[i]] * N[i]
                r[a] = Xg[a, p] - s
            _element_jacobian(X, nodes, GN, J)
            for c in range(d_in):
                s = 0.0
                for a in range(d_out):
                    s += J[a, c] * r[a]
                rhs[c] = s
            dxi = np.linalg.solve(_gram(J), rhs)
            step = 0.0
            for c in range(d_in):
                xi[c] += dxi[c]
                step += dxi[c] * dxi[c]
            if np.sqrt(step) < tolerance:
                break
        for c in range(d_in):
            Xi[c, p] = xi[c]


# ---------- public API ----------

def jacobian(element, xi, Xe) -> np.ndarray:
    """Jacobian ``Xe @ ∇N(ξ)`` of the map defined by element node positions ``Xe`` (d_out, n)."""
    Xe = np.asarray(Xe, dtype=float)
    if Xe.ndim != 2 or Xe.shape[1] != element.n_nodes:
        raise ShapeMismatchError(
            f"Expected element node positions with {element.n_nodes} columns, but got shape {Xe.shape}"
        )
    return Xe @ element.grad_N(xi)


def determinant_of_jacobian(J) -> float:
    """``|det J|`` for square J, ``sqrt(det(JᵀJ))`` for an embedded (rectangular) J."""
    J = np.asarray(J, dtype=float)
    if J.shape[0] < J.shape[1]:
        raise DimensionError(f"Cannot compute a measure for J of shape {J.shape} (d_out < d_in)")
    if J.shape[0] == J.shape[1]:
        return float(abs(np.linalg.det(J)))
    return float(np.sqrt(np.linalg.det(J.T @ J)))


def jacobian_determinants(mesh, quadrature_order: int) -> np.ndarray:
    """
    Element jacobian determinants at element quadrature points.

    Returns:
        (#quad.pts., #elements) matrix ``detJe``.
    """
    element = mesh.element
    rule = element.quadrature(quadrature_order)
    GNg = element.shape_function_gradients(rule.reference_points)
    detJe = np.empty((rule.n_points, mesh.n_elements))
    logger.debug(f"jacobian_determinants: {mesh.n_elements} elements x {rule.n_points} quad.pts.")
    _jacobian_determinants(mesh.X, mesh.E, GNg, detJe)
    return detJe


def _element_indices(mesh, eg, n_points: int) -> np.ndarray:
    eg = np.ascontiguousarray(np.ravel(eg), dtype=np.int64)
    if eg.shape[0] != n_points:
        raise ShapeMismatchError(
            f"Expected one element index per evaluation point ({n_points}), but got {eg.shape[0]}"
        )
    if eg.size and (eg.min() < 0 or eg.max() >= mesh.n_elements):
        raise DimensionError(
            f"Element indices must lie in 0..{mesh.n_elements - 1}, but got [{eg.min()}, {eg.max()}]"
        )
    return eg


def _domain_points(mesh, Xg) -> np.ndarray:
    Xg = np.asarray(Xg, dtype=float)
    if Xg.ndim != 2 or Xg.shape[0] != mesh.dims:
        rows = Xg.shape[0] if Xg.ndim >= 1 else 0
        raise DimensionError(
            f"Expected evaluation points in d={mesh.dims} dimensions, but got Xg.rows()={rows}"
        )
    return np.ascontiguousarray(Xg)


def reference_positions(mesh, eg, Xg, max_iterations: int = 5, tolerance: float = 1e-10) -> np.ndarray:
    """
    Reference coordinates of domain points via Gauss–Newton on ``x(ξ) = X_e N(ξ)``.

    Args:
        eg: (P,) element owning each point.
        Xg: (mesh.dims, P) domain points.

    Returns:
        (element.dims, P) reference positions. Affine elements converge in one step.
    """
    Xg = _domain_points(mesh, Xg)
    eg = _element_indices(mesh, eg, Xg.shape[1])
    element = mesh.element
    xi0 = element.affine_base.coordinates.mean(axis=1)
    Xi = np.empty((element.dims, Xg.shape[1]))
    logger.debug(f"reference_positions: {Xg.shape[1]} points, max_iterations={max_iterations}")
    _reference_positions(mesh.X, mesh.E, eg, Xg, element.coeffs, element.exponents,
                         np.ascontiguousarray(xi0), int(max_iterations), float(tolerance), Xi)
    return Xi

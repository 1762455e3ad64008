"""pymassfem.fem.shape_functions
Shape functions and their domain-space gradients, at element quadrature
points or at arbitrary evaluation points.

Gradients are taken through the element's *affine* geometric map, i.e. the
Jacobian is built from the affine-hull vertices and the affine base basis:

    J = X_v ∇_ξ N_affine(ξ)                      (d_out x d_in)
    square J:       ∇_X φᵀ = J⁻ᵀ ∇_ξ Nᵀ
    rectangular J:  ∇_X φᵀ = J (JᵀJ)⁻¹ ∇_ξ Nᵀ

This is exact whenever the domain element is an affine image of the
reference element (straight-sided simplices, axis-aligned or parallelogram
quads/hexes) and an approximation otherwise.
"""
import logging

import numba as _nb
import numpy as np
import scipy.linalg as sla
import scipy.sparse as sp

from pymassfem.errors import DimensionError, ShapeMismatchError, check_determinants
from pymassfem.fem.jacobian import _domain_points, _element_indices, reference_positions

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# numba kernels
# -------------------------------------------------------------------------
@_nb.njit(cache=True, fastmath=True)
def _physical_gradients(GN, GNa, Xv, GP):
    """
    GN (n, d_in) reference gradients, GNa (v, d_in) affine base gradients,
    Xv (d_out, v) vertex positions -> GP (n, d_out) domain gradients.
    """
    n, d_in = GN.shape
    d_out, v = Xv.shape
    J = np.empty((d_out, d_in))
    for r in range(d_out):
        for c in range(d_in):
            s = 0.0
            for a in range(v):
                s += Xv[r, a] * GNa[a, c]
            J[r, c] = s
    GNt = np.empty((d_in, n))
    for i in range(n):
        for c in range(d_in):
            GNt[c, i] = GN[i, c]
    if d_in == d_out:
        Jt = np.empty((d_in, d_in))
        for r in range(d_in):
            for c in range(d_in):
                Jt[c, r] = J[r, c]
        GPt = np.linalg.solve(Jt, GNt)
        for i in range(n):
            for r in range(d_out):
                GP[i, r] = GPt[r, i]
        return
    # (JᵀJ) Z = ∇Nᵀ by Cholesky, then ∇φᵀ = J Z
    JTJ = np.empty((d_in, d_in))
    for a in range(d_in):
        for b in range(d_in):
            s = 0.0
            for r in range(d_out):
                s += J[r, a] * J[r, b]
            JTJ[a, b] = s
    L = np.linalg.cholesky(JTJ)
    Z = np.empty((d_in, n))
    for i in range(n):
        for a in range(d_in):  # forward: L y = b
            s = GNt[a, i]
            for b in range(a):
                s -= L[a, b] * Z[b, i]
            Z[a, i] = s / L[a, a]
        for a in range(d_in - 1, -1, -1):  # backward: Lᵀ z = y
            s = Z[a, i]
            for b in range(a + 1, d_in):
                s -= L[b, a] * Z[b, i]
            Z[a, i] = s / L[a, a]
    for i in range(n):
        for r in range(d_out):
            s = 0.0
            for a in range(d_in):
                s += J[r, a] * Z[a, i]
            GP[i, r] = s


@_nb.njit(cache=True, fastmath=True)
def _vertex_positions(X, E, vertices, e, Xv):
    for a in range(vertices.shape[0]):
        node = E[vertices[a], e]
        for r in range(X.shape[0]):
            Xv[r, a] = X[r, node]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _quadrature_gradients(X, E, vertices, GNg, GNag, GNe):
    """Element e, quad.pt. g writes columns [e*d*Q + g*d, e*d*Q + (g+1)*d) of GNe."""
    Q, n, _ = GNg.shape
    d_out = X.shape[0]
    for e in _nb.prange(E.shape[1]):
        Xv = np.empty((d_out, vertices.shape[0]))
        _vertex_positions(X, E, vertices, e, Xv)
        GP = np.empty((n, d_out))
        for g in range(Q):
            _physical_gradients(GNg[g], GNag[g], Xv, GP)
            col = e * d_out * Q + g * d_out
            for i in range(n):
                for r in range(d_out):
                    GNe[i, col + r] = GP[i, r]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _point_gradients(X, E, vertices, eg, GNp, GNap, GNe):
    """Evaluation point p writes columns [p*d, (p+1)*d) of GNe."""
    P, n, _ = GNp.shape
    d_out = X.shape[0]
    for p in _nb.prange(P):
        Xv = np.empty((d_out, vertices.shape[0]))
        _vertex_positions(X, E, vertices, eg[p], Xv)
        GP = np.empty((n, d_out))
        _physical_gradients(GNp[p], GNap[p], Xv, GP)
        for i in range(n):
            for r in range(d_out):
                GNe[i, p * d_out + r] = GP[i, r]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _integrate_shape_functions(Ng, wg, detJe, out):
    n, Q = Ng.shape
    for e in _nb.prange(detJe.shape[1]):
        for g in range(Q):
            s = wg[g] * detJe[g, e]
            for i in range(n):
                out[i, e] += s * Ng[i, g]


# -------------------------------------------------------------------------
# Shape functions
# -------------------------------------------------------------------------
def shape_functions(element, quadrature_order: int) -> np.ndarray:
    """
    Shape functions at the element's quadrature points.

    Returns:
        (#element nodes, #quad.pts.) matrix; column g holds N(ξ_g).
    """
    rule = element.quadrature(quadrature_order)
    return element.shape_functions(rule.reference_points)


def shape_function_matrix(mesh, quadrature_order: int) -> sp.csr_matrix:
    """
    Global shape function matrix at element quadrature points.

    Row ``e * Q + g`` holds the values of element ``e``'s basis at its quadrature
    point ``g``, in the columns of the element's nodes.

    Returns:
        (#elements * #quad.pts., #nodes) CSR matrix.
    """
    Ng = shape_functions(mesh.element, quadrature_order)
    n, Q = Ng.shape
    nE = mesh.n_elements
    logger.debug(f"shape_function_matrix: {nE} elements x {Q} quad.pts.")
    rows = np.broadcast_to(np.arange(nE * Q).reshape(nE, Q, 1), (nE, Q, n))
    cols = np.broadcast_to(mesh.E.T[:, None, :], (nE, Q, n))
    data = np.broadcast_to(Ng.T[None, :, :], (nE, Q, n))
    return sp.csr_matrix((data.ravel(), (rows.ravel(), cols.ravel())),
                         shape=(nE * Q, mesh.n_nodes))


def _as_reference(mesh, eg, Xg, in_reference_space: bool):
    if in_reference_space:
        Xi = mesh.element.validate_points(Xg)
        eg = _element_indices(mesh, eg, Xi.shape[1])
        return eg, Xi
    Xg = _domain_points(mesh, Xg)
    eg = _element_indices(mesh, eg, Xg.shape[1])
    return eg, reference_positions(mesh, eg, Xg)


def shape_function_matrix_at(mesh, eg, Xg, in_reference_space: bool = False) -> sp.csr_matrix:
    """
    Shape function matrix at evaluation points ``Xg`` owned by elements ``eg``.

    Args:
        eg: (P,) element index of each point.
        Xg: (mesh.dims, P) domain points, or (element.dims, P) reference
            points when ``in_reference_space`` is True.

    Returns:
        (P, #nodes) CSR matrix.
    """
    eg, Xi = _as_reference(mesh, eg, Xg, in_reference_space)
    N = mesh.element.shape_functions(Xi)
    n, P = N.shape
    logger.debug(f"shape_function_matrix_at: {P} points")
    rows = np.repeat(np.arange(P), n)
    cols = mesh.E[:, eg].T.ravel()
    return sp.csr_matrix((N.T.ravel(), (rows, cols)), shape=(P, mesh.n_nodes))


def shape_functions_at(element, Xi) -> np.ndarray:
    """(#element nodes, P) shape functions at reference points ``Xi`` (element.dims, P)."""
    return element.shape_functions(Xi)


def mesh_shape_functions_at(mesh, eg, Xg, in_reference_space: bool = False) -> np.ndarray:
    """(#element nodes, P) shape functions at domain (or reference) points ``Xg``."""
    _, Xi = _as_reference(mesh, eg, Xg, in_reference_space)
    return mesh.element.shape_functions(Xi)


def integrated_shape_functions(mesh, quadrature_order: int, detJe) -> np.ndarray:
    """
    Integrals ``∫_e N_i`` of the element shape functions.

    Args:
        detJe: (#quad.pts., #elements) jacobian determinants at the quadrature
            points of the rule of order ``quadrature_order``.

    Returns:
        (#element nodes, #elements) matrix.
    """
    rule = mesh.element.quadrature(quadrature_order)
    check_determinants(detJe, rule.n_points, mesh.n_elements, quadrature_order)
    detJe = np.ascontiguousarray(detJe, dtype=float)
    Ng = shape_functions(mesh.element, quadrature_order)
    out = np.zeros((mesh.element.n_nodes, mesh.n_elements))
    logger.debug(f"integrated_shape_functions: {mesh.n_elements} elements x {rule.n_points} quad.pts.")
    _integrate_shape_functions(Ng, np.ascontiguousarray(rule.weights), detJe, out)
    return out


# -------------------------------------------------------------------------
# Gradients
# -------------------------------------------------------------------------
def shape_function_gradients(element, xi, Xv) -> np.ndarray:
    """
    Domain-space gradients of the element's basis at reference point ``xi``.

    Args:
        xi: (element.dims,) reference point.
        Xv: (d_out, #vertices) positions of the element's affine-hull vertices,
            with ``d_out >= element.dims``.

    Returns:
        (#element nodes, d_out) matrix, gradient of node i in row i.
    """
    Xv = np.asarray(Xv, dtype=float)
    n_vertices = element.vertices.shape[0]
    if Xv.ndim != 2 or Xv.shape[1] != n_vertices:
        raise ShapeMismatchError(
            f"Expected {n_vertices} vertex positions as columns, but got Xv of shape {Xv.shape}"
        )
    if Xv.shape[0] < element.dims:
        raise DimensionError(
            f"Expected vertex positions in d >= {element.dims} dimensions, but got d={Xv.shape[0]}"
        )
    GN = element.grad_N(xi)
    J = Xv @ element.affine_base.grad_N(xi)
    d_out, d_in = J.shape
    if d_out == d_in:
        return sla.lu_solve(sla.lu_factor(J.T), GN.T).T
    return (J @ sla.cho_solve(sla.cho_factor(J.T @ J), GN.T)).T


def mesh_shape_function_gradients(mesh, quadrature_order: int) -> np.ndarray:
    """
    Domain-space shape function gradients at every element quadrature point.

    Returns:
        (#element nodes, #elements * mesh.dims * #quad.pts.) matrix; the block of
        element e, quadrature point g starts at column ``e * dims * Q + g * dims``.
    """
    element = mesh.element
    rule = element.quadrature(quadrature_order)
    Xi = rule.reference_points
    GNg = element.shape_function_gradients(Xi)
    GNag = element.affine_base.shape_function_gradients(Xi)
    GNe = np.empty((element.n_nodes, mesh.n_elements * mesh.dims * rule.n_points))
    logger.debug(f"mesh_shape_function_gradients: {mesh.n_elements} elements x {rule.n_points} quad.pts.")
    _quadrature_gradients(mesh.X, mesh.E, element.vertices, GNg, GNag, GNe)
    return GNe


def shape_function_gradients_at(mesh, eg, Xg, in_reference_space: bool = False) -> np.ndarray:
    """
    Domain-space shape function gradients at evaluation points.

    Returns:
        (#element nodes, P * mesh.dims) matrix; point p occupies columns
        ``[p * dims, (p + 1) * dims)``.
    """
    element = mesh.element
    eg, Xi = _as_reference(mesh, eg, Xg, in_reference_space)
    GNp = element.shape_function_gradients(Xi)
    GNap = element.affine_base.shape_function_gradients(Xi)
    GNe = np.empty((element.n_nodes, Xi.shape[1] * mesh.dims))
    logger.debug(f"shape_function_gradients_at: {Xi.shape[1]} points")
    _point_gradients(mesh.X, mesh.E, element.vertices, eg, GNp, GNap, GNe)
    return GNe

"""pymassfem.assembly.mass_matrix
Matrix-free finite element mass matrix ``M_ij = ∫ ρ φ_i φ_j``.

The operator stores one ``n x n`` block per element, side by side in ``Me``
(``n x n·#elements``). For vector-valued fields (``dims > 1``) the true
operator is ``M ⊗ I_dims``: degree of freedom ``dims * node + d`` carries
component ``d`` of ``node``. The Kronecker product is never formed except
when exporting the assembled sparse matrix.
"""
import logging

import numba as _nb
import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import LinearOperator

from pymassfem.errors import DimensionError, ShapeMismatchError, check_determinants, check_matrix_shape
from pymassfem.fem.shape_functions import shape_functions

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# numba kernels
# -------------------------------------------------------------------------
@_nb.njit(cache=True, fastmath=True, parallel=True)
def _element_mass_matrices(NgOuterNg, rho, detJe, Me):
    """Element e writes only columns [e*n, (e+1)*n) of Me."""
    Q, n, _ = NgOuterNg.shape
    for e in _nb.prange(detJe.shape[1]):
        for j in range(n):
            for i in range(n):
                s = 0.0
                for g in range(Q):
                    s += rho[g, e] * detJe[g, e] * NgOuterNg[g, i, j]
                Me[i, e * n + j] = s


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _apply(Me, E, dims, x, y):
    """y += (M ⊗ I_dims) x, column by column.

    Elements sharing nodes scatter into the same rows of y, so elements are
    visited sequentially; only right-hand-side columns run in parallel.
    """
    n, nE = E.shape
    for c in _nb.prange(x.shape[1]):
        for e in range(nE):
            for i in range(n):
                ri = dims * E[i, e]
                for j in range(n):
                    m = Me[i, e * n + j]
                    rj = dims * E[j, e]
                    for d in range(dims):
                        y[ri + d, c] += m * x[rj + d, c]


class MassMatrix:
    """
    Matrix-free mass matrix of a mesh.

    Args:
        mesh: ``pymassfem.core.Mesh``.
        detJe: (#quad.pts., #elements) jacobian determinants at the points of
            the element quadrature rule of order ``quadrature_order``.
        rho: uniform mass density, or (#quad.pts., #elements) density per
            quadrature point.
        dims: number of field components, ``dims >= 1``.
        quadrature_order: defaults to ``2 * mesh.order``, which integrates
            ``φ_i φ_j`` exactly on affine elements.

    ``mesh`` and ``detJe`` are borrowed: ``detJe`` is kept as a read-only view
    of the caller's array when it already has float dtype, and neither may be
    modified while the operator is in use. ``Me`` is owned.
    """

    def __init__(self, mesh, detJe, rho=1.0, dims: int = 1, quadrature_order: int = None):
        self.mesh = mesh
        self.dims = int(dims)
        self.quadrature_order = 2 * mesh.order if quadrature_order is None else int(quadrature_order)
        self.rule = mesh.element.quadrature(self.quadrature_order)
        self._check_dims()
        check_determinants(detJe, self.rule.n_points, mesh.n_elements, self.quadrature_order)
        detJe = np.asarray(detJe, dtype=float).view()
        detJe.flags.writeable = False
        self.detJe = detJe
        self.Me = None
        logger.debug(f"MassMatrix: {mesh.n_elements} elements, quadrature order "
                     f"{self.quadrature_order} ({self.rule.n_points} pts.), dims={self.dims}")
        self.compute_element_mass_matrices(rho)

    # -- validation ------------------------------------------------------
    def _check_dims(self):
        if self.dims < 1:
            raise DimensionError(f"Expected output dimensionality >= 1, got {self.dims} instead")

    def _density(self, rho) -> np.ndarray:
        shape = (self.rule.n_points, self.mesh.n_elements)
        if np.ndim(rho) == 0:
            return np.full(shape, float(rho))
        check_matrix_shape("mass density rho", rho, shape)
        return np.ascontiguousarray(rho, dtype=float)

    def check_valid_state(self) -> None:
        """Raise if ``detJe``, ``dims`` or ``Me`` no longer fit the mesh."""
        check_determinants(self.detJe, self.rule.n_points, self.mesh.n_elements, self.quadrature_order)
        self._check_dims()
        if self.Me is not None:
            n = self.mesh.element.n_nodes
            check_matrix_shape("element mass matrices Me", self.Me, (n, n * self.mesh.n_elements))

    # -- dimensions ------------------------------------------------------
    @property
    def input_dimensions(self) -> int:
        return self.dims * self.mesh.n_nodes

    @property
    def output_dimensions(self) -> int:
        return self.input_dimensions

    @property
    def shape(self):
        return (self.output_dimensions, self.input_dimensions)

    # -- element blocks --------------------------------------------------
    def compute_element_mass_matrices(self, rho=1.0) -> None:
        """
        (Re)compute ``Me`` for density ``rho``.

        ``Me`` is replaced only after the new blocks are fully computed; a
        failing call leaves the previous ``Me`` in place.
        """
        self.check_valid_state()
        rho = self._density(rho)
        Ng = shape_functions(self.mesh.element, self.quadrature_order)
        wg = self.rule.weights
        NgOuterNg = np.ascontiguousarray(
            wg[:, None, None] * (Ng.T[:, :, None] * Ng.T[:, None, :]))
        n = self.mesh.element.n_nodes
        Me = np.empty((n, n * self.mesh.n_elements))
        _element_mass_matrices(NgOuterNg, rho, np.ascontiguousarray(self.detJe), Me)
        self.Me = Me

    def element_mass_matrix(self, e: int) -> np.ndarray:
        """``n x n`` block of element ``e`` (a view into ``Me``)."""
        n = self.mesh.element.n_nodes
        return self.Me[:, e * n:(e + 1) * n]

    # -- operator --------------------------------------------------------
    def apply(self, x, y) -> None:
        """
        Accumulate ``M x`` into ``y`` in place.

        ``x`` and ``y`` are vectors of length ``dims * #nodes`` or matrices with
        that many rows and the same number of columns. ``y`` must be a writable
        float array; it is left unchanged if the dimensions do not match.
        """
        self.check_valid_state()
        if not isinstance(y, np.ndarray) or y.dtype != np.float64:
            raise TypeError(f"Output y must be a float64 numpy array, got {type(y).__name__} "
                            f"of dtype {getattr(y, 'dtype', None)}")
        if not y.flags.writeable:
            raise ValueError("Output y is read-only")
        x = np.asarray(x, dtype=float)
        n_dofs = self.input_dimensions
        x2 = x[:, None] if x.ndim == 1 else x
        y2 = y[:, None] if y.ndim == 1 else y
        if (x2.ndim != 2 or y2.ndim != 2 or x2.shape[0] != n_dofs or y2.shape[0] != n_dofs
                or x2.shape[1] != y2.shape[1]):
            raise ShapeMismatchError(
                f"Expected inputs and outputs to have rows |#nodes*dims|={n_dofs} and same number "
                f"of columns, but got dimensions x,y={x.shape}, {y.shape}"
            )
        _apply(self.Me, self.mesh.E, self.dims, x2, y2)

    def __matmul__(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(x.shape)
        self.apply(x, y)
        return y

    def as_linear_operator(self) -> LinearOperator:
        """Wrap ``apply`` as a ``scipy.sparse.linalg.LinearOperator`` (symmetric)."""
        return LinearOperator(self.shape, matvec=self.__matmul__, rmatvec=self.__matmul__,
                              matmat=self.__matmul__, dtype=float)

    # -- export ----------------------------------------------------------
    def to_matrix(self) -> sp.csc_matrix:
        """Assembled ``(M ⊗ I_dims)`` in compressed sparse column format."""
        self.check_valid_state()
        n = self.mesh.element.n_nodes
        nE = self.mesh.n_elements
        dims = self.dims
        comps = np.arange(dims)
        # Me[i, e*n + j] -> me[e, i, j]
        me = self.Me.reshape(n, nE, n).transpose(1, 0, 2)
        nodes = self.mesh.E.T
        rows = dims * nodes[:, :, None, None] + comps
        cols = dims * nodes[:, None, :, None] + comps
        shape = (nE, n, n, dims)
        rows = np.broadcast_to(rows, shape)
        cols = np.broadcast_to(cols, shape)
        data = np.broadcast_to(me[..., None], shape)
        logger.debug(f"MassMatrix.to_matrix: {data.size} triplets, size {self.shape}")
        M = sp.coo_matrix((data.ravel(), (rows.ravel(), cols.ravel())), shape=self.shape)
        return M.tocsc()

    def to_lumped_masses(self) -> np.ndarray:
        """Row-sum lumped masses, length ``dims * #nodes``."""
        self.check_valid_state()
        n = self.mesh.element.n_nodes
        row_sums = self.Me.reshape(n, self.mesh.n_elements, n).sum(axis=2)
        m = np.zeros(self.mesh.n_nodes)
        np.add.at(m, self.mesh.E, row_sums)
        return np.repeat(m, self.dims)

    def __repr__(self):
        return (f"<MassMatrix {self.mesh.element.name} P/Q{self.mesh.order}: "
                f"{self.mesh.n_elements} elements, dims={self.dims}, shape={self.shape}>")

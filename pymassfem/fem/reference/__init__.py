# pymassfem.fem.reference
"""
Order-agnostic reference-element factory.

A ``ReferenceElement`` is the static description every routine in
``pymassfem`` consumes: node/vertex layout, polynomial order, reference
dimension, basis ``N(ξ)`` and its gradient, and quadrature rules indexed by
polynomial order.
"""
from functools import lru_cache
import logging
import math

import numpy as np

from pymassfem.errors import DimensionError
from pymassfem.integration import quadrature
from pymassfem.integration.pre_tabulates import _tabulate_basis, _tabulate_basis_grad
from .simplex_pn import simplex_pn
from .tensor_qn import tensor_qn

logger = logging.getLogger(__name__)

MAX_ORDER = 3

# name -> (family, reference dimension)
_ELEMENTS = {
    "line": ("simplex", 1),
    "triangle": ("simplex", 2),
    "tetrahedron": ("simplex", 3),
    "quadrilateral": ("tensor", 2),
    "hexahedron": ("tensor", 3),
}
_ALIASES = {"tri": "triangle", "tet": "tetrahedron", "quad": "quadrilateral", "hex": "hexahedron"}


class ReferenceElement:
    def __init__(self, name, family, dims, order, coordinates, exponents, coeffs, affine_base=None):
        self.name = name
        self.family = family
        self.dims = dims
        self.order = order
        self.coordinates = coordinates
        self.exponents = np.ascontiguousarray(exponents, dtype=np.int64)
        self.coeffs = np.ascontiguousarray(coeffs, dtype=float)
        self.n_nodes = coeffs.shape[0]
        self.affine_base = self if affine_base is None else affine_base
        self.vertices = self._locate_vertices()
        for a in (self.coordinates, self.exponents, self.coeffs, self.vertices):
            a.flags.writeable = False

    def __repr__(self):
        return f"<ReferenceElement {self.name} order={self.order} nodes={self.n_nodes}>"

    def _locate_vertices(self) -> np.ndarray:
        """Node indices matching the affine base's nodes, in the affine base's order."""
        corners = self.affine_base.coordinates
        idx = []
        for v in range(corners.shape[1]):
            hit = np.flatnonzero(np.all(np.isclose(self.coordinates, corners[:, [v]]), axis=0))
            idx.append(int(hit[0]))
        return np.array(idx, dtype=np.int64)

    @property
    def has_constant_jacobian(self) -> bool:
        return self.family == "simplex" and self.order == 1

    @property
    def measure(self) -> float:
        """Volume of the reference domain."""
        return 1.0 / math.factorial(self.dims) if self.family == "simplex" else 1.0

    def quadrature(self, order: int) -> quadrature.QuadratureRule:
        return quadrature.volume(self.family, self.dims, order)

    # -- evaluation ------------------------------------------------------
    def validate_points(self, Xi) -> np.ndarray:
        Xi = np.asarray(Xi, dtype=float)
        if Xi.ndim != 2 or Xi.shape[0] != self.dims:
            rows = Xi.shape[0] if Xi.ndim >= 1 else 0
            raise DimensionError(
                f"Expected evaluation points in d={self.dims} dimensions, but got Xi.rows()={rows}"
            )
        return np.ascontiguousarray(Xi)

    def shape_functions(self, Xi) -> np.ndarray:
        """(n_nodes, P) basis values at the columns of ``Xi`` (dims, P)."""
        Xi = self.validate_points(Xi)
        N = np.empty((self.n_nodes, Xi.shape[1]))
        _tabulate_basis(self.coeffs, self.exponents, Xi, N)
        return N

    def shape_function_gradients(self, Xi) -> np.ndarray:
        """(P, n_nodes, dims) reference gradients at the columns of ``Xi``."""
        Xi = self.validate_points(Xi)
        G = np.empty((Xi.shape[1], self.n_nodes, self.dims))
        _tabulate_basis_grad(self.coeffs, self.exponents, Xi, G)
        return G

    def N(self, xi) -> np.ndarray:
        return self.shape_functions(np.reshape(xi, (-1, 1)))[:, 0]

    def grad_N(self, xi) -> np.ndarray:
        return self.shape_function_gradients(np.reshape(xi, (-1, 1)))[0]


def _canonical(element_type: str) -> str:
    name = _ALIASES.get(element_type, element_type)
    if name not in _ELEMENTS:
        raise KeyError(element_type)
    return name


@lru_cache(maxsize=None)
def _build(name: str, poly_order: int) -> ReferenceElement:
    family, dims = _ELEMENTS[name]
    if family == "simplex":
        coordinates, exponents, coeffs = simplex_pn(dims, poly_order)
    else:
        coordinates, exponents, coeffs = tensor_qn(dims, poly_order)
    affine = None if poly_order == 1 else _build(name, 1)
    logger.debug(f"Built reference {name} of order {poly_order} ({coeffs.shape[0]} nodes).")
    return ReferenceElement(name, family, dims, poly_order, coordinates, exponents, coeffs, affine)


def get_reference(element_type: str, poly_order: int = 1) -> ReferenceElement:
    name = _canonical(element_type)
    if not 1 <= int(poly_order) <= MAX_ORDER:
        raise ValueError(f"Unsupported polynomial order {poly_order} for {name}; "
                         f"expected 1..{MAX_ORDER}.")
    return _build(name, int(poly_order))


__all__ = ["MAX_ORDER", "ReferenceElement", "get_reference"]

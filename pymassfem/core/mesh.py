import logging
from typing import Union

import numpy as np

from pymassfem.errors import DimensionError, ShapeMismatchError
from pymassfem.fem.reference import ReferenceElement, get_reference

logger = logging.getLogger(__name__)


def _readonly(a: np.ndarray) -> np.ndarray:
    view = a.view()
    view.flags.writeable = False
    return view


class Mesh:
    """
    Finite element mesh of a single element type.

    Geometry and connectivity are stored column-wise: ``X`` is
    ``(dims, #nodes)`` and ``E`` is ``(#element nodes, #elements)``, where
    column ``e`` of ``E`` lists the nodes of element ``e`` in the order of
    the reference element's ``coordinates``. Both are kept as read-only views
    of the caller's arrays: objects built on a mesh (mass matrices, gradient
    tables) assume the geometry never changes while they are alive.
    """

    def __init__(self,
                 X: np.ndarray,
                 E: np.ndarray,
                 element: Union[str, ReferenceElement] = 'triangle',
                 order: int = 1):
        if not isinstance(element, ReferenceElement):
            element = get_reference(element, order)
        X = np.asarray(X, dtype=float)
        E = np.asarray(E)
        if X.ndim != 2 or E.ndim != 2:
            raise ShapeMismatchError(
                f"Expected 2D node positions X and connectivity E, but got X.ndim={X.ndim}, E.ndim={E.ndim}"
            )
        if E.shape[0] != element.n_nodes:
            raise ShapeMismatchError(
                f"Expected connectivity with {element.n_nodes} rows (nodes of {element!r}), "
                f"but got E of dimensions {E.shape[0]}x{E.shape[1]}"
            )
        if X.shape[0] < element.dims:
            raise DimensionError(
                f"Cannot embed a {element.dims}-dimensional {element.name} in d={X.shape[0]} dimensions"
            )
        if E.size and (E.min() < 0 or E.max() >= X.shape[1]):
            raise DimensionError(
                f"Connectivity entries must index into 0..{X.shape[1] - 1}, "
                f"but got range [{E.min()}, {E.max()}]"
            )
        self.element = element
        self.X = _readonly(np.ascontiguousarray(X))
        self.E = _readonly(np.ascontiguousarray(E, dtype=np.int64))
        logger.debug(f"Mesh of {self.n_elements} {element.name} (order {element.order}) elements, "
                     f"{self.n_nodes} nodes in d={self.dims}.")

    @classmethod
    def from_rows(cls, points, cells, element='triangle', order=1) -> "Mesh":
        """Build a mesh from row-major ``points`` (#nodes, dims) and ``cells`` (#elements, #element nodes)."""
        return cls(np.asarray(points, dtype=float).T, np.asarray(cells).T, element, order)

    @property
    def dims(self) -> int:
        return self.X.shape[0]

    @property
    def order(self) -> int:
        return self.element.order

    @property
    def n_nodes(self) -> int:
        return self.X.shape[1]

    @property
    def n_elements(self) -> int:
        return self.E.shape[1]

    def element_vertices(self, e: int) -> np.ndarray:
        """(dims, #vertices) positions of element ``e``'s affine-hull vertices."""
        return self.X[:, self.E[self.element.vertices, e]]

    def element_nodes(self, e: int) -> np.ndarray:
        """(dims, #element nodes) positions of all nodes of element ``e``."""
        return self.X[:, self.E[:, e]]

    def __repr__(self):
        return (f"<Mesh {self.element.name} P/Q{self.order}: {self.n_elements} elements, "
                f"{self.n_nodes} nodes, d={self.dims}>")

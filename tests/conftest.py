import numpy as np
import pytest

from pymassfem.core import Mesh
from pymassfem.fem.reference import get_reference


@pytest.fixture
def unit_square_tri():
    """Unit square split into two P1 triangles."""
    X = np.array([[0.0, 1.0, 1.0, 0.0],
                  [0.0, 0.0, 1.0, 1.0]])
    E = np.array([[0, 0],
                  [1, 2],
                  [2, 3]])
    return Mesh(X, E, 'triangle', 1)


@pytest.fixture
def reference_tri():
    X = np.array([[0.0, 1.0, 0.0],
                  [0.0, 0.0, 1.0]])
    return Mesh(X, np.arange(3).reshape(3, 1), 'tri', 1)


@pytest.fixture
def reference_tet():
    X = np.array([[0.0, 1.0, 0.0, 0.0],
                  [0.0, 0.0, 1.0, 0.0],
                  [0.0, 0.0, 0.0, 1.0]])
    return Mesh(X, np.arange(4).reshape(4, 1), 'tet', 1)


@pytest.fixture
def two_quads():
    """[0,2]x[0,1] as two unit Q1 quads."""
    points = [[0, 0], [1, 0], [2, 0], [0, 1], [1, 1], [2, 1]]
    cells = [[0, 1, 3, 4], [1, 2, 4, 5]]
    return Mesh.from_rows(points, cells, 'quad', 1)


def _affine_mesh(element_type, order, A, b):
    """Single element whose nodes are the reference nodes mapped by x = A ξ + b."""
    ref = get_reference(element_type, order)
    X = np.asarray(A, dtype=float) @ ref.coordinates + np.reshape(b, (-1, 1))
    return Mesh(X, np.arange(ref.n_nodes).reshape(-1, 1), ref)


@pytest.fixture
def affine_mesh():
    return _affine_mesh


@pytest.fixture
def distorted_p2_tri():
    return _affine_mesh('triangle', 2, [[2.0, 0.5], [0.3, 1.5]], [0.1, -0.2])

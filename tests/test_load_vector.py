import numpy as np
import pytest

from pymassfem.assembly import MassMatrix, load_vector
from pymassfem.errors import DimensionError, ShapeMismatchError
from pymassfem.fem.jacobian import jacobian_determinants


def test_unit_source_equals_lumped_masses(unit_square_tri, distorted_p2_tri, two_quads):
    for mesh in (unit_square_tri, distorted_p2_tri, two_quads):
        detJe = jacobian_determinants(mesh, 2 * mesh.order)
        b = load_vector(mesh, detJe)
        m = MassMatrix(mesh, detJe).to_lumped_masses()
        assert np.allclose(b, m)


def test_vector_source(two_quads):
    detJe = jacobian_determinants(two_quads, 2)
    f = np.stack([np.ones_like(detJe), 3.0 * np.ones_like(detJe)])
    b = load_vector(two_quads, detJe, f, dims=2)
    assert b.shape == (2 * two_quads.n_nodes,)
    assert np.allclose(b[1::2], 3.0 * b[0::2])
    assert np.isclose(b.sum(), 4.0 * 2.0)


def test_source_at_quadrature_points(unit_square_tri):
    detJe = jacobian_determinants(unit_square_tri, 2)
    f = np.zeros_like(detJe)
    f[:, 0] = 2.0
    b = load_vector(unit_square_tri, detJe, f)
    # only element 0 = nodes 0, 1, 2 is loaded
    assert np.allclose(b, [2.0 * 0.5 / 3] * 3 + [0.0])


def test_invalid_sources(unit_square_tri):
    detJe = jacobian_determinants(unit_square_tri, 2)
    with pytest.raises(ShapeMismatchError, match="source f"):
        load_vector(unit_square_tri, detJe, np.ones((2, 2)))
    with pytest.raises(ShapeMismatchError):
        load_vector(unit_square_tri, detJe[:1], 1.0)
    with pytest.raises(DimensionError):
        load_vector(unit_square_tri, detJe, dims=0)

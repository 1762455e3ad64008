import numpy as np
import pytest

from pymassfem.errors import DimensionError, ShapeMismatchError
from pymassfem.fem.jacobian import jacobian_determinants
from pymassfem.fem.reference import get_reference
from pymassfem.fem.shape_functions import (integrated_shape_functions, mesh_shape_functions_at,
                                           shape_function_matrix, shape_function_matrix_at,
                                           shape_functions, shape_functions_at)


def test_shape_functions_at_quadrature():
    ref = get_reference('tetrahedron', 2)
    rule = ref.quadrature(4)
    Ng = shape_functions(ref, 4)
    assert Ng.shape == (10, rule.n_points)
    assert np.allclose(Ng.sum(axis=0), 1.0)
    assert np.allclose(Ng, shape_functions_at(ref, rule.reference_points))


def test_global_shape_function_matrix(unit_square_tri):
    mesh = unit_square_tri
    Ng = shape_functions(mesh.element, 2)
    Q = Ng.shape[1]
    N = shape_function_matrix(mesh, 2)
    assert N.shape == (2 * Q, 4)
    assert np.allclose(np.asarray(N.sum(axis=1)).ravel(), 1.0)
    assert np.all(np.diff(N.indptr) == 3)
    dense = N.toarray()
    for e in range(2):
        for g in range(Q):
            # element-major rows
            assert np.allclose(dense[e * Q + g, mesh.E[:, e]], Ng[:, g])


def test_matrix_at_reference_vertices(unit_square_tri):
    mesh = unit_square_tri
    Xi = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    N = shape_function_matrix_at(mesh, [1, 1, 1], Xi, in_reference_space=True).toarray()
    assert N.shape == (3, 4)
    assert np.allclose(N[:, mesh.E[:, 1]], np.eye(3))
    assert np.allclose(N[:, 1], 0.0)


def test_domain_points_interpolate_linear_field(distorted_p2_tri, unit_square_tri):
    for mesh, eg, Xg in [
        (unit_square_tri, [0, 1], np.array([[0.75, 0.25], [0.25, 0.5]])),
        (distorted_p2_tri, [0, 0], np.array([[0.9, 1.2], [0.2, 0.6]])),
    ]:
        f = 2.0 * mesh.X[0] + 3.0 * mesh.X[1] + 1.0
        N = mesh_shape_functions_at(mesh, eg, Xg)
        values = [N[:, p] @ f[mesh.E[:, e]] for p, e in enumerate(eg)]
        assert np.allclose(values, 2.0 * Xg[0] + 3.0 * Xg[1] + 1.0)
        Nmat = shape_function_matrix_at(mesh, eg, Xg)
        assert np.allclose(Nmat @ f, 2.0 * Xg[0] + 3.0 * Xg[1] + 1.0)


def test_integrated_shape_functions(unit_square_tri, distorted_p2_tri):
    detJe = jacobian_determinants(unit_square_tri, 2)
    IN = integrated_shape_functions(unit_square_tri, 2, detJe)
    assert IN.shape == (3, 2)
    assert np.allclose(IN, 0.5 / 3)

    mesh = distorted_p2_tri
    detJe = jacobian_determinants(mesh, 4)
    IN = integrated_shape_functions(mesh, 4, detJe)
    area = 0.5 * abs(np.linalg.det([[2.0, 0.5], [0.3, 1.5]]))
    assert np.isclose(IN.sum(), area)
    # P2 triangle: vertex functions integrate to zero, edge functions to area / 3
    assert np.allclose(IN[mesh.element.vertices, 0], 0.0, atol=1e-12)


def test_integrated_shape_functions_checks_determinants(unit_square_tri):
    detJe = jacobian_determinants(unit_square_tri, 2)
    with pytest.raises(ShapeMismatchError, match="Expected element jacobian determinants"):
        integrated_shape_functions(unit_square_tri, 2, detJe[:, :1])
    with pytest.raises(ShapeMismatchError):
        integrated_shape_functions(unit_square_tri, 4, detJe)


def test_evaluation_point_errors(unit_square_tri):
    ref = unit_square_tri.element
    with pytest.raises(DimensionError):
        shape_functions_at(ref, np.zeros((3, 2)))
    with pytest.raises(DimensionError):
        shape_function_matrix_at(unit_square_tri, [0], np.zeros((1, 1)), in_reference_space=True)
    with pytest.raises(DimensionError):
        mesh_shape_functions_at(unit_square_tri, [0], np.zeros((3, 1)))
    with pytest.raises(ShapeMismatchError):
        mesh_shape_functions_at(unit_square_tri, [0, 1, 1], np.zeros((2, 2)))

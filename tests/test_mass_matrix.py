import numpy as np
import pytest
from scipy.sparse.linalg import cg

from pymassfem.assembly import MassMatrix
from pymassfem.core import Mesh
from pymassfem.errors import DimensionError, FEMArgumentError, ShapeMismatchError
from pymassfem.fem.jacobian import jacobian_determinants


def mass_matrix(mesh, rho=1.0, dims=1):
    detJe = jacobian_determinants(mesh, 2 * mesh.order)
    return MassMatrix(mesh, detJe, rho=rho, dims=dims)


def test_reference_triangle_golden(reference_tri):
    M = mass_matrix(reference_tri)
    expected = np.array([[2, 1, 1], [1, 2, 1], [1, 1, 2]]) / 24.0
    assert M.Me.shape == (3, 3)
    assert np.allclose(M.Me, expected)
    assert np.allclose(M.to_matrix().toarray(), expected)


def test_reference_tetrahedron_golden(reference_tet):
    M = mass_matrix(reference_tet)
    assert np.allclose(M.Me, (np.ones((4, 4)) + np.eye(4)) / 120.0)


def test_reference_line_and_quad_golden():
    line = Mesh(np.array([[0.0, 1.0]]), np.array([[0], [1]]), 'line')
    M1 = np.array([[2, 1], [1, 2]]) / 6.0
    assert np.allclose(mass_matrix(line).Me, M1)

    quad = Mesh.from_rows([[0, 0], [1, 0], [0, 1], [1, 1]], [[0, 1, 2, 3]], 'quad')
    assert np.allclose(mass_matrix(quad).Me, np.kron(M1, M1))


def test_assembled_matrix_is_symmetric(two_quads, distorted_p2_tri):
    for mesh in (two_quads, distorted_p2_tri):
        A = mass_matrix(mesh, dims=2).to_matrix()
        assert A.format == "csc"
        assert A.shape == (2 * mesh.n_nodes, 2 * mesh.n_nodes)
        assert np.allclose(A.toarray(), A.toarray().T)


def test_kronecker_with_identity(unit_square_tri):
    A1 = mass_matrix(unit_square_tri).to_matrix().toarray()
    A3 = mass_matrix(unit_square_tri, dims=3).to_matrix().toarray()
    assert np.allclose(A3, np.kron(A1, np.eye(3)))


def test_apply_matches_matrix_and_accumulates(unit_square_tri):
    M = mass_matrix(unit_square_tri, rho=2.5, dims=2)
    A = M.to_matrix()
    rng = np.random.default_rng(0)
    x = rng.random((M.input_dimensions, 3))
    y = np.ones((M.output_dimensions, 3))
    M.apply(x, y)
    assert np.allclose(y, 1.0 + A @ x)
    # bilinear form equivalence
    z = rng.random(M.output_dimensions)
    Mx = np.zeros(M.output_dimensions)
    M.apply(x[:, 0], Mx)
    assert np.isclose(z @ Mx, z @ (A @ x[:, 0]))


def test_lumped_masses(two_quads):
    rho = 3.0
    M = mass_matrix(two_quads, rho=rho, dims=2)
    m = M.to_lumped_masses()
    assert m.shape == (2 * two_quads.n_nodes,)
    assert np.allclose(m, np.asarray(M.to_matrix().sum(axis=1)).ravel())
    wg = M.rule.weights
    total = (wg[:, None] * rho * M.detJe).sum() * M.dims
    assert np.isclose(m.sum(), total)
    assert np.isclose(m.sum(), 2 * rho * 2.0)


def test_density_per_quadrature_point(unit_square_tri):
    M = mass_matrix(unit_square_tri, rho=2.0)
    rho = np.full(M.detJe.shape, 2.0)
    assert np.allclose(mass_matrix(unit_square_tri, rho=rho).Me, M.Me)
    rho[:, 1] = 0.0
    M.compute_element_mass_matrices(rho)
    assert np.allclose(M.element_mass_matrix(1), 0.0)
    assert not np.allclose(M.element_mass_matrix(0), 0.0)


def test_recompute_is_bit_identical(distorted_p2_tri):
    M = mass_matrix(distorted_p2_tri)
    rho = np.linspace(1.0, 2.0, M.detJe.size).reshape(M.detJe.shape)
    M.compute_element_mass_matrices(rho)
    Me = M.Me.copy()
    M.compute_element_mass_matrices(rho)
    assert np.array_equal(M.Me, Me)


def test_high_order_total_mass(distorted_p2_tri):
    M = mass_matrix(distorted_p2_tri, rho=1.5)
    area = 0.5 * abs(np.linalg.det([[2.0, 0.5], [0.3, 1.5]]))
    assert np.isclose(M.to_lumped_masses().sum(), 1.5 * area)
    ones = np.ones(M.input_dimensions)
    assert np.isclose(ones @ (M @ ones), 1.5 * area)


def test_invalid_construction(unit_square_tri):
    detJe = jacobian_determinants(unit_square_tri, 2)
    with pytest.raises(ShapeMismatchError, match="order=2"):
        MassMatrix(unit_square_tri, detJe[:, :1])
    with pytest.raises(ShapeMismatchError):
        MassMatrix(unit_square_tri, detJe, quadrature_order=4)
    with pytest.raises(ShapeMismatchError, match="mass density rho"):
        MassMatrix(unit_square_tri, detJe, rho=np.ones((1, 2)))
    with pytest.raises(DimensionError):
        MassMatrix(unit_square_tri, detJe, dims=0)
    with pytest.raises(ValueError):
        MassMatrix(unit_square_tri, detJe, dims=-1)


def test_failed_recompute_keeps_state(unit_square_tri):
    M = mass_matrix(unit_square_tri)
    Me = M.Me
    before = Me.copy()
    with pytest.raises(ShapeMismatchError):
        M.compute_element_mass_matrices(np.ones((2, 2, 2)))
    assert M.Me is Me
    assert np.array_equal(M.Me, before)


def test_failed_apply_keeps_output(unit_square_tri):
    M = mass_matrix(unit_square_tri, dims=2)
    y = np.full((M.output_dimensions, 2), 7.0)
    with pytest.raises(ShapeMismatchError):
        M.apply(np.ones((M.input_dimensions - 1, 2)), y)
    with pytest.raises(ShapeMismatchError):
        M.apply(np.ones((M.input_dimensions, 3)), y)
    with pytest.raises(FEMArgumentError):
        M.apply(np.ones(M.input_dimensions), np.zeros(4))
    assert np.all(y == 7.0)
    with pytest.raises(TypeError):
        M.apply(np.ones(M.input_dimensions), [0.0] * M.output_dimensions)


def test_borrowed_determinants(unit_square_tri):
    detJe = jacobian_determinants(unit_square_tri, 2)
    M = MassMatrix(unit_square_tri, detJe)
    assert np.shares_memory(M.detJe, detJe)
    with pytest.raises(ValueError):
        M.detJe[0, 0] = 2.0
    M.check_valid_state()


def test_linear_operator_solve(two_quads):
    M = mass_matrix(two_quads, dims=2)
    op = M.as_linear_operator()
    assert op.shape == M.shape == (12, 12)
    A = M.to_matrix()
    x = np.linspace(0.0, 1.0, 12)
    assert np.allclose(op @ x, A @ x)
    assert np.allclose(op.matmat(np.eye(12)), A.toarray())
    b = A @ x
    u, info = cg(op, b, rtol=1e-12)
    assert info == 0
    assert np.allclose(u, x, atol=1e-6)

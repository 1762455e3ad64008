from functools import lru_cache
import itertools

import numpy as np
import sympy as sp


def _lattice(dims: int, n: int):
    """Multi-indices α with |α| <= n, first component running fastest."""
    return [idx[::-1] for idx in itertools.product(range(n + 1), repeat=dims)
            if sum(idx) <= n]


@lru_cache(maxsize=None)
def simplex_pn(dims: int, n: int):
    """
    Lagrange P_n basis on the unit d-simplex, in monomial form.

    Args:
        dims: Reference dimension (1 = line, 2 = triangle, 3 = tetrahedron).
        n: Polynomial order of the element.

    Returns:
        tuple: (coordinates, exponents, coeffs)
            - coordinates: (dims, n_nodes) reference node positions, nodes on the
              lattice {α/n : |α| <= n} with the first coordinate running fastest.
            - exponents: (n_monomials, dims) monomial exponents.
            - coeffs: (n_nodes, n_monomials) so that N_i(ξ) = Σ_j coeffs[i, j] ξ^exponents[j].
    """
    if n < 1:
        raise ValueError("Polynomial order n must be positive.")

    # 1. Nodal points on the lattice
    nodes = _lattice(dims, n)
    num_nodes = len(nodes)

    # 2. Monomials of total degree <= n
    monomials = _lattice(dims, n)
    if len(monomials) != num_nodes:
        raise RuntimeError(f"Internal error: Mismatch between number of nodes ({num_nodes}) "
                           f"and number of monomials ({len(monomials)}) for order n={n}.")

    # 3. Vandermonde matrix V[i, j] = node_i ** monomial_j, exact rationals
    V = sp.zeros(num_nodes, num_nodes)
    for i, node in enumerate(nodes):
        for j, alpha in enumerate(monomials):
            V[i, j] = sp.prod([sp.Rational(c, n) ** a for c, a in zip(node, alpha)])

    # 4. Lagrange coefficients: rows of V^{-T}
    try:
        coeffs = V.T.inv()
    except ValueError as e:
        raise RuntimeError(f"Vandermonde matrix is singular for P{n} in d={dims}. Error: {e}")

    coordinates = np.array(nodes, dtype=float).T / n
    exponents = np.array(monomials, dtype=np.int64)
    return coordinates, exponents, np.array(coeffs.tolist(), dtype=float)

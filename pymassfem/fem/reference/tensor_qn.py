from functools import lru_cache
import itertools

import numpy as np
import sympy as sp


@lru_cache(maxsize=None)
def _lagrange_basis_1d(n: int):
    """1D Lagrange basis on equispaced nodes i/n of [0,1], as monomial coefficients c[i, p]."""
    x = sp.symbols('x')
    nodes = [sp.Rational(i, n) for i in range(n + 1)]
    coeffs = np.zeros((n + 1, n + 1))
    for i, xi in enumerate(nodes):
        Li = sp.Integer(1)
        for j, xj in enumerate(nodes):
            if i == j:
                continue
            Li *= (x - xj) / (xi - xj)
        for (p,), c in sp.Poly(sp.expand(Li), x).terms():
            coeffs[i, p] = float(c)
    return coeffs


@lru_cache(maxsize=None)
def tensor_qn(dims: int, n: int):
    """
    Tensor-product Q_n on [0,1]^d.
    Returns: (coordinates, exponents, coeffs) with the same meaning as simplex_pn.
    Stacking order is lexicographic with the first coordinate innermost:
    index = i_0 + (n+1) i_1 + (n+1)^2 i_2
    """
    if n < 1:
        raise ValueError("Polynomial order n must be positive.")
    c1 = _lagrange_basis_1d(n)
    coeffs = c1
    for _ in range(dims - 1):
        coeffs = np.kron(c1, coeffs)  # slower coordinate outer
    lattice = [idx[::-1] for idx in itertools.product(range(n + 1), repeat=dims)]
    coordinates = np.array(lattice, dtype=float).T / n
    exponents = np.array(lattice, dtype=np.int64)
    return coordinates, exponents, coeffs

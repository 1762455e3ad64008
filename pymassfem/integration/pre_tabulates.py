"""pymassfem.integration.pre_tabulates
Numba kernels tabulating Lagrange bases stored in monomial form:

    N_i(ξ) = Σ_j coeffs[i, j] Π_k ξ_k ** exponents[j, k]
"""
import numba as _nb
import numpy as np


@_nb.njit(cache=True, fastmath=True)
def _basis_at(coeffs, exponents, xi, out):
    """Basis values at a single reference point ``xi`` (d,) into ``out`` (n,)."""
    n, m = coeffs.shape
    d = exponents.shape[1]
    for i in range(n):
        out[i] = 0.0
    for j in range(m):
        mono = 1.0
        for k in range(d):
            mono *= xi[k] ** exponents[j, k]
        for i in range(n):
            out[i] += coeffs[i, j] * mono


@_nb.njit(cache=True, fastmath=True)
def _basis_grad_at(coeffs, exponents, xi, out):
    """Reference gradients at a single point ``xi`` (d,) into ``out`` (n, d)."""
    n, m = coeffs.shape
    d = exponents.shape[1]
    for i in range(n):
        for k in range(d):
            out[i, k] = 0.0
    for j in range(m):
        for k in range(d):
            p = exponents[j, k]
            if p == 0:
                continue
            dmono = p * xi[k] ** (p - 1)
            for l in range(d):
                if l != k:
                    dmono *= xi[l] ** exponents[j, l]
            for i in range(n):
                out[i, k] += coeffs[i, j] * dmono


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _tabulate_basis(coeffs, exponents, Xi, N):
    """
    Tabulates basis values at the columns of ``Xi`` (d, P) into ``N`` (n, P).
    Every point writes only its own column.
    """
    P = Xi.shape[1]
    d = Xi.shape[0]
    for p in _nb.prange(P):
        xi = np.empty(d)
        for k in range(d):
            xi[k] = Xi[k, p]
        col = np.empty(coeffs.shape[0])
        _basis_at(coeffs, exponents, xi, col)
        for i in range(col.shape[0]):
            N[i, p] = col[i]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def _tabulate_basis_grad(coeffs, exponents, Xi, G):
    """
    Tabulates reference gradients at the columns of ``Xi`` (d, P) into ``G`` (P, n, d).
    """
    P = Xi.shape[1]
    d = Xi.shape[0]
    for p in _nb.prange(P):
        xi = np.empty(d)
        for k in range(d):
            xi[k] = Xi[k, p]
        _basis_grad_at(coeffs, exponents, xi, G[p])

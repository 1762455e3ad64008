"""pymassfem.assembly.load_vector"""
import logging

import numpy as np

from pymassfem.errors import DimensionError, ShapeMismatchError, check_determinants
from pymassfem.fem.shape_functions import integrated_shape_functions

logger = logging.getLogger(__name__)

__all__ = ["load_vector"]


def load_vector(mesh, detJe, f=1.0, quadrature_order: int = None, dims: int = 1) -> np.ndarray:
    """
    Global load vector ``b_i = Σ_e Σ_g w_g detJe(g, e) f(g, e) N_i(ξ_g)``.

    Args:
        detJe: (#quad.pts., #elements) jacobian determinants.
        f: scalar, (#quad.pts., #elements) values at quadrature points, or
            (dims, #quad.pts., #elements) for vector-valued sources.
        quadrature_order: defaults to ``2 * mesh.order``.

    Returns:
        (dims * #nodes,) vector, component ``d`` of node ``i`` at ``dims * i + d``.
    """
    dims = int(dims)
    if dims < 1:
        raise DimensionError(f"Expected output dimensionality >= 1, got {dims} instead")
    if quadrature_order is None:
        quadrature_order = 2 * mesh.order
    rule = mesh.element.quadrature(quadrature_order)
    check_determinants(detJe, rule.n_points, mesh.n_elements, quadrature_order)
    shape = (rule.n_points, mesh.n_elements)
    f = np.asarray(f, dtype=float)
    if f.ndim == 0:
        f = np.full((dims,) + shape, float(f))
    elif f.shape == shape:
        f = np.broadcast_to(f, (dims,) + shape)
    elif f.shape != (dims,) + shape:
        raise ShapeMismatchError(
            f"Expected source f of dimensions {shape[0]}x{shape[1]} or "
            f"{dims}x{shape[0]}x{shape[1]}, but got {'x'.join(map(str, f.shape))}"
        )
    detJe = np.asarray(detJe, dtype=float)
    logger.debug(f"load_vector: {mesh.n_elements} elements, dims={dims}")
    b = np.zeros(dims * mesh.n_nodes)
    for d in range(dims):
        be = integrated_shape_functions(mesh, quadrature_order, detJe * f[d])
        bd = np.zeros(mesh.n_nodes)
        np.add.at(bd, mesh.E, be)
        b[d::dims] = bd
    return b

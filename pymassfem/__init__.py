"""pymassfem
Finite element shape functions, Jacobians and a matrix-free mass operator
on simplex and tensor-product Lagrange elements.
"""
from pymassfem import config
from pymassfem.errors import DimensionError, FEMArgumentError, ShapeMismatchError
from pymassfem.fem.reference import ReferenceElement, get_reference
from pymassfem.core import Mesh
from pymassfem.fem.jacobian import jacobian_determinants, reference_positions
from pymassfem.fem.shape_functions import (
    integrated_shape_functions,
    mesh_shape_function_gradients,
    mesh_shape_functions_at,
    shape_function_gradients,
    shape_function_gradients_at,
    shape_function_matrix,
    shape_function_matrix_at,
    shape_functions,
    shape_functions_at,
)
from pymassfem.assembly import MassMatrix, load_vector

__version__ = "0.1.0"

config.configure_from_env()

__all__ = [
    "DimensionError", "FEMArgumentError", "ShapeMismatchError",
    "ReferenceElement", "get_reference", "Mesh",
    "jacobian_determinants", "reference_positions",
    "shape_functions", "shape_function_matrix", "shape_function_matrix_at",
    "shape_functions_at", "mesh_shape_functions_at", "integrated_shape_functions",
    "shape_function_gradients", "mesh_shape_function_gradients", "shape_function_gradients_at",
    "MassMatrix", "load_vector",
]

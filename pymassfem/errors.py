"""pymassfem.errors
Argument errors raised by the shape-function and mass-matrix routines.
"""
import numpy as np


class FEMArgumentError(ValueError):
    """Caller passed arrays or parameters that violate a dimension contract."""


class ShapeMismatchError(FEMArgumentError):
    """Row/column counts of an input do not match what the mesh/quadrature expects."""


class DimensionError(FEMArgumentError):
    """Spatial or field dimensionality is invalid (e.g. ``dims < 1``)."""


def check_matrix_shape(name: str, array, expected: tuple, what: str = "") -> None:
    """Raise ShapeMismatchError unless ``array`` is 2-D with shape ``expected``."""
    shape = np.shape(array)
    if len(shape) != 2 or tuple(shape) != tuple(expected):
        got = "x".join(str(s) for s in shape) if shape else "scalar"
        suffix = f" {what}" if what else ""
        raise ShapeMismatchError(
            f"Expected {name} of dimensions {expected[0]}x{expected[1]}{suffix}, "
            f"but got {got}"
        )


def check_determinants(detJe, n_quad: int, n_elements: int, quadrature_order: int) -> None:
    check_matrix_shape(
        "element jacobian determinants detJe",
        detJe,
        (n_quad, n_elements),
        f"(#quad.pts. x #elements) for element quadrature of order={quadrature_order}",
    )

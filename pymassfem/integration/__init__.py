from .quadrature import QuadratureRule, gauss_legendre, simplex_rule, tensor_rule, volume

__all__ = ["QuadratureRule", "gauss_legendre", "simplex_rule", "tensor_rule", "volume"]

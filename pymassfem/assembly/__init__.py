from .mass_matrix import MassMatrix
from .load_vector import load_vector
__all__=['MassMatrix','load_vector']

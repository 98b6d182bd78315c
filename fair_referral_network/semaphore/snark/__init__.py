from .assets import AssetsResolver, CircuitPaths
from .backend import Groth16Backend

__all__ = ["AssetsResolver", "CircuitPaths", "Groth16Backend"]

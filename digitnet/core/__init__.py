"""Core numerical primitives for digitnet."""

from . import activations, errors, layer, matrix, types

__all__ = ["activations", "errors", "layer", "matrix", "types"]

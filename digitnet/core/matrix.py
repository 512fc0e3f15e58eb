"""Thin dense-matrix facade over numpy.

All helpers operate on 2-D arrays and leave their inputs untouched.  Shape
mismatches surface as numpy's ``ValueError``.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from .errors import InvalidAxisError
from .types import Array


def column(values: Sequence[float] | Array) -> Array:
    """Return ``values`` as an ``(n, 1)`` float64 column vector."""

    return np.asarray(values, dtype=np.float64).reshape(-1, 1)


def dot(a: Array, b: Array) -> Array:
    return np.dot(a, b)


def add(a: Array, b: Array) -> Array:
    _check_same_shape(a, b)
    return np.add(a, b)


def subtract(a: Array, b: Array) -> Array:
    _check_same_shape(a, b)
    return np.subtract(a, b)


def multiply(a: Array, b: Array) -> Array:
    """Elementwise (Hadamard) product.

    Broadcasting is allowed so a ``(1, 1)`` error term can scale a column.
    """

    return np.multiply(a, b)


def scale(factor: float, a: Array) -> Array:
    return float(factor) * a


def transpose(a: Array) -> Array:
    return np.transpose(a)


def apply(fn: Callable[[Array], Array], a: Array) -> Array:
    """Apply a vectorised elementwise ``fn`` and check it preserved the shape."""

    out = np.asarray(fn(a), dtype=np.float64)
    if out.shape != np.shape(a):
        raise ValueError(f"apply changed shape {np.shape(a)} -> {out.shape}")
    return out


def sum_along_axis(axis: int, a: Array) -> Array:
    """Sum along ``axis``.

    Axis 0 sums each column into a ``(1, cols)`` row vector; axis 1 sums each
    row into a ``(rows, 1)`` column vector.
    """

    if axis not in (0, 1) or isinstance(axis, bool):
        raise InvalidAxisError(axis)
    return np.sum(a, axis=axis, keepdims=True)


def _check_same_shape(a: Array, b: Array) -> None:
    if np.shape(a) != np.shape(b):
        raise ValueError(f"shape mismatch: {np.shape(a)} vs {np.shape(b)}")


__all__ = [
    "add",
    "apply",
    "column",
    "dot",
    "multiply",
    "scale",
    "subtract",
    "sum_along_axis",
    "transpose",
]

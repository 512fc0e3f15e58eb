"""Activation functions for digitnet layers."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Type

import numpy as np

from .errors import UnimplementedActivationError
from .matrix import apply
from .types import Array


class ActivationKind(str, Enum):
    """Activation kinds a :class:`~digitnet.core.layer.LayerConfig` may select."""

    SIGMOID = "sigmoid"
    RELU = "relu"
    SOFTMAX = "softmax"

    def __str__(self) -> str:
        return self.value


def sigmoid(x: Array) -> Array:
    """Return the logistic sigmoid ``1 / (1 + e^-x)``."""

    # exp overflows float64 past ~709
    return 1.0 / (1.0 + np.exp(-np.clip(x, -500.0, 500.0)))


def sigmoid_deriv(x: Array) -> Array:
    s = sigmoid(x)
    return s * (1.0 - s)


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def relu_deriv(x: Array) -> Array:
    """Step function; the derivative at exactly zero is taken to be 1."""

    return np.where(np.asarray(x) < 0.0, 0.0, 1.0)


class Activation:
    """Elementwise activation with its derivative, both shape-preserving."""

    kind: ActivationKind

    def apply(self, m: Array) -> Array:  # pragma: no cover - interface
        raise NotImplementedError

    def apply_derivative(self, m: Array) -> Array:  # pragma: no cover - interface
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Sigmoid(Activation):
    kind = ActivationKind.SIGMOID

    def apply(self, m: Array) -> Array:
        return apply(sigmoid, m)

    def apply_derivative(self, m: Array) -> Array:
        return apply(sigmoid_deriv, m)


class ReLU(Activation):
    kind = ActivationKind.RELU

    def apply(self, m: Array) -> Array:
        return apply(relu, m)

    def apply_derivative(self, m: Array) -> Array:
        return apply(relu_deriv, m)


_RESOLVERS: Dict[ActivationKind, Type[Activation]] = {
    ActivationKind.SIGMOID: Sigmoid,
    ActivationKind.RELU: ReLU,
}


def resolve_activation(kind: ActivationKind | str) -> Activation:
    """Return the activation implementing ``kind``.

    Raises :class:`UnimplementedActivationError` for declared kinds without an
    implementation (softmax) and ``KeyError`` for unknown names.
    """

    if not isinstance(kind, ActivationKind):
        try:
            kind = ActivationKind(str(kind).lower())
        except ValueError as exc:
            available = ", ".join(k.value for k in ActivationKind)
            raise KeyError(
                f"Unknown activation {kind!r}. Available activations: {available}"
            ) from exc
    try:
        return _RESOLVERS[kind]()
    except KeyError:
        raise UnimplementedActivationError(kind) from None


__all__ = [
    "Activation",
    "ActivationKind",
    "ReLU",
    "Sigmoid",
    "relu",
    "relu_deriv",
    "resolve_activation",
    "sigmoid",
    "sigmoid_deriv",
]

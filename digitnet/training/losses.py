"""Loss registry used to seed backpropagation at the output layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.matrix import apply, subtract
from ..core.types import Array

LossFn = Callable[[Array, Array], Array]


class LossKind(str, Enum):
    CROSS_ENTROPY = "cross_entropy"
    MEAN_SQUARED = "mean_squared"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Loss:
    """Loss wrapper exposing the elementwise loss and its derivative.

    ``apply_derivative`` points from the prediction towards the target, so the
    network adds the scaled gradient to its parameters.
    """

    name: str
    fn: LossFn
    deriv: LossFn

    def apply(self, prediction: Array, target: Array) -> Array:
        return self.fn(prediction, target)

    def apply_derivative(self, prediction: Array, target: Array) -> Array:
        return self.deriv(prediction, target)

    def scalar(self, prediction: Array, target: Array) -> float:
        return float(np.mean(self.apply(prediction, target)))


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, name: str, fn: LossFn, deriv: LossFn, *aliases: str) -> None:
        self._registry[name] = Loss(name, fn, deriv)
        for alias in aliases:
            self._aliases[alias] = name

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: LossKind | str) -> Loss:
        key = str(name).lower()
        key = self._aliases.get(key, key)
        if key not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[key]


REGISTRY = LossRegistry()


def _squared_error(pred: Array, target: Array) -> Array:
    return apply(np.square, subtract(target, pred))


def _residual(pred: Array, target: Array) -> Array:
    return subtract(target, pred)


# Cross-entropy currently shares the squared-error form and its residual
# derivative; it is not a true cross-entropy gradient.
REGISTRY.register(str(LossKind.MEAN_SQUARED), _squared_error, _residual, "mse")
REGISTRY.register(str(LossKind.CROSS_ENTROPY), _squared_error, _residual, "ce")


def resolve_loss(kind: LossKind | str) -> Loss:
    return REGISTRY.resolve(kind)


__all__ = ["Loss", "LossKind", "LossRegistry", "REGISTRY", "resolve_loss"]

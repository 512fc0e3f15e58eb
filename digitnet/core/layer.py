"""Dense layer state owned by a :class:`~digitnet.training.network.Network`."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .activations import Activation, ActivationKind, resolve_activation
from .types import Array


@dataclass(frozen=True)
class LayerConfig:
    """Neuron count and activation kind of a single layer."""

    neurons: int
    activation: ActivationKind | str = ActivationKind.SIGMOID

    def __post_init__(self) -> None:
        if int(self.neurons) <= 0:
            raise ValueError(f"neurons must be positive, got {self.neurons}")


@dataclass
class Layer:
    """Weights, bias and last output of one dense layer.

    Parameters are allocated by the owning network once the size of the
    previous layer is known.  The network serialises every mutation.
    """

    config: LayerConfig
    activation: Activation = field(init=False)
    weights: Array | None = field(default=None, init=False, repr=False)
    bias: Array | None = field(default=None, init=False, repr=False)
    output: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.activation = resolve_activation(self.config.activation)

    @property
    def neurons(self) -> int:
        return int(self.config.neurons)

    @property
    def initialised(self) -> bool:
        return self.weights is not None and self.bias is not None

    def initialise(self, input_size: int, rng: np.random.Generator) -> None:
        """Fill weights and bias uniformly in ``[-1/sqrt(n), 1/sqrt(n)]``."""

        limit = 1.0 / np.sqrt(input_size)
        weights = rng.uniform(-limit, limit, size=(self.neurons, input_size))
        bias = rng.uniform(-limit, limit, size=(self.neurons, 1))
        self.update(weights, bias)

    def update(self, weights: Array, bias: Array) -> None:
        """Replace both parameter matrices; callers hold the network lock."""

        self.weights = weights
        self.bias = bias


__all__ = ["Layer", "LayerConfig"]

"""Sequential dense network with backpropagation and concurrent epoch workers."""

from __future__ import annotations

import threading
import warnings
from concurrent.futures import ThreadPoolExecutor, wait
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, List, Mapping, Sequence, Tuple

import numpy as np

from ..core.errors import UntrainedModelError
from ..core.layer import Layer, LayerConfig
from ..core.matrix import add, column, dot, multiply, scale, sum_along_axis, transpose
from ..core.types import Array, NetworkDescription
from .losses import LossKind, resolve_loss

BACKPROP_MODES = ("canonical", "shortcut")

ProgressFn = Callable[[int, int, int], None]


@dataclass(frozen=True)
class NetworkConfig:
    """Static configuration of a :class:`Network`.

    ``seed`` seeds the generator owned by the network; it drives both the
    parameter initialisation and the per-epoch shuffles.  ``backprop`` selects
    how the error is carried from one layer to the one below it:

    ``"canonical"``
        ``W_next^T . delta_next`` with the next layer's pre-update weights.
    ``"shortcut"``
        ``out_next^T . error_next``, a 1x1 value spread over the layer.
    """

    input_neurons: int
    hidden_layers: Tuple[LayerConfig, ...]
    output_layer: LayerConfig
    num_epochs: int = 1
    learning_rate: float = 0.1
    loss: LossKind | str = LossKind.MEAN_SQUARED
    batch_size: int = 1
    seed: int | None = None
    backprop: str = "canonical"

    def __post_init__(self) -> None:
        object.__setattr__(self, "hidden_layers", tuple(self.hidden_layers))
        if self.input_neurons <= 0:
            raise ValueError("input_neurons must be positive")
        if self.num_epochs < 0:
            raise ValueError("num_epochs must be non-negative")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.backprop not in BACKPROP_MODES:
            raise ValueError(
                f"backprop must be one of {BACKPROP_MODES}, got {self.backprop!r}"
            )

    @property
    def layer_configs(self) -> Tuple[LayerConfig, ...]:
        return (*self.hidden_layers, self.output_layer)


@dataclass
class EpochResult:
    epoch: int
    batches: int
    samples: int
    loss: float

    def metrics(self) -> Mapping[str, float]:
        return {
            "loss": self.loss,
            "batches": float(self.batches),
            "samples": float(self.samples),
        }


class Network:
    """Feed-forward network of dense layers trained by per-sample SGD.

    All layers are mutated in place.  A single re-entrant lock serialises every
    per-sample forward+backward step, so concurrent epoch workers interleave
    between samples but never inside one.
    """

    def __init__(self, config: NetworkConfig, rng: np.random.Generator | None = None) -> None:
        self.config = config
        self.loss = resolve_loss(config.loss)
        self.layers: List[Layer] = [Layer(cfg) for cfg in config.layer_configs]
        self._rng = rng if rng is not None else np.random.default_rng(config.seed)
        self._lock = threading.RLock()
        self._trained = False
        self._steps = 0

        prev_size = config.input_neurons
        for layer in self.layers:
            layer.initialise(prev_size, self._rng)
            prev_size = layer.neurons

    # ------------------------------------------------------------------
    # Introspection

    def describe(self) -> NetworkDescription:
        dims = [self.config.input_neurons] + [layer.neurons for layer in self.layers]
        return NetworkDescription(
            layer_dims=dims,
            activations=[layer.activation.kind.value for layer in self.layers],
        )

    @property
    def trained(self) -> bool:
        return self._trained

    @property
    def steps(self) -> int:
        return self._steps

    def parameter_count(self) -> int:
        return int(sum(layer.weights.size + layer.bias.size for layer in self.layers))

    def parameters(self) -> List[Tuple[Array, Array]]:
        """Return copies of every ``(weights, bias)`` pair, input side first."""

        with self._lock:
            self._require_parameters()
            return [(layer.weights.copy(), layer.bias.copy()) for layer in self.layers]

    def load_parameters(self, params: Sequence[Tuple[Array, Array]]) -> None:
        """Replace every layer's parameters and mark the model as usable."""

        if len(params) != len(self.layers):
            raise ValueError(f"expected {len(self.layers)} layers, got {len(params)}")
        prev_size = self.config.input_neurons
        staged = []
        for layer, (weights, bias) in zip(self.layers, params):
            weights = np.array(weights, dtype=np.float64)
            bias = np.array(bias, dtype=np.float64).reshape(-1, 1)
            if weights.shape != (layer.neurons, prev_size) or bias.shape != (layer.neurons, 1):
                raise ValueError(
                    f"parameter shapes {weights.shape}/{bias.shape} do not fit layer "
                    f"({layer.neurons}, {prev_size})"
                )
            staged.append((weights, bias))
            prev_size = layer.neurons
        with self._lock:
            for layer, (weights, bias) in zip(self.layers, staged):
                layer.update(weights, bias)
            self._trained = True

    # ------------------------------------------------------------------
    # Forward / backward

    def forward_propagate(self, inputs: Array, *, sync: bool = True) -> Array:
        """Run the forward pass, storing each layer's output.

        With ``sync`` each layer's output is written under the network lock.
        """

        prev = column(inputs)
        for layer in self.layers:
            with self._lock if sync else nullcontext():
                pre_activation = add(dot(layer.weights, prev), layer.bias)
                layer.output = layer.activation.apply(pre_activation)
                prev = layer.output
        return prev

    def train_sample(self, inputs: Array, target: Array) -> float:
        """Run one forward+backward step and return the sample loss."""

        x = column(inputs)
        t = column(target)
        with self._lock:
            self._require_parameters()
            output = self.forward_propagate(x)
            loss_value = self.loss.scalar(output, t)
            self._backpropagate(x, t)
            self._steps += 1
            self._trained = True
        return loss_value

    def _backpropagate(self, inputs: Array, target: Array) -> None:
        lr = self.config.learning_rate
        last = len(self.layers) - 1
        final = self.layers[last]

        error = self.loss.apply_derivative(final.output, target)
        delta = multiply(error, final.activation.apply_derivative(final.output))
        next_weights = None

        for idx in range(last, -1, -1):
            layer = self.layers[idx]
            if idx < last:
                error = self._propagate_error(
                    self.layers[idx + 1], next_weights, delta, error, layer
                )
                delta = multiply(error, layer.activation.apply_derivative(layer.output))
            prev_out = inputs if idx == 0 else self.layers[idx - 1].output
            next_weights = layer.weights
            with self._lock:
                weights = add(layer.weights, scale(lr, dot(delta, transpose(prev_out))))
                bias = add(layer.bias, scale(lr, sum_along_axis(1, delta)))
                layer.update(weights, bias)

    def _propagate_error(
        self,
        next_layer: Layer,
        next_weights: Array,
        next_delta: Array,
        next_error: Array,
        layer: Layer,
    ) -> Array:
        if self.config.backprop == "canonical":
            return dot(transpose(next_weights), next_delta)
        spread = dot(transpose(next_layer.output), next_error)
        return np.full(layer.output.shape, float(spread[0, 0]))

    # ------------------------------------------------------------------
    # Prediction

    def predict(self, inputs: Array) -> Array:
        """Return the output column for ``inputs`` without touching layer state."""

        if not self._trained:
            raise UntrainedModelError("model has not been trained or loaded")
        self._require_parameters()
        prev = column(inputs)
        for layer in self.layers:
            prev = layer.activation.apply(add(dot(layer.weights, prev), layer.bias))
        return prev

    def _require_parameters(self) -> None:
        for idx, layer in enumerate(self.layers):
            if not layer.initialised:
                raise UntrainedModelError(f"layer {idx} has no weights or bias")

    # ------------------------------------------------------------------
    # Training loop

    def train(
        self,
        inputs: Array | Sequence[Sequence[float]],
        targets: Array | Sequence[Sequence[float]],
        sample_count: int | None = None,
        *,
        progress: ProgressFn | object | None = None,
        callbacks: Sequence[object] = (),
    ) -> List[EpochResult]:
        """Train for ``num_epochs`` epochs, one worker thread per epoch.

        Every epoch gets its own shuffled order drawn from the network's
        generator before any worker starts.  Samples that do not fill a whole
        batch are skipped.  Blocks until all workers have finished and re-raises
        the first worker error.
        """

        inputs = np.asarray(inputs, dtype=np.float64)
        targets = np.asarray(targets, dtype=np.float64)
        if sample_count is None:
            sample_count = int(inputs.shape[0])
        if sample_count < 0:
            raise ValueError(f"sample_count must be non-negative, got {sample_count}")
        if sample_count > min(len(inputs), len(targets)):
            raise ValueError(
                f"sample_count={sample_count} exceeds the {min(len(inputs), len(targets))} "
                "available samples"
            )
        batch_size = self.config.batch_size
        total_batches = sample_count // batch_size
        dropped = sample_count - total_batches * batch_size
        if dropped:
            warnings.warn(
                f"{dropped} trailing samples do not fill a batch of {batch_size} and are skipped",
                RuntimeWarning,
                stacklevel=2,
            )

        epochs = self.config.num_epochs
        orders = [shuffle_indices(sample_count, self._rng) for _ in range(epochs)]
        if epochs == 0:
            return []

        with ThreadPoolExecutor(max_workers=epochs, thread_name_prefix="digitnet-epoch") as pool:
            futures = [
                pool.submit(
                    self._run_epoch,
                    epoch,
                    order,
                    inputs,
                    targets,
                    total_batches,
                    progress,
                    callbacks,
                )
                for epoch, order in enumerate(orders)
            ]
            wait(futures)
        return [future.result() for future in futures]

    def _run_epoch(
        self,
        epoch: int,
        order: Array,
        inputs: Array,
        targets: Array,
        total_batches: int,
        progress: ProgressFn | object | None,
        callbacks: Sequence[object],
    ) -> EpochResult:
        batch_size = self.config.batch_size
        losses: List[float] = []
        for batch_idx in range(total_batches):
            _notify_progress(progress, epoch, batch_idx, total_batches)
            batch = order[batch_idx * batch_size : (batch_idx + 1) * batch_size]
            losses.extend(self.train_batch(inputs[batch], targets[batch]))
        _notify_progress(progress, epoch, total_batches, total_batches)
        if hasattr(progress, "on_epoch_end"):
            progress.on_epoch_end(epoch)  # type: ignore[union-attr]
        result = EpochResult(
            epoch=epoch,
            batches=total_batches,
            samples=len(losses),
            loss=float(np.mean(losses)) if losses else 0.0,
        )
        for callback in callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, result.metrics())  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, result.metrics())
        return result

    def train_batch(self, inputs: Array, targets: Array) -> List[float]:
        """Train on each sample of the batch in order; return their losses."""

        return [self.train_sample(x, t) for x, t in zip(inputs, targets)]


def shuffle_indices(count: int, rng: np.random.Generator) -> Array:
    """Return a Fisher-Yates permutation of ``range(count)`` drawn from ``rng``."""

    order = np.arange(count)
    for i in range(count - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        order[i], order[j] = order[j], order[i]
    return order


def _notify_progress(progress: ProgressFn | object | None, epoch: int, batch: int, total: int) -> None:
    if progress is None:
        return
    if hasattr(progress, "on_batch"):
        progress.on_batch(epoch, batch, total)  # type: ignore[attr-defined]
    elif callable(progress):
        progress(epoch, batch, total)


__all__ = [
    "BACKPROP_MODES",
    "EpochResult",
    "Network",
    "NetworkConfig",
    "shuffle_indices",
]

"""digitnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.activations import ActivationKind
from .core.errors import (
    DigitNetError,
    FormatError,
    InvalidAxisError,
    UnimplementedActivationError,
    UntrainedModelError,
)
from .core.layer import Layer, LayerConfig
from .training.losses import LossKind
from .training.network import Network, NetworkConfig
from .persistence import load_network, save_network
from .training.pipelines import load_preset, presets, run_pipeline

__all__ = [
    "ActivationKind",
    "DigitNetError",
    "FormatError",
    "InvalidAxisError",
    "Layer",
    "LayerConfig",
    "LossKind",
    "Network",
    "NetworkConfig",
    "UnimplementedActivationError",
    "UntrainedModelError",
    "activations",
    "load_network",
    "load_preset",
    "presets",
    "run_pipeline",
    "save_network",
    "types",
]

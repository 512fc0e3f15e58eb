"""Save and restore network parameters as ``.npz`` archives."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Mapping

import numpy as np

from .core.errors import FormatError
from .core.types import Array
from .training.network import Network


def state_dict(network: Network) -> Mapping[str, Array]:
    """Return the parameters keyed in save order: weights then bias, per layer."""

    state: dict[str, Array] = {}
    for idx, (weights, bias) in enumerate(network.parameters()):
        state[f"layer{idx}_weights"] = weights
        state[f"layer{idx}_bias"] = bias
    return state


def save_network(network: Network, path: str | Path) -> Path:
    """Write every layer's weights and bias to ``path``.

    Raises :class:`~digitnet.core.errors.UntrainedModelError` if parameters are
    missing.
    """

    path = Path(path)
    payload = dict(state_dict(network))
    payload["num_layers"] = np.array(len(network.layers))
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        np.savez_compressed(handle, **payload)
    return path


def load_network(network: Network, path: str | Path) -> Network:
    """Load parameters saved by :func:`save_network` into ``network`` in place."""

    path = Path(path)
    try:
        with np.load(path, allow_pickle=False) as data:
            arrays = {name: data[name] for name in data.files}
    except (zipfile.BadZipFile, ValueError, EOFError) as exc:
        raise FormatError("Invalid model archive", str(path)) from exc

    stored = int(arrays.get("num_layers", -1))
    if stored != len(network.layers):
        raise FormatError(
            f"Archive holds {stored} layers, network has {len(network.layers)}", str(path)
        )
    params = []
    for idx in range(len(network.layers)):
        try:
            params.append((arrays[f"layer{idx}_weights"], arrays[f"layer{idx}_bias"]))
        except KeyError as exc:
            raise FormatError(f"Missing array {exc.args[0]}", str(path)) from exc
    try:
        network.load_parameters(params)
    except ValueError as exc:
        raise FormatError(str(exc), str(path)) from exc
    return network


__all__ = ["load_network", "save_network", "state_dict"]

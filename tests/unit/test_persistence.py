import numpy as np
import pytest

from digitnet.core.errors import FormatError, UntrainedModelError
from digitnet.core.layer import LayerConfig
from digitnet.persistence import load_network, save_network, state_dict
from digitnet.training.network import Network, NetworkConfig


def _network(seed: int, hidden=(5,)) -> Network:
    config = NetworkConfig(
        input_neurons=6,
        hidden_layers=tuple(LayerConfig(h) for h in hidden),
        output_layer=LayerConfig(3),
        seed=seed,
    )
    return Network(config)


def test_save_then_load_restores_predictions(tmp_path):
    source = _network(seed=1)
    source.train_sample(np.ones(6), np.array([1.0, 0.0, 0.0]))
    path = save_network(source, tmp_path / "model.npz")

    target = _network(seed=2)
    with pytest.raises(UntrainedModelError):
        target.predict(np.ones(6))
    load_network(target, path)

    x = np.linspace(0, 1, 6)
    assert np.allclose(source.predict(x), target.predict(x))


def test_state_dict_order():
    assert list(state_dict(_network(0, hidden=(4, 4)))) == [
        "layer0_weights",
        "layer0_bias",
        "layer1_weights",
        "layer1_bias",
        "layer2_weights",
        "layer2_bias",
    ]


def test_topology_mismatch_is_format_error(tmp_path):
    path = save_network(_network(0, hidden=(5,)), tmp_path / "model.npz")
    with pytest.raises(FormatError):
        load_network(_network(0, hidden=(5, 5)), path)
    with pytest.raises(FormatError):
        load_network(_network(0, hidden=(4,)), path)


def test_garbage_archive_is_format_error(tmp_path):
    path = tmp_path / "broken.npz"
    path.write_bytes(b"not an archive")
    with pytest.raises(FormatError):
        load_network(_network(0), path)

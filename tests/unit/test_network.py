import numpy as np
import pytest

from digitnet.core.activations import sigmoid
from digitnet.core.errors import UnimplementedActivationError, UntrainedModelError
from digitnet.core.layer import LayerConfig
from digitnet.training.network import Network, NetworkConfig, shuffle_indices


def _config(**overrides) -> NetworkConfig:
    params = dict(
        input_neurons=4,
        hidden_layers=(LayerConfig(3, "sigmoid"),),
        output_layer=LayerConfig(2, "sigmoid"),
        num_epochs=1,
        learning_rate=0.5,
        loss="mean_squared",
        batch_size=1,
        seed=0,
    )
    params.update(overrides)
    return NetworkConfig(**params)


_W1 = np.array(
    [
        [0.10, -0.20, 0.30, 0.05],
        [-0.15, 0.25, -0.05, 0.20],
        [0.30, 0.10, -0.25, -0.10],
    ]
)
_B1 = np.array([[0.01], [-0.02], [0.03]])
_W2 = np.array([[0.20, -0.30, 0.40], [-0.10, 0.50, -0.20]])
_B2 = np.array([[0.05], [-0.05]])


def _fixed_network(**overrides) -> Network:
    net = Network(_config(**overrides))
    net.load_parameters([(_W1, _B1), (_W2, _B2)])
    return net


def _reference_forward(x):
    h = sigmoid(_W1 @ x + _B1)
    o = sigmoid(_W2 @ h + _B2)
    return h, o


def _dsig_at(values):
    return sigmoid(values) * (1 - sigmoid(values))


def test_construction_allocates_fan_in_scaled_parameters():
    config = _config(
        input_neurons=9,
        hidden_layers=(LayerConfig(7), LayerConfig(5, "relu")),
        output_layer=LayerConfig(3),
    )
    net = Network(config)
    assert [layer.weights.shape for layer in net.layers] == [(7, 9), (5, 7), (3, 5)]
    assert [layer.bias.shape for layer in net.layers] == [(7, 1), (5, 1), (3, 1)]
    for layer, fan_in in zip(net.layers, [9, 7, 5]):
        assert np.all(np.abs(layer.weights) <= 1 / np.sqrt(fan_in))
    assert net.describe().layer_dims == [9, 7, 5, 3]
    assert net.describe().activations == ["sigmoid", "relu", "sigmoid"]
    assert net.parameter_count() == 7 * 9 + 7 + 5 * 7 + 5 + 3 * 5 + 3


def test_same_seed_gives_same_initialisation():
    first = Network(_config(seed=42)).parameters()
    second = Network(_config(seed=42)).parameters()
    for (w1, b1), (w2, b2) in zip(first, second):
        assert np.array_equal(w1, w2)
        assert np.array_equal(b1, b2)


def test_predict_before_training_is_untrained_error():
    net = Network(_config())
    with pytest.raises(UntrainedModelError):
        net.predict(np.zeros(4))


def test_softmax_layer_fails_at_construction():
    with pytest.raises(UnimplementedActivationError):
        Network(_config(output_layer=LayerConfig(2, "softmax")))


@pytest.mark.parametrize("hidden", [(), (3,), (6, 5), (8, 6, 4)])
def test_predict_returns_output_column(hidden):
    config = _config(
        input_neurons=5,
        hidden_layers=tuple(LayerConfig(h) for h in hidden),
        output_layer=LayerConfig(3),
    )
    net = Network(config)
    net.train_sample(np.ones(5), np.array([1.0, 0.0, 0.0]))
    out = net.predict(np.linspace(0, 1, 5))
    assert out.shape == (3, 1)


def test_predict_does_not_touch_layer_outputs():
    net = _fixed_network()
    net.forward_propagate(np.array([1.0, 0.0, 1.0, 0.0]))
    stored = [layer.output.copy() for layer in net.layers]
    net.predict(np.array([0.0, 1.0, 0.0, 1.0]))
    for layer, before in zip(net.layers, stored):
        assert np.array_equal(layer.output, before)


def test_zero_learning_rate_leaves_parameters_unchanged():
    net = _fixed_network(learning_rate=0.0)
    before = net.parameters()
    net.train_sample(np.array([0.0, 1.0, 0.0, 1.0]), np.array([1.0, 0.0]))
    for (w0, b0), (w1, b1) in zip(before, net.parameters()):
        assert np.array_equal(w0, w1)
        assert np.array_equal(b0, b1)


def test_single_step_matches_reference_update():
    lr = 0.5
    net = _fixed_network(learning_rate=lr)
    x = np.array([[0.0], [1.0], [0.0], [1.0]])
    t = np.array([[1.0], [0.0]])

    h, o = _reference_forward(x)
    delta_o = (t - o) * _dsig_at(o)
    expected_w2 = _W2 + lr * (delta_o @ h.T)
    expected_b2 = _B2 + lr * delta_o
    delta_h = (_W2.T @ delta_o) * _dsig_at(h)
    expected_w1 = _W1 + lr * (delta_h @ x.T)
    expected_b1 = _B1 + lr * delta_h

    loss = net.train_sample(x.ravel(), t.ravel())

    assert loss == pytest.approx(float(np.mean((t - o) ** 2)))
    assert np.allclose(net.layers[-1].weights, expected_w2, atol=1e-9, rtol=0)
    assert np.allclose(net.layers[-1].bias, expected_b2, atol=1e-9, rtol=0)
    assert np.allclose(net.layers[0].weights, expected_w1, atol=1e-9, rtol=0)
    assert np.allclose(net.layers[0].bias, expected_b1, atol=1e-9, rtol=0)
    assert np.allclose(net.layers[0].output, h)
    assert net.steps == 1


def test_shortcut_backprop_spreads_output_error():
    lr = 0.5
    net = _fixed_network(learning_rate=lr, backprop="shortcut")
    x = np.array([[0.0], [1.0], [0.0], [1.0]])
    t = np.array([[1.0], [0.0]])

    h, o = _reference_forward(x)
    error_o = t - o
    spread = float((o.T @ error_o)[0, 0])
    delta_h = np.full(h.shape, spread) * _dsig_at(h)
    expected_w1 = _W1 + lr * (delta_h @ x.T)

    net.train_sample(x.ravel(), t.ravel())
    assert np.allclose(net.layers[0].weights, expected_w1, atol=1e-9, rtol=0)


def test_shortcut_backprop_handles_deep_networks():
    config = _config(
        hidden_layers=(LayerConfig(6), LayerConfig(5), LayerConfig(4)),
        backprop="shortcut",
    )
    net = Network(config)
    net.train_sample(np.ones(4), np.array([0.0, 1.0]))
    assert [layer.weights.shape for layer in net.layers] == [(6, 4), (5, 6), (4, 5), (2, 4)]
    assert all(np.all(np.isfinite(layer.weights)) for layer in net.layers)


def test_invalid_config_values():
    with pytest.raises(ValueError):
        _config(backprop="textbook")
    with pytest.raises(ValueError):
        _config(batch_size=0)
    with pytest.raises(KeyError):
        Network(_config(loss="hinge"))


def test_training_reduces_loss_on_separable_patterns():
    net = Network(_config(learning_rate=0.5, seed=3))
    patterns = [
        (np.array([1.0, 1.0, 0.0, 0.0]), np.array([1.0, 0.0])),
        (np.array([0.0, 0.0, 1.0, 1.0]), np.array([0.0, 1.0])),
    ]
    losses = [net.train_sample(*patterns[i % 2]) for i in range(600)]
    assert np.mean(losses[-20:]) < np.mean(losses[:20])
    assert int(np.argmax(net.predict(patterns[0][0]))) == 0
    assert int(np.argmax(net.predict(patterns[1][0]))) == 1


def test_train_reports_progress_and_epochs():
    net = Network(_config(num_epochs=3, batch_size=2))
    inputs = np.eye(4)[[0, 1, 2, 3, 0, 1]]
    targets = np.eye(2)[[0, 0, 1, 1, 0, 0]]
    calls = []
    epochs = []

    class _Capture:
        def on_epoch(self, epoch, metrics):
            epochs.append((epoch, metrics["batches"]))

    results = net.train(
        inputs,
        targets,
        6,
        progress=lambda e, b, total: calls.append((e, b, total)),
        callbacks=[_Capture()],
    )

    assert [r.epoch for r in results] == [0, 1, 2]
    assert all(r.samples == 6 and r.batches == 3 for r in results)
    assert sorted(epochs) == [(0, 3.0), (1, 3.0), (2, 3.0)]
    for epoch in range(3):
        seen = sorted(b for e, b, _ in calls if e == epoch)
        assert seen == [0, 1, 2, 3]
    assert all(total == 3 for _, _, total in calls)
    assert net.steps == 18
    assert net.trained


def test_train_calls_on_epoch_end_once_per_epoch():
    net = Network(_config(num_epochs=2, batch_size=2))
    inputs = np.eye(4)
    targets = np.eye(2)[[0, 0, 1, 1]]

    class _Observer:
        def __init__(self):
            self.batches = []
            self.finished = []

        def on_batch(self, epoch, batch, total):
            self.batches.append((epoch, batch))

        def on_epoch_end(self, epoch):
            assert (epoch, 2) in self.batches
            self.finished.append(epoch)

    observer = _Observer()
    net.train(inputs, targets, progress=observer)

    assert sorted(observer.finished) == [0, 1]


def test_train_skips_incomplete_batch_with_warning():
    net = Network(_config(batch_size=4))
    inputs = np.eye(4)[[0, 1, 2, 3, 0, 1]]
    targets = np.eye(2)[[0, 0, 1, 1, 0, 0]]
    with pytest.warns(RuntimeWarning, match="2 trailing samples"):
        results = net.train(inputs, targets)
    assert results[0].samples == 4
    assert net.steps == 4


def test_train_rejects_oversized_sample_count():
    net = Network(_config())
    with pytest.raises(ValueError):
        net.train(np.zeros((2, 4)), np.zeros((2, 2)), 3)


def test_train_rejects_negative_sample_count():
    net = Network(_config())
    with pytest.raises(ValueError, match="non-negative"):
        net.train(np.zeros((2, 4)), np.zeros((2, 2)), -1)
    assert net.steps == 0


def test_shuffle_indices_is_a_seeded_permutation():
    order = shuffle_indices(50, np.random.default_rng(1))
    assert sorted(order.tolist()) == list(range(50))
    again = shuffle_indices(50, np.random.default_rng(1))
    assert np.array_equal(order, again)
    assert not np.array_equal(order, np.arange(50))

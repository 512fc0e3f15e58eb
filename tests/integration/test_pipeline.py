import json
from pathlib import Path

import pytest

from digitnet.persistence import load_network
from digitnet.training import pipelines
from digitnet.training.network import Network


def _config(tmp_path, run_name: str, **train) -> dict:
    config = {
        "data": {"name": "mnist", "options": {"data_dir": str(tmp_path / "data"), "max_items": 40}},
        "model": {
            "hidden": [12],
            "activation": "sigmoid",
            "output": {"neurons": 10, "activation": "sigmoid"},
            "loss": "mean_squared",
            "backprop": "canonical",
        },
        "train": {
            "epochs": 2,
            "batch_size": 8,
            "lr": 0.1,
            "seed": 5,
            "run_dir": str(tmp_path / run_name),
            "save": True,
            "progress": False,
            "enable_plots": False,
        },
        "offline": True,
    }
    config["train"].update(train)
    return config


def test_pipeline_produces_artifacts(tmp_path, capsys):
    config = _config(tmp_path, "run")
    result = pipelines.run_pipeline(config)

    assert result.steps == 2 * 40
    assert 0.0 <= result.accuracy <= 1.0
    assert "=== digitnet run ===" in capsys.readouterr().out

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert sorted(r["epoch"] for r in records) == [0, 1]
    assert all(r["split"] == "train" and "loss" in r and r["seed"] == 5 for r in records)

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 5
    assert manifest["dataset"]["mode"] == "offline"
    assert manifest["network"]["layer_dims"] == [784, 12, 10]

    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["epochs"] == 2
    assert summary["final"]["accuracy"] == pytest.approx(result.accuracy)

    run_dir = Path(config["train"]["run_dir"])
    assert (run_dir / "metrics_train.csv").exists()
    assert (run_dir / "metrics_test.json").exists()
    assert (run_dir / "config.json").exists()

    restored = load_network(
        Network(pipelines.build_network_config(config["model"], config["train"], 784)),
        result.model_path,
    )
    assert restored.trained


def test_single_epoch_pipeline_is_deterministic(tmp_path):
    first = pipelines.run_pipeline(_config(tmp_path, "a", epochs=1))
    second = pipelines.run_pipeline(_config(tmp_path, "b", epochs=1))
    test_a = (Path(first.metrics_path).parent / "metrics_test.json").read_text()
    test_b = (Path(second.metrics_path).parent / "metrics_test.json").read_text()
    assert test_a == test_b
    assert first.accuracy == second.accuracy


def test_yaml_override_and_presets(tmp_path):
    override = tmp_path / "override.yaml"
    override.write_text("train:\n  epochs: 3\n  lr: 0.05\nmodel:\n  hidden: [8, 8]\n")
    merged = pipelines.merge_config(
        pipelines.load_preset("offline-smoke"), pipelines.read_config_file(override)
    )
    assert merged["train"]["epochs"] == 3
    assert merged["train"]["batch_size"] == 8
    assert merged["model"]["hidden"] == [8, 8]
    assert {"mnist-mlp", "mnist-deep", "offline-smoke"} <= set(pipelines.presets())
    with pytest.raises(KeyError):
        pipelines.load_preset("missing")


def test_file_presets_are_loaded_from_preset_dir(tmp_path, monkeypatch):
    preset_dir = tmp_path / "presets"
    preset_dir.mkdir()
    (preset_dir / "tiny.yaml").write_text(
        "data:\n  name: mnist\nmodel:\n  hidden: [4]\ntrain:\n  epochs: 1\n"
    )
    (preset_dir / "wide.json").write_text(
        json.dumps({"data": {"name": "mnist"}, "model": {"hidden": [64]}, "train": {}})
    )
    (preset_dir / "notes.txt").write_text("ignored")
    monkeypatch.setattr(pipelines, "_PRESET_DIR", preset_dir)

    available = pipelines.presets()
    assert {"tiny", "wide", "offline-smoke"} <= set(available)
    assert "notes" not in available
    assert pipelines.load_preset("tiny")["model"]["hidden"] == [4]
    assert pipelines.load_preset("wide")["model"]["hidden"] == [64]


def test_file_preset_missing_sections_is_rejected(tmp_path, monkeypatch):
    preset_dir = tmp_path / "presets"
    preset_dir.mkdir()
    (preset_dir / "broken.json").write_text(json.dumps({"model": {"hidden": [4]}}))
    monkeypatch.setattr(pipelines, "_PRESET_DIR", preset_dir)

    with pytest.raises(KeyError, match="data, train"):
        pipelines.presets()


def test_build_network_config_accepts_layer_mappings():
    config = pipelines.build_network_config(
        {"hidden": [{"neurons": 20, "activation": "relu"}, 10], "activation": "sigmoid"},
        {"epochs": 4, "batch_size": 16, "lr": 0.2, "seed": 1},
        784,
    )
    assert config.input_neurons == 784
    assert [h.neurons for h in config.hidden_layers] == [20, 10]
    assert [h.activation for h in config.hidden_layers] == ["relu", "sigmoid"]
    assert config.output_layer.neurons == 10
    assert config.num_epochs == 4 and config.batch_size == 16 and config.seed == 1


def test_enable_plots_writes_loss_curve(tmp_path):
    pytest.importorskip("matplotlib")
    result = pipelines.run_pipeline(_config(tmp_path, "plots", enable_plots=True, save=False))
    assert (Path(result.metrics_path).parent / "loss.png").exists()
    assert result.model_path == ""


def test_shipped_preset_files_build_networks():
    preset = pipelines.load_preset("mnist-relu")
    config = pipelines.build_network_config(preset["model"], preset["train"], 784)
    assert [h.activation for h in config.hidden_layers] == ["relu", "relu"]
    assert config.output_layer.neurons == 10

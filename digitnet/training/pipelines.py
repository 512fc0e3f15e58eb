"""Pipeline assembly: presets, config files and end-to-end training runs."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..core.layer import LayerConfig
from ..core.types import RunResult
from ..data.mnist import NUM_CLASSES, Split, load_mnist
from ..persistence import save_network
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.progress import ProgressPrinter
from ..reporting.summary import write_summary
from .metrics import compute_metrics, parse_metric_names
from .network import Network, NetworkConfig

_PRESETS: Dict[str, Mapping[str, object]] = {
    "mnist-mlp": {
        "data": {
            "name": "mnist",
            "options": {"value_range": [0.01, 1.0]},
        },
        "model": {
            "hidden": [100],
            "activation": "sigmoid",
            "output": {"neurons": 10, "activation": "sigmoid"},
            "loss": "mean_squared",
            "backprop": "canonical",
        },
        "train": {
            "epochs": 5,
            "batch_size": 100,
            "lr": 0.3,
            "seed": 0,
            "run_dir": "runs/mnist-mlp",
            "save": True,
            "enable_plots": False,
        },
    },
    "mnist-deep": {
        "data": {"name": "mnist", "options": {}},
        "model": {
            "hidden": [100, 100],
            "activation": "sigmoid",
            "output": {"neurons": 10, "activation": "sigmoid"},
            "loss": "mean_squared",
            "backprop": "canonical",
        },
        "train": {
            "epochs": 10,
            "batch_size": 100,
            "lr": 0.1,
            "seed": 0,
            "run_dir": "runs/mnist-deep",
            "save": True,
            "enable_plots": False,
        },
    },
    "offline-smoke": {
        "data": {"name": "mnist", "options": {"max_items": 64}},
        "model": {
            "hidden": [16],
            "activation": "sigmoid",
            "output": {"neurons": 10, "activation": "sigmoid"},
            "loss": "mean_squared",
            "backprop": "canonical",
        },
        "train": {
            "epochs": 2,
            "batch_size": 8,
            "lr": 0.1,
            "seed": 7,
            "run_dir": "runs/offline-smoke",
            "save": True,
            "progress": False,
            "enable_plots": False,
        },
        "offline": True,
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_REQUIRED_SECTIONS = {"data", "model", "train"}


def read_config_file(path: str | Path) -> Mapping[str, object]:
    """Read a JSON or YAML config mapping from ``path``."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    presets: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return presets
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = read_config_file(file)
        missing = _REQUIRED_SECTIONS - set(data)
        if missing:
            missing_str = ", ".join(sorted(missing))
            raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
        presets[file.stem] = json.loads(json.dumps(data))
    return presets


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, object]:
    available = presets()
    try:
        return deepcopy(dict(available[name]))
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def merge_config(base: Mapping[str, object], override: Mapping[str, object]) -> Dict[str, object]:
    """Recursively merge ``override`` into a copy of ``base``."""

    merged = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)  # type: ignore[arg-type]
        else:
            merged[key] = deepcopy(value)
    return merged


def _layer_config(entry: object, default_activation: str) -> LayerConfig:
    if isinstance(entry, Mapping):
        return LayerConfig(
            neurons=int(entry["neurons"]),
            activation=str(entry.get("activation", default_activation)),
        )
    return LayerConfig(neurons=int(entry), activation=default_activation)


def build_network_config(
    model_cfg: Mapping[str, object],
    train_cfg: Mapping[str, object],
    input_size: int,
) -> NetworkConfig:
    """Translate the ``model``/``train`` config sections into a :class:`NetworkConfig`."""

    activation = str(model_cfg.get("activation", "sigmoid"))
    hidden = [_layer_config(h, activation) for h in model_cfg.get("hidden", [])]  # type: ignore[union-attr]
    output = _layer_config(model_cfg.get("output", NUM_CLASSES), activation)
    seed = train_cfg.get("seed")
    return NetworkConfig(
        input_neurons=int(model_cfg.get("input_neurons", input_size)),
        hidden_layers=tuple(hidden),
        output_layer=output,
        num_epochs=int(train_cfg.get("epochs", 1)),
        learning_rate=float(train_cfg.get("lr", 0.1)),
        loss=str(model_cfg.get("loss", "mean_squared")),
        batch_size=int(train_cfg.get("batch_size", 1)),
        seed=int(seed) if seed is not None else None,
        backprop=str(model_cfg.get("backprop", "canonical")),
    )


def predict_split(network: Network, split: Split) -> np.ndarray:
    """Return the ``samples x classes`` outputs for every input of ``split``."""

    if split.count == 0:
        return np.zeros((0, network.layers[-1].neurons))
    return np.hstack([network.predict(x) for x in split.inputs]).T


def evaluate(
    network: Network,
    split: Split,
    metric_names: Sequence[str] | str | None = "default",
) -> Mapping[str, float]:
    outputs = predict_split(network, split)
    metrics = dict(
        compute_metrics(
            parse_metric_names(metric_names),
            outputs,
            split.labels,
            num_classes=outputs.shape[1],
        )
    )
    metrics["loss"] = (
        float(np.mean(network.loss.apply(outputs, split.targets))) if split.count else 0.0
    )
    return metrics


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Load data, train a network, evaluate it on the test split and write artifacts."""

    data_cfg = dict(config.get("data", {}))  # type: ignore[arg-type]
    model_cfg = dict(config.get("model", {}))  # type: ignore[arg-type]
    train_cfg = dict(config.get("train", {}))  # type: ignore[arg-type]
    name = str(data_cfg.get("name", "mnist"))
    if name != "mnist":
        raise KeyError(f"Unknown dataset: {name}")

    options = dict(data_cfg.get("options", {}))  # type: ignore[arg-type]
    offline = config.get("offline")
    value_range = tuple(float(v) for v in options.get("value_range", (0.0, 1.0)))
    max_items = options.get("max_items")
    data = load_mnist(
        options.get("data_dir"),
        offline=bool(offline) if offline is not None else None,
        value_range=value_range,  # type: ignore[arg-type]
        max_items=int(max_items) if max_items is not None else None,
    )

    net_config = build_network_config(model_cfg, train_cfg, data.train.input_size)
    network = Network(net_config)
    description = network.describe()
    seed = net_config.seed

    run_dir = _resolve_run_dir(train_cfg)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=name,
        samples=data.train.count,
        dims=description.layer_dims,
        activations=description.activations,
        loss=network.loss.name,
        backprop=net_config.backprop,
        epochs=net_config.num_epochs,
        batch_size=net_config.batch_size,
        param_count=network.parameter_count(),
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    progress = ProgressPrinter() if train_cfg.get("progress", True) else None

    started = time.perf_counter()
    network.train(
        data.train.inputs,
        data.train.targets,
        data.train.count,
        progress=progress,
        callbacks=[train_jsonl, train_csv, plots],
    )
    elapsed = time.perf_counter() - started
    plots.close()

    test_metrics = evaluate(network, data.test, train_cfg.get("metrics", "default"))  # type: ignore[arg-type]
    (run_dir / "metrics_test.json").write_text(json.dumps(test_metrics, indent=2, sort_keys=True))

    model_path = ""
    if train_cfg.get("save", False) and network.trained:
        model_path = str(save_network(network, run_dir / "model.npz"))

    safe_config = json.loads(json.dumps(config))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=data.provenance,
        network={
            "layer_dims": description.layer_dims,
            "activations": description.activations,
            "parameters": network.parameter_count(),
            "train_seconds": round(elapsed, 3),
        },
    )
    summary_path = write_summary(
        train_jsonl.path, run_dir / "summary.json", extra=test_metrics
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        steps=network.steps,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        accuracy=float(test_metrics.get("accuracy", 0.0)),
        model_path=model_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object]) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp


def _print_startup_summary(
    *,
    dataset_name: str,
    samples: int,
    dims: List[int],
    activations: List[str],
    loss: str,
    backprop: str,
    epochs: int,
    batch_size: int,
    param_count: int,
) -> None:
    print("=== digitnet run ===")
    print(f"Dataset       : {dataset_name} ({samples} samples)")
    print(f"Dimensions    : {dims}")
    print(f"Activations   : {activations}")
    print(f"Loss          : {loss}")
    print(f"Backprop      : {backprop}")
    print(f"Epochs        : {epochs} (batch size {batch_size})")
    print(f"Parameters    : {param_count}")
    print("====================")


__all__ = [
    "build_network_config",
    "evaluate",
    "load_preset",
    "merge_config",
    "predict_split",
    "presets",
    "read_config_file",
    "run_pipeline",
]

"""Command line entry point: train a digit classifier, then report test accuracy."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from digitnet.data.idx import format_image, read_train_set
from digitnet.data.mnist import load_mnist, resolve_data_dir
from digitnet.training import pipelines
from digitnet.training.network import BACKPROP_MODES


def _format_result(result) -> str:
    payload = {
        "steps": result.steps,
        "accuracy": round(result.accuracy, 6),
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    if result.summary_path:
        payload["summary"] = result.summary_path
    if result.model_path:
        payload["model"] = result.model_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="mnist-deep",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--data-dir", help="Directory holding the MNIST IDX files")
    parser.add_argument(
        "--offline",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Train on the synthetic IDX fixture instead of real MNIST files",
    )
    parser.add_argument("--epochs", type=int, help="Number of concurrent epoch workers")
    parser.add_argument("--batch-size", type=int, help="Samples per batch")
    parser.add_argument("--learning-rate", type=float, help="SGD learning rate")
    parser.add_argument("--seed", type=int, help="Seed for initialisation and shuffling")
    parser.add_argument(
        "--hidden", help="Comma separated hidden layer sizes, e.g. 100,100"
    )
    parser.add_argument(
        "--activation", choices=["sigmoid", "relu", "softmax"], help="Activation for every layer"
    )
    parser.add_argument(
        "--loss", choices=["mean_squared", "cross_entropy"], help="Loss function"
    )
    parser.add_argument("--backprop", choices=BACKPROP_MODES, help="Error propagation rule")
    parser.add_argument("--max-items", type=int, help="Truncate train and test splits")
    parser.add_argument("--run-dir", help="Directory for metrics, manifest and model")
    parser.add_argument(
        "--save",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Persist the trained model",
    )
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a loss curve with matplotlib"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument(
        "--show-sample",
        type=int,
        metavar="N",
        help="Print training sample N with its label and exit",
    )
    return parser.parse_args(argv)


def _apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    model = config.setdefault("model", {})
    train = config.setdefault("train", {})
    options = config.setdefault("data", {"name": "mnist"}).setdefault("options", {})
    if args.data_dir:
        options["data_dir"] = args.data_dir
    if args.max_items is not None:
        options["max_items"] = int(args.max_items)
    if args.offline is not None:
        config["offline"] = bool(args.offline)
    if args.hidden:
        model["hidden"] = [int(h) for h in args.hidden.split(",") if h.strip()]
    if args.activation:
        model["activation"] = args.activation
        output = model.get("output")
        if isinstance(output, dict):
            output["activation"] = args.activation
    if args.loss:
        model["loss"] = args.loss
    if args.backprop:
        model["backprop"] = args.backprop
    if args.epochs is not None:
        train["epochs"] = int(args.epochs)
    if args.batch_size is not None:
        train["batch_size"] = int(args.batch_size)
    if args.learning_rate is not None:
        train["lr"] = float(args.learning_rate)
    if args.seed is not None:
        train["seed"] = int(args.seed)
    if args.run_dir:
        train["run_dir"] = args.run_dir
    if args.save is not None:
        train["save"] = bool(args.save)
    if args.enable_plots:
        train["enable_plots"] = True
    return config


def _show_sample(config: dict, index: int) -> None:
    options = config.get("data", {}).get("options", {})
    if config.get("offline"):
        data = load_mnist(options.get("data_dir"), offline=True)
        directory = Path(data.provenance["source"])
    else:
        directory = resolve_data_dir(options.get("data_dir"))
    data_set = read_train_set(directory)
    sample = data_set.samples[index]
    print(sample.digit)
    print(format_image(sample.image))


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = pipelines.load_preset(args.preset)
    if args.config:
        override = pipelines.read_config_file(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)
    config = _apply_overrides(config, args)

    if args.show_sample is not None:
        _show_sample(config, args.show_sample)
        raise SystemExit(0)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import csv
import json
import sys
import time
from pathlib import Path
from statistics import mean, pstdev

MODES = ["canonical", "shortcut"]


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu:.4f} ± {sd:.4f}"


def _train_one(mode: str, seed: int, epochs: int, lr: float, hidden, data_dir: Path):
    from digitnet.core.layer import LayerConfig
    from digitnet.data.mnist import load_mnist
    from digitnet.training.network import Network, NetworkConfig
    from digitnet.training.pipelines import evaluate

    data = load_mnist(data_dir, offline=True)
    config = NetworkConfig(
        input_neurons=data.train.input_size,
        hidden_layers=tuple(LayerConfig(h) for h in hidden),
        output_layer=LayerConfig(10),
        num_epochs=epochs,
        learning_rate=lr,
        batch_size=16,
        seed=seed,
        backprop=mode,
    )
    network = Network(config)
    started = time.perf_counter()
    results = network.train(data.train.inputs, data.train.targets)
    elapsed = time.perf_counter() - started
    metrics = evaluate(network, data.test)
    return {
        "final_loss": float(metrics["loss"]),
        "final_acc": float(metrics["accuracy"]),
        "train_loss": float(mean(r.loss for r in results)),
        "seconds": elapsed,
    }


def main(argv=None):
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    ap = argparse.ArgumentParser(description="Compare error propagation rules offline")
    ap.add_argument("--seeds", nargs="+", type=int, default=[123, 124, 125])
    ap.add_argument("--epochs", type=int, default=2)
    ap.add_argument("--lr", type=float, default=0.1)
    ap.add_argument("--hidden", nargs="+", type=int, default=[32, 16])
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args(argv)

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for mode in MODES:
        for s in args.seeds:
            r = _train_one(mode, s, args.epochs, args.lr, args.hidden, out / "data")
            runs.append({"backprop": mode, "seed": s, **r})
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    agg = {}
    for mode in MODES:
        accs = [r["final_acc"] for r in runs if r["backprop"] == mode]
        losses = [r["final_loss"] for r in runs if r["backprop"] == mode]
        agg[mode] = {
            "n": len(accs),
            "final_acc_mu": mean(accs),
            "final_loss_mu": mean(losses),
            "seconds_mu": mean(r["seconds"] for r in runs if r["backprop"] == mode),
        }
    base_acc = agg["canonical"]["final_acc_mu"]
    for mode in MODES:
        agg[mode]["delta_acc_vs_canonical"] = agg[mode]["final_acc_mu"] - base_acc

    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(
            ["backprop", "seeds", "epochs", "final_loss_mu", "final_acc_mu", "delta_acc", "seconds_mu"]
        )
        for mode in MODES:
            a = agg[mode]
            w.writerow(
                [
                    mode,
                    a["n"],
                    args.epochs,
                    f"{a['final_loss_mu']:.4f}",
                    f"{a['final_acc_mu']:.4f}",
                    f"{a['delta_acc_vs_canonical']:.4f}",
                    f"{a['seconds_mu']:.3f}",
                ]
            )

    md_path = out / "bench_micro.md"
    lines = [
        "### Micro-Benchmark: canonical vs shortcut error propagation (offline)",
        "",
        f"- Seeds: `{args.seeds}`; Epochs: `{args.epochs}`; LR: `{args.lr}`; Hidden: `{args.hidden}`",
        "",
        "| Backprop | Test Loss (μ±σ) | Test Acc (μ±σ) | ΔAcc vs canonical | Seeds |",
        "|---|---:|---:|---:|---:|",
    ]
    for mode in MODES:
        fl = [r["final_loss"] for r in runs if r["backprop"] == mode]
        fa = [r["final_acc"] for r in runs if r["backprop"] == mode]
        lines.append(
            f"| {mode.upper()} | {_fmt_mu_sigma(fl)} | {_fmt_mu_sigma(fa)} | "
            f"{agg[mode]['delta_acc_vs_canonical']:+.4f} | {agg[mode]['n']} |"
        )
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()

"""Deterministic run summarisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np

_SKIP = {"epoch", "seed", "split", "sha"}


def _read_records(path: Path) -> list[Mapping[str, object]]:
    records: list[Mapping[str, object]] = []
    if path.exists():
        for line in path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))
    # epoch workers finish in any order
    return sorted(records, key=lambda r: int(r.get("epoch", 0)))


def _numeric_columns(records: Iterable[Mapping[str, object]]) -> Mapping[str, list[float]]:
    columns: dict[str, list[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _SKIP or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                columns.setdefault(key, []).append(float(value))
    return columns


def build_summary(
    records: list[Mapping[str, object]],
    extra: Mapping[str, float] | None = None,
) -> Mapping[str, object]:
    metrics: dict[str, Mapping[str, float]] = {}
    for name, values in _numeric_columns(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
        }
    summary: dict[str, object] = {
        "version": 1,
        "epochs": len(records),
        "metrics": metrics,
    }
    if extra:
        summary["final"] = {k: float(v) for k, v in extra.items()}
    return summary


def write_summary(
    metrics_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    extra: Mapping[str, float] | None = None,
) -> str:
    """Summarise the per-epoch records of ``metrics_jsonl`` into a JSON file."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = build_summary(_read_records(Path(metrics_jsonl)), extra)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "write_summary"]

"""Classification metrics over network outputs."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array

DEFAULT_METRICS = ("accuracy", "macro_f1")


def predicted_digits(outputs: Array) -> Array:
    """Arg-max over each row of ``outputs`` (``samples x classes``)."""

    return np.argmax(np.asarray(outputs), axis=1)


def confusion_matrix(labels: Array, predicted: Array, num_classes: int) -> Array:
    matrix = np.zeros((num_classes, num_classes), dtype=np.int64)
    np.add.at(matrix, (np.asarray(labels, dtype=int), np.asarray(predicted, dtype=int)), 1)
    return matrix


def compute_metric(name: str, outputs: Array, labels: Array, *, num_classes: int) -> float:
    key = name.lower()
    labels = np.asarray(labels, dtype=int).reshape(-1)
    if labels.size == 0:
        return 0.0
    predicted = predicted_digits(outputs)
    if key == "accuracy":
        return float(np.mean(predicted == labels))
    if key == "macro_f1":
        matrix = confusion_matrix(labels, predicted, num_classes)
        tp = np.diag(matrix).astype(np.float64)
        fp = matrix.sum(axis=0) - tp
        fn = matrix.sum(axis=1) - tp
        precision = tp / (tp + fp + 1e-9)
        recall = tp / (tp + fn + 1e-9)
        f1 = 2 * precision * recall / (precision + recall + 1e-9)
        return float(np.mean(f1))
    raise KeyError(f"Unknown metric: {name}")


def compute_metrics(
    names: Iterable[str], outputs: Array, labels: Array, *, num_classes: int
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        results[name.lower()] = compute_metric(name, outputs, labels, num_classes=num_classes)
    return results


def parse_metric_names(spec: str | Iterable[str] | None) -> List[str]:
    if spec is None or spec == "default":
        return list(DEFAULT_METRICS)
    if isinstance(spec, str):
        return [m.strip() for m in spec.split(",") if m.strip()]
    return [str(m) for m in spec]


__all__ = [
    "DEFAULT_METRICS",
    "compute_metric",
    "compute_metrics",
    "confusion_matrix",
    "parse_metric_names",
    "predicted_digits",
]

"""Core typing contracts for digitnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class DigitImage:
    """A single labelled image as stored in an IDX file pair."""

    digit: int
    image: Array


@dataclass(frozen=True)
class DataSet:
    """In-memory labelled image dataset produced by the IDX reader."""

    count: int
    width: int
    height: int
    samples: List[DigitImage] = field(default_factory=list, repr=False)

    @property
    def labels(self) -> Array:
        return np.asarray([s.digit for s in self.samples], dtype=np.int64)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`digitnet.training.pipelines.run_pipeline`."""

    steps: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    accuracy: float = 0.0
    model_path: str = ""


@dataclass(frozen=True)
class NetworkDescription:
    """Description of the feed-forward network architecture."""

    layer_dims: List[int]
    activations: List[str]

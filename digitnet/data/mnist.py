"""MNIST splits as normalised input vectors and one-hot targets."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import numpy as np

from ..core.types import Array, DataSet
from .idx import (
    NUM_CLASSES,
    TEST_IMAGES_FILE,
    TEST_LABELS_FILE,
    TRAIN_IMAGES_FILE,
    TRAIN_LABELS_FILE,
    read_test_set,
    read_train_set,
    write_idx_pair,
)

DEFAULT_DATA_DIR = Path("data")


@dataclass(frozen=True)
class Split:
    """Model-ready view of one :class:`DataSet`."""

    inputs: Array
    targets: Array
    labels: Array
    width: int
    height: int

    @property
    def count(self) -> int:
        return int(self.inputs.shape[0])

    @property
    def input_size(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class MnistData:
    train: Split
    test: Split
    provenance: Dict[str, Any] = field(default_factory=dict)


def resolve_data_dir(data_dir: str | Path | None = None) -> Path:
    """Resolve the directory holding the four IDX files."""

    env_dir = os.environ.get("DIGITNET_DATA_DIR")
    return Path(data_dir or env_dir or DEFAULT_DATA_DIR)


def offline_requested(offline: bool | None = None) -> bool:
    if offline is not None:
        return bool(offline)
    return os.environ.get("DIGITNET_DATA_OFFLINE", "0") == "1"


def prepare_inputs(
    images: Array, value_range: Tuple[float, float] = (0.0, 1.0)
) -> Array:
    """Flatten images and scale pixel bytes into ``value_range``."""

    images = np.asarray(images, dtype=np.float64)
    flat = images.reshape(images.shape[0], -1) / 255.0
    low, high = value_range
    if (low, high) != (0.0, 1.0):
        flat = flat * (high - low) + low
    return flat


def one_hot(labels: Array, num_classes: int = NUM_CLASSES) -> Array:
    labels = np.asarray(labels, dtype=np.int64).reshape(-1)
    out = np.zeros((labels.shape[0], num_classes), dtype=np.float64)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out


def to_split(
    data_set: DataSet,
    *,
    value_range: Tuple[float, float] = (0.0, 1.0),
    max_items: int | None = None,
    num_classes: int = NUM_CLASSES,
) -> Split:
    samples = data_set.samples
    if max_items is not None:
        samples = samples[:max_items]
    if samples:
        images = np.stack([s.image for s in samples])
    else:
        images = np.zeros((0, data_set.height, data_set.width), dtype=np.uint8)
    labels = np.asarray([s.digit for s in samples], dtype=np.int64)
    return Split(
        inputs=prepare_inputs(images, value_range),
        targets=one_hot(labels, num_classes),
        labels=labels,
        width=data_set.width,
        height=data_set.height,
    )


def build_offline_fixture(directory: str | Path, *, train_items: int = 256, test_items: int = 64) -> Path:
    """Write a deterministic MNIST-like IDX fixture into ``directory``.

    Each digit is drawn as a distinct bright block on a dim procedural
    background so the fixture is learnable and bit-for-bit stable.
    """

    directory = Path(directory)

    def _images(count: int, offset: int) -> tuple[Array, Array]:
        labels = (np.arange(count, dtype=np.int64) + offset) % NUM_CLASSES
        base = np.arange(count * 28 * 28, dtype=np.uint32).reshape(count, 28, 28)
        images = ((base * 7 + offset) % 48).astype(np.uint8)
        for idx, label in enumerate(labels):
            row, col = divmod(int(label), 5)
            top, left = 4 + row * 10, 1 + col * 5
            images[idx, top : top + 8, left : left + 4] = 255
        return images, labels

    train_images, train_labels = _images(train_items, 0)
    test_images, test_labels = _images(test_items, 3)
    write_idx_pair(
        train_images,
        train_labels,
        directory / TRAIN_IMAGES_FILE,
        directory / TRAIN_LABELS_FILE,
    )
    write_idx_pair(
        test_images,
        test_labels,
        directory / TEST_IMAGES_FILE,
        directory / TEST_LABELS_FILE,
    )
    return directory


def load_mnist(
    data_dir: str | Path | None = None,
    *,
    offline: bool | None = None,
    value_range: Tuple[float, float] = (0.0, 1.0),
    max_items: int | None = None,
) -> MnistData:
    """Load the train and test splits.

    In offline mode a synthetic fixture is written under ``data_dir/offline``
    (once) and read back through the regular IDX reader.
    """

    root = resolve_data_dir(data_dir)
    if offline_requested(offline):
        source = root / "offline"
        if not (source / TRAIN_IMAGES_FILE).exists():
            build_offline_fixture(source)
        mode = "offline"
    else:
        source = root
        mode = "files"

    train_set = read_train_set(source)
    test_set = read_test_set(source)
    train = to_split(train_set, value_range=value_range, max_items=max_items)
    test = to_split(test_set, value_range=value_range, max_items=max_items)
    provenance: Dict[str, Any] = {
        "name": "mnist",
        "mode": mode,
        "source": str(source),
        "train_count": train.count,
        "test_count": test.count,
        "width": train_set.width,
        "height": train_set.height,
        "value_range": list(value_range),
        "max_items": max_items,
    }
    return MnistData(train=train, test=test, provenance=provenance)


__all__ = [
    "MnistData",
    "NUM_CLASSES",
    "Split",
    "build_offline_fixture",
    "load_mnist",
    "offline_requested",
    "one_hot",
    "prepare_inputs",
    "resolve_data_dir",
    "to_split",
]

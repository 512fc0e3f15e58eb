"""Reader and writer for the big-endian IDX files MNIST ships in."""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Sequence

import numpy as np

from ..core.errors import FormatError
from ..core.types import Array, DataSet, DigitImage

TRAIN_IMAGES_FILE = "train-images-idx3-ubyte"
TRAIN_LABELS_FILE = "train-labels-idx1-ubyte"
TEST_IMAGES_FILE = "t10k-images-idx3-ubyte"
TEST_LABELS_FILE = "t10k-labels-idx1-ubyte"

NUM_CLASSES = 10

LABELS_MAGIC = 0x00000801
IMAGES_MAGIC = 0x00000803

_HEADER = np.dtype(">u4")


def _read_exact(handle: BinaryIO, size: int, path: Path) -> bytes:
    data = handle.read(size)
    if len(data) != size:
        raise FormatError("Invalid format (short read)", str(path))
    return data


def _read_header(handle: BinaryIO, fields: int, path: Path) -> list[int]:
    raw = _read_exact(handle, fields * _HEADER.itemsize, path)
    return [int(v) for v in np.frombuffer(raw, dtype=_HEADER)]


def read_images_file(path: str | Path) -> Array:
    """Return the ``(count, height, width)`` uint8 image block of an IDX3 file."""

    path = Path(path)
    with path.open("rb") as handle:
        magic, count, width, height = _read_header(handle, 4, path)
        if magic != IMAGES_MAGIC:
            raise FormatError(f"Invalid format (magic 0x{magic:08x})", str(path))
        raw = _read_exact(handle, count * width * height, path)
    return np.frombuffer(raw, dtype=np.uint8).reshape(count, height, width)


def read_labels_file(path: str | Path) -> Array:
    """Return the ``(count,)`` uint8 label block of an IDX1 file."""

    path = Path(path)
    with path.open("rb") as handle:
        magic, count = _read_header(handle, 2, path)
        if magic != LABELS_MAGIC:
            raise FormatError(f"Invalid format (magic 0x{magic:08x})", str(path))
        raw = _read_exact(handle, count, path)
    return np.frombuffer(raw, dtype=np.uint8)


def read_data_set(images_path: str | Path, labels_path: str | Path) -> DataSet:
    """Read a paired image/label file set into a :class:`DataSet`."""

    images = read_images_file(images_path)
    labels = read_labels_file(labels_path)
    if images.shape[0] != labels.shape[0]:
        raise FormatError(
            f"Data size does not match: {labels.shape[0]} labels vs {images.shape[0]} images",
            str(labels_path),
        )
    if labels.size and int(labels.max()) >= NUM_CLASSES:
        raise FormatError(f"Invalid label {int(labels.max())}", str(labels_path))
    count, height, width = images.shape
    samples = [DigitImage(digit=int(labels[i]), image=images[i]) for i in range(count)]
    return DataSet(count=count, width=width, height=height, samples=samples)


def read_train_set(directory: str | Path) -> DataSet:
    directory = Path(directory)
    return read_data_set(directory / TRAIN_IMAGES_FILE, directory / TRAIN_LABELS_FILE)


def read_test_set(directory: str | Path) -> DataSet:
    directory = Path(directory)
    return read_data_set(directory / TEST_IMAGES_FILE, directory / TEST_LABELS_FILE)


def write_idx_pair(
    images: Array,
    labels: Sequence[int] | Array,
    images_path: str | Path,
    labels_path: str | Path,
) -> None:
    """Write ``images`` (``count x height x width``) and ``labels`` as IDX files."""

    images = np.asarray(images, dtype=np.uint8)
    labels = np.asarray(labels, dtype=np.uint8).reshape(-1)
    if images.ndim != 3:
        raise ValueError(f"images must be 3-D (count, height, width), got {images.shape}")
    count, height, width = images.shape
    images_path = Path(images_path)
    labels_path = Path(labels_path)
    images_path.parent.mkdir(parents=True, exist_ok=True)
    labels_path.parent.mkdir(parents=True, exist_ok=True)
    header = np.array([IMAGES_MAGIC, count, width, height], dtype=_HEADER)
    images_path.write_bytes(header.tobytes() + images.tobytes())
    header = np.array([LABELS_MAGIC, labels.shape[0]], dtype=_HEADER)
    labels_path.write_bytes(header.tobytes() + labels.tobytes())


def format_image(image: Array) -> str:
    """Render ``image`` for debugging: blank for 0, else one hex digit per pixel."""

    lines = []
    for row in np.asarray(image, dtype=np.uint8):
        lines.append("".join(" " if pix == 0 else f"{pix // 16:X}" for pix in row))
    return "\n".join(lines)


__all__ = [
    "IMAGES_MAGIC",
    "LABELS_MAGIC",
    "NUM_CLASSES",
    "TEST_IMAGES_FILE",
    "TEST_LABELS_FILE",
    "TRAIN_IMAGES_FILE",
    "TRAIN_LABELS_FILE",
    "format_image",
    "read_data_set",
    "read_images_file",
    "read_labels_file",
    "read_test_set",
    "read_train_set",
    "write_idx_pair",
]

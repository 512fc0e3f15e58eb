"""Per-epoch metric sinks for training runs.

Epoch workers finish concurrently and call every sink from their own thread,
so each sink holds a lock around its file append.
"""

from __future__ import annotations

import csv
import json
import subprocess
import threading
from pathlib import Path
from typing import Dict, Mapping


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except Exception:  # pragma: no cover - git may be unavailable in tests
        return "unknown"


class _EpochSink:
    """Truncates ``path`` on creation and appends one record per finished epoch."""

    def __init__(self, path: str | Path, split: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self._lock = threading.Lock()

    def record(self, epoch: int, metrics: Mapping[str, float]) -> Dict[str, object]:
        row: Dict[str, object] = {"epoch": int(epoch), "split": self.split}
        # EpochResult.metrics(): loss, batches, samples
        for name, value in metrics.items():
            if isinstance(value, (int, float)):
                row[name] = float(value)
        return row

    def _append(self, row: Dict[str, object]) -> None:
        raise NotImplementedError

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row = self.record(epoch, metrics)
        with self._lock:
            self._append(row)

    __call__ = on_epoch


class JsonlSink(_EpochSink):
    """One JSON object per epoch: epoch, split, seed, sha, mean loss, batch and sample counts.

    Lines land in completion order, which differs from epoch order when
    workers overlap; :func:`~digitnet.reporting.summary.build_summary` sorts them.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(path, split)
        self.seed = seed
        self.sha = sha or git_sha()

    def record(self, epoch: int, metrics: Mapping[str, float]) -> Dict[str, object]:
        row = super().record(epoch, metrics)
        row["seed"] = self.seed
        row["sha"] = self.sha
        return row

    def _append(self, row: Dict[str, object]) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(row) + "\n")


class CsvSink(_EpochSink):
    """CSV rows of ``epoch, split`` followed by the epoch metrics in sorted order.

    The header is taken from the first row written.
    """

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        super().__init__(path, split)

    def _append(self, row: Dict[str, object]) -> None:
        metric_names = sorted(k for k in row if k not in ("epoch", "split"))
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=["epoch", "split", *metric_names])
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

"""Console progress observer for the epoch workers."""

from __future__ import annotations

import sys
import threading
from typing import Dict, TextIO


class ProgressPrinter:
    """Print one bar line per epoch as batches complete.

    Called from several worker threads at once; output is serialised and each
    epoch reports only when its bar advances by a whole cell.
    """

    def __init__(self, width: int = 40, stream: TextIO | None = None) -> None:
        self.width = width
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()
        self._cells: Dict[int, int] = {}

    def on_batch(self, epoch: int, batch: int, total: int) -> None:
        filled = self.width if total <= 0 else int(self.width * batch / total)
        with self._lock:
            if self._cells.get(epoch) == filled:
                return
            self._cells[epoch] = filled
            bar = "=" * filled + "-" * (self.width - filled)
            self.stream.write(f"Epoch #{epoch + 1} [{bar}] {batch}/{total}\n")
            self.stream.flush()

    def on_epoch_end(self, epoch: int) -> None:
        with self._lock:
            self._cells.pop(epoch, None)
            self.stream.write(f"Epoch #{epoch + 1} done\n")
            self.stream.flush()

    __call__ = on_batch

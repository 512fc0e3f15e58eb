"""Reporting utilities for digitnet."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .progress import ProgressPrinter
from .summary import write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "ProgressPrinter",
    "write_manifest",
    "write_summary",
]

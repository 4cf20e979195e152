"""Reporting utilities for StackNet runs."""

from .artifacts import write_manifest
from .metrics import CallbackGroup, CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import summarize_history, write_summary

__all__ = [
    "CallbackGroup",
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "summarize_history",
    "write_manifest",
    "write_summary",
]

"""Deterministic run summaries."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.types import TrainingHistory

_SKIP_KEYS = {"epoch", "seed"}


def compute_auc(points: Sequence[float]) -> float:
    """Trapezoidal area under ``points`` along an implicit epoch axis."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum((y[1:] + y[:-1]) / 2.0))


def _numeric_columns(records: Iterable[Mapping[str, object]]) -> Dict[str, List[float]]:
    columns: Dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _SKIP_KEYS or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                columns.setdefault(key, []).append(float(value))
    return columns


def summarize(columns: Mapping[str, Sequence[float]], *, tail: int = 32) -> Dict[str, object]:
    """Min/max/mean/last and tail AUC per metric column."""

    length = max((len(v) for v in columns.values()), default=0)
    tail_window = min(tail, length)
    metrics: Dict[str, Mapping[str, float]] = {}
    for name, values in columns.items():
        if not values:
            continue
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "tail_auc": compute_auc(arr[-tail_window:].tolist()) if tail_window else 0.0,
        }
    return {"version": 1, "records": length, "tail_window": tail_window, "metrics": metrics}


def summarize_history(history: TrainingHistory, *, tail: int = 32) -> Dict[str, object]:
    return summarize(history.to_mapping(), tail=tail)


def write_summary(
    metrics_jsonl: str | Path, out_summary_json: str | Path, *, tail: int = 32
) -> str:
    """Write a deterministic summary of a JSONL metrics log."""

    metrics_path = Path(metrics_jsonl)
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    records: List[Mapping[str, object]] = []
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))

    summary = summarize(_numeric_columns(records), tail=tail)
    summary["records"] = len(records)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "summarize", "summarize_history", "write_summary"]

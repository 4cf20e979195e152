"""Metric and batching helpers for the training loop."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def compute_accuracy(outputs: Sequence[Array], targets: Sequence[Array]) -> float:
    """Fraction of samples classified correctly.

    Single-output samples are thresholded at 0.5 and compared with the
    target within 0.5; wider outputs compare ``argmax`` positions.
    """

    if len(outputs) == 0 or len(targets) == 0 or len(outputs) != len(targets):
        return 0.0

    correct = 0
    for output, target in zip(outputs, targets):
        output = np.asarray(output).reshape(-1)
        target = np.asarray(target).reshape(-1)
        if output.size == 0 or target.size == 0:
            continue
        if output.size == 1:
            prediction = 1.0 if output[0] > 0.5 else 0.0
            if abs(prediction - float(target[0])) < 0.5:
                correct += 1
        elif int(np.argmax(output)) == int(np.argmax(target)):
            correct += 1
    return correct / len(outputs)


def compute_metric(name: str, outputs: Sequence[Array], targets: Sequence[Array]) -> MetricResult:
    key = name.lower()
    if key == "accuracy":
        return MetricResult(key, compute_accuracy(outputs, targets))
    if not outputs:
        return MetricResult(key, 0.0)
    preds = np.asarray([np.asarray(o).reshape(-1) for o in outputs], dtype=np.float64)
    targs = np.asarray([np.asarray(t).reshape(-1) for t in targets], dtype=np.float64)
    if key == "mae":
        value = float(np.mean(np.abs(preds - targs)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((preds - targs) ** 2)))
    elif key == "r2":
        mean = np.mean(targs, axis=0, keepdims=True)
        ss_res = float(np.sum((targs - preds) ** 2))
        ss_tot = float(np.sum((targs - mean) ** 2))
        value = 1.0 if ss_tot == 0 else float(1 - ss_res / (ss_tot + 1e-9))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(key, value)


def compute_metrics(
    names: Iterable[str], outputs: Sequence[Array], targets: Sequence[Array]
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, outputs, targets)
        results[metric.name] = metric.value
    return results


def shuffled_indices(n: int, rng: np.random.Generator) -> Array:
    """Uniform random permutation of ``range(n)``."""

    return rng.permutation(n)


def partition(n: int, batch_size: int) -> List[slice]:
    """Split ``range(n)`` into ``ceil(n / batch_size)`` consecutive slices.

    Every slice holds ``batch_size`` items except possibly the last.
    """

    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    count = math.ceil(n / batch_size)
    return [slice(i * batch_size, min(n, (i + 1) * batch_size)) for i in range(count)]


__all__ = [
    "MetricResult",
    "compute_accuracy",
    "compute_metric",
    "compute_metrics",
    "partition",
    "shuffled_indices",
]

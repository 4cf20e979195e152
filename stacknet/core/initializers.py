"""Weight initialisation strategies.

Every strategy draws from an explicitly passed ``numpy.random.Generator``;
there is no module-level random state.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Tuple

import numpy as np

from .types import Array, InitializationType

Initializer = Callable[[int, int, np.random.Generator], float]


def xavier(fan_in: int, fan_out: int, rng: np.random.Generator) -> float:
    """Glorot uniform: ``U(-sqrt(6/(fan_in+fan_out)), +sqrt(...))``."""

    limit = math.sqrt(6.0 / max(1, fan_in + fan_out))
    return float(rng.uniform(-limit, limit))


def he(fan_in: int, rng: np.random.Generator) -> float:
    """He normal: ``N(0, sqrt(2/fan_in))``."""

    return float(rng.normal(0.0, math.sqrt(2.0 / max(1, fan_in))))


def lecun(fan_in: int, rng: np.random.Generator) -> float:
    """LeCun normal: ``N(0, sqrt(1/fan_in))``."""

    return float(rng.normal(0.0, math.sqrt(1.0 / max(1, fan_in))))


def random_uniform(
    rng: np.random.Generator, low: float = -1.0, high: float = 1.0
) -> float:
    return float(rng.uniform(low, high))


def random_normal(
    rng: np.random.Generator, mean: float = 0.0, stddev: float = 1.0
) -> float:
    return float(rng.normal(mean, stddev))


def constant(value: float = 0.0) -> float:
    return float(value)


def zeros() -> float:
    return 0.0


def ones() -> float:
    return 1.0


def orthogonal(
    shape: Tuple[int, int], rng: np.random.Generator, gain: float = 1.0
) -> Array:
    """Return a ``shape`` matrix with orthonormal rows or columns."""

    rows, cols = shape
    A = rng.standard_normal((max(rows, cols), min(rows, cols)))
    Q, R = np.linalg.qr(A)
    Q = Q * np.sign(np.diag(R))
    if rows < cols:
        Q = Q.T
    return gain * Q[:rows, :cols]


_FACTORY: Dict[InitializationType, Initializer] = {
    InitializationType.RANDOM: lambda fan_in, fan_out, rng: random_uniform(rng),
    InitializationType.XAVIER: xavier,
    InitializationType.HE: lambda fan_in, fan_out, rng: he(fan_in, rng),
    InitializationType.LECUN: lambda fan_in, fan_out, rng: lecun(fan_in, rng),
    InitializationType.NORMAL: lambda fan_in, fan_out, rng: random_normal(rng),
    InitializationType.ZERO: lambda fan_in, fan_out, rng: zeros(),
    InitializationType.ONE: lambda fan_in, fan_out, rng: ones(),
}

CONSTANT_KINDS = {
    InitializationType.ZERO: 0.0,
    InitializationType.ONE: 1.0,
}


def get_initializer(kind: InitializationType | str | int) -> Initializer:
    """Resolve ``kind`` to a ``(fan_in, fan_out, rng) -> float`` callable."""

    return _FACTORY[InitializationType.parse(kind)]


__all__ = [
    "CONSTANT_KINDS",
    "Initializer",
    "constant",
    "get_initializer",
    "he",
    "lecun",
    "ones",
    "orthogonal",
    "random_normal",
    "random_uniform",
    "xavier",
    "zeros",
]

"""Loss registry used by the training loops.

Every loss takes a predicted vector and a target vector of the same
length. A length mismatch gives a loss of ``0.0`` rather than an error;
gradients, which feed straight into weight updates, raise
:class:`~stacknet.core.types.ShapeError` instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Sequence

import numpy as np

from ..core.types import Array, LossType, ShapeError

EPSILON = 1e-15

LossFn = Callable[..., float]
GradFn = Callable[..., Array]


def _pair(outputs: Sequence[float] | Array, targets: Sequence[float] | Array) -> tuple[Array, Array]:
    out = np.asarray(outputs)
    if out.dtype.kind != "f":
        out = out.astype(np.float64)
    tgt = np.asarray(targets, dtype=out.dtype)
    return out.reshape(-1), tgt.reshape(-1)


def _check(out: Array, tgt: Array) -> None:
    if out.shape != tgt.shape:
        raise ShapeError(f"Outputs have {out.shape[0]} entries, targets have {tgt.shape[0]}")


def _clamp(out: Array) -> Array:
    # 1 - 1e-15 rounds to 1.0 in float32
    eps = max(EPSILON, float(np.finfo(out.dtype).eps))
    return np.clip(out, eps, 1 - eps)


def mean_squared_error(outputs, targets) -> float:
    out, tgt = _pair(outputs, targets)
    if out.shape != tgt.shape or out.size == 0:
        return 0.0
    diff = out - tgt
    return float(np.mean(diff * diff))


def mean_squared_error_gradient(outputs, targets) -> Array:
    out, tgt = _pair(outputs, targets)
    _check(out, tgt)
    return 2 * (out - tgt) / out.size


def cross_entropy(outputs, targets) -> float:
    """Categorical cross-entropy, summed over classes."""

    out, tgt = _pair(outputs, targets)
    if out.shape != tgt.shape or out.size == 0:
        return 0.0
    return float(-np.sum(tgt * np.log(_clamp(out))))


def cross_entropy_gradient(outputs, targets) -> Array:
    out, tgt = _pair(outputs, targets)
    _check(out, tgt)
    return -tgt / _clamp(out)


def binary_cross_entropy(outputs, targets) -> float:
    out, tgt = _pair(outputs, targets)
    if out.shape != tgt.shape or out.size == 0:
        return 0.0
    p = _clamp(out)
    return float(-np.mean(tgt * np.log(p) + (1 - tgt) * np.log(1 - p)))


def binary_cross_entropy_gradient(outputs, targets) -> Array:
    out, tgt = _pair(outputs, targets)
    _check(out, tgt)
    p = _clamp(out)
    return (p - tgt) / (p * (1 - p)) / out.size


def huber_loss(outputs, targets, delta: float = 1.0) -> float:
    """Quadratic inside ``delta``, linear outside, averaged over entries."""

    out, tgt = _pair(outputs, targets)
    if out.shape != tgt.shape or out.size == 0:
        return 0.0
    abs_diff = np.abs(out - tgt)
    per_entry = np.where(
        abs_diff <= delta,
        0.5 * abs_diff * abs_diff,
        delta * abs_diff - 0.5 * delta * delta,
    )
    return float(np.mean(per_entry))


def huber_loss_gradient(outputs, targets, delta: float = 1.0) -> Array:
    out, tgt = _pair(outputs, targets)
    _check(out, tgt)
    diff = out - tgt
    grad = np.where(np.abs(diff) <= delta, diff, delta * np.sign(diff))
    return (grad / out.size).astype(out.dtype)


def focal_loss(outputs, targets, alpha: float = 1.0, gamma: float = 2.0) -> float:
    """Focal loss; ``(1 - pt) ** gamma`` down-weights easy examples."""

    out, tgt = _pair(outputs, targets)
    if out.shape != tgt.shape or out.size == 0:
        return 0.0
    p = _clamp(out)
    pt = tgt * p + (1 - tgt) * (1 - p)
    return float(-np.mean(alpha * np.power(1 - pt, gamma) * np.log(pt)))


def focal_loss_gradient(outputs, targets, alpha: float = 1.0, gamma: float = 2.0) -> Array:
    out, tgt = _pair(outputs, targets)
    _check(out, tgt)
    p = _clamp(out)
    pt = tgt * p + (1 - tgt) * (1 - p)
    factor1 = alpha * np.power(1 - pt, gamma)
    factor2 = alpha * gamma * np.power(1 - pt, gamma - 1) * np.log(pt)
    grad = np.where(tgt == 1, -factor1 / p + factor2, factor1 / (1 - p) - factor2)
    return (grad / out.size).astype(out.dtype)


@dataclass(frozen=True)
class Loss:
    """Loss wrapper pairing the scalar loss with dL/dy."""

    kind: LossType
    fn: LossFn
    gradient: GradFn

    @property
    def name(self) -> str:
        return self.kind.name.lower()

    def __call__(self, outputs, targets) -> float:
        return self.fn(outputs, targets)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[LossType, Loss] = {}

    def register(self, kind: LossType, fn: LossFn, gradient: GradFn) -> None:
        self._registry[kind] = Loss(kind, fn, gradient)

    def get(self, kind: LossType | str | int) -> Loss:
        parsed = LossType.parse(kind)
        try:
            return self._registry[parsed]
        except KeyError as exc:  # pragma: no cover - every LossType is registered
            raise KeyError(f"Unknown loss: {kind}") from exc

    def names(self) -> Iterable[str]:
        return sorted(loss.name for loss in self._registry.values())


REGISTRY = LossRegistry()
REGISTRY.register(LossType.MEAN_SQUARED_ERROR, mean_squared_error, mean_squared_error_gradient)
REGISTRY.register(LossType.CROSS_ENTROPY, cross_entropy, cross_entropy_gradient)
REGISTRY.register(
    LossType.BINARY_CROSS_ENTROPY, binary_cross_entropy, binary_cross_entropy_gradient
)
REGISTRY.register(LossType.HUBER, huber_loss, huber_loss_gradient)
REGISTRY.register(LossType.FOCAL, focal_loss, focal_loss_gradient)


def get_loss(kind: LossType | str | int) -> Loss:
    """Resolve ``kind`` to its ``(loss, gradient)`` pair."""

    return REGISTRY.get(kind)


__all__ = [
    "EPSILON",
    "Loss",
    "LossRegistry",
    "REGISTRY",
    "binary_cross_entropy",
    "binary_cross_entropy_gradient",
    "cross_entropy",
    "cross_entropy_gradient",
    "focal_loss",
    "focal_loss_gradient",
    "get_loss",
    "huber_loss",
    "huber_loss_gradient",
    "mean_squared_error",
    "mean_squared_error_gradient",
]

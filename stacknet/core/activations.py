"""Activation utilities for StackNet.

Scalar activations are written with numpy ufuncs so they accept a single
value or a whole vector and keep the caller's floating-point dtype.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from .types import ActivationType, Array

ScalarFn = Callable[[Array], Array]

SIGMOID_CLAMP = 500.0
_SQRT_2_OVER_PI = 0.7978845608028654
_GELU_COEFF = 0.044715


def identity(x: Array) -> Array:
    return np.asarray(x) * 1


def identity_derivative(x: Array) -> Array:
    return np.ones_like(x)


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0)


def relu_derivative(x: Array) -> Array:
    x = np.asarray(x)
    return (x > 0).astype(x.dtype)


def leaky_relu(x: Array, alpha: float = 0.01) -> Array:
    x = np.asarray(x)
    return np.where(x > 0, x, alpha * x).astype(x.dtype)


def leaky_relu_derivative(x: Array, alpha: float = 0.01) -> Array:
    x = np.asarray(x)
    return np.where(x > 0, 1.0, alpha).astype(x.dtype)


def sigmoid(x: Array) -> Array:
    """Logistic sigmoid; the input is clamped to +-500 before ``exp``."""

    x = np.clip(np.asarray(x), -SIGMOID_CLAMP, SIGMOID_CLAMP)
    with np.errstate(over="ignore"):
        return (1 / (1 + np.exp(-x))).astype(x.dtype)


def sigmoid_derivative(x: Array) -> Array:
    s = sigmoid(x)
    return s * (1 - s)


def tanh(x: Array) -> Array:
    return np.tanh(x)


def tanh_derivative(x: Array) -> Array:
    t = np.tanh(x)
    return 1 - t * t


def elu(x: Array, alpha: float = 1.0) -> Array:
    x = np.asarray(x)
    with np.errstate(over="ignore"):
        negative = alpha * (np.exp(np.minimum(x, 0)) - 1)
    return np.where(x > 0, x, negative).astype(x.dtype)


def elu_derivative(x: Array, alpha: float = 1.0) -> Array:
    x = np.asarray(x)
    return np.where(x > 0, 1.0, alpha * np.exp(np.minimum(x, 0))).astype(x.dtype)


def swish(x: Array) -> Array:
    return np.asarray(x) * sigmoid(x)


def swish_derivative(x: Array) -> Array:
    s = sigmoid(x)
    sw = np.asarray(x) * s
    return sw + s * (1 - sw)


def gelu(x: Array) -> Array:
    """GELU using the tanh approximation."""

    x = np.asarray(x)
    inner = _SQRT_2_OVER_PI * (x + _GELU_COEFF * x * x * x)
    return (0.5 * x * (1 + np.tanh(inner))).astype(x.dtype)


def gelu_derivative(x: Array) -> Array:
    x = np.asarray(x)
    x_sq = x * x
    tanh_inner = np.tanh(_SQRT_2_OVER_PI * (x + _GELU_COEFF * x_sq * x))
    sech_sq = 1 - tanh_inner * tanh_inner
    out = 0.5 * (1 + tanh_inner) + 0.5 * x * sech_sq * _SQRT_2_OVER_PI * (
        1 + 3 * _GELU_COEFF * x_sq
    )
    return out.astype(x.dtype)


def softmax(x: Array) -> Array:
    """Vector softmax with max-subtraction for numerical stability."""

    x = np.asarray(x)
    if x.size == 0:
        return x.copy()
    e = np.exp(x - np.max(x))
    return e / np.sum(e)


def softmax_derivative(x: Array, i: int, j: int) -> float:
    """Return ``d softmax(x)[i] / d x[j]``."""

    sm = softmax(x)
    if i == j:
        return sm[i] * (1 - sm[i])
    return -sm[i] * sm[j]


def softmax_jacobian(x: Array) -> Array:
    """Full Jacobian matrix of :func:`softmax` at ``x``."""

    sm = softmax(x)
    return np.diag(sm) - np.outer(sm, sm)


@dataclass(frozen=True)
class ActivationFunction:
    """Transfer function paired with its derivative.

    ``vectorwise`` marks kinds (softmax) that cannot be applied per unit;
    for those ``fn``/``derivative`` are the identity pair and the layer
    must call :func:`softmax` on the whole vector instead.
    """

    kind: ActivationType
    fn: ScalarFn
    derivative: ScalarFn
    vectorwise: bool = False

    def __call__(self, x: Array) -> Array:
        return self.fn(x)


_REGISTRY: Dict[ActivationType, ActivationFunction] = {
    ActivationType.NONE: ActivationFunction(ActivationType.NONE, identity, identity_derivative),
    ActivationType.RELU: ActivationFunction(ActivationType.RELU, relu, relu_derivative),
    ActivationType.SIGMOID: ActivationFunction(
        ActivationType.SIGMOID, sigmoid, sigmoid_derivative
    ),
    ActivationType.TANH: ActivationFunction(ActivationType.TANH, tanh, tanh_derivative),
    ActivationType.LEAKY_RELU: ActivationFunction(
        ActivationType.LEAKY_RELU, leaky_relu, leaky_relu_derivative
    ),
    ActivationType.ELU: ActivationFunction(ActivationType.ELU, elu, elu_derivative),
    ActivationType.SWISH: ActivationFunction(ActivationType.SWISH, swish, swish_derivative),
    ActivationType.GELU: ActivationFunction(ActivationType.GELU, gelu, gelu_derivative),
    ActivationType.SOFTMAX: ActivationFunction(
        ActivationType.SOFTMAX, identity, identity_derivative, vectorwise=True
    ),
}


def get_activation(kind: ActivationType | str | int) -> ActivationFunction:
    """Resolve an activation kind to its function pair."""

    return _REGISTRY[ActivationType.parse(kind)]


__all__ = [
    "ActivationFunction",
    "elu",
    "elu_derivative",
    "gelu",
    "gelu_derivative",
    "get_activation",
    "identity",
    "identity_derivative",
    "leaky_relu",
    "leaky_relu_derivative",
    "relu",
    "relu_derivative",
    "sigmoid",
    "sigmoid_derivative",
    "softmax",
    "softmax_derivative",
    "softmax_jacobian",
    "swish",
    "swish_derivative",
    "tanh",
    "tanh_derivative",
]

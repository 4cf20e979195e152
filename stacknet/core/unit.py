"""A single trainable node."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Sequence

import numpy as np

from .types import Array, SerializationError, resolve_dtype


@dataclass(eq=False)
class Unit:
    """Scalar state of one unit plus its incoming weight vector.

    ``incoming_weights`` has one entry per unit of the previous layer and
    stays empty for units of the input layer.
    """

    id: int = 0
    name: str = ""
    trainable: bool = True
    dtype: type = np.float64
    incoming_weights: Array = field(default=None, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        self.dtype = resolve_dtype(self.dtype)
        self.activation = self.dtype(0)
        self.bias = self.dtype(0)
        self.pre_activation = self.dtype(0)
        self.gradient = self.dtype(0)
        self.error_term = self.dtype(0)
        if self.incoming_weights is None:
            self.incoming_weights = np.zeros(0, dtype=self.dtype)
        else:
            self.incoming_weights = np.asarray(self.incoming_weights, dtype=self.dtype)

    @property
    def fan_in(self) -> int:
        return int(self.incoming_weights.shape[0])

    @property
    def net_input(self):
        """Pre-activation sum plus bias, the argument of the transfer function."""

        return self.dtype(self.pre_activation + self.bias)

    def set_weights(self, weights: Sequence[float] | Array) -> None:
        self.incoming_weights = np.array(weights, dtype=self.dtype).reshape(-1)

    def reset(self) -> None:
        """Zero transient state; weights and bias persist."""

        self.activation = self.dtype(0)
        self.pre_activation = self.dtype(0)
        self.gradient = self.dtype(0)
        self.error_term = self.dtype(0)

    def apply_activation(self, fn: Callable[[Array], Array]) -> None:
        self.activation = self.dtype(fn(self.net_input))

    def compute_activation_derivative(self, derivative: Callable[[Array], Array]):
        return self.dtype(derivative(self.net_input))

    def to_json(self) -> Dict[str, object]:
        return {
            "id": int(self.id),
            "activation": float(self.activation),
            "bias": float(self.bias),
            "weighted_input": float(self.pre_activation),
            "gradient": float(self.gradient),
            "delta": float(self.error_term),
            "trainable": bool(self.trainable),
            "name": self.name,
            "input_weights": [float(w) for w in self.incoming_weights],
        }

    def from_json(self, doc: Mapping[str, object]) -> None:
        """Update from a document; absent keys keep their current values."""

        if not isinstance(doc, Mapping):
            raise SerializationError(f"Unit document must be an object, got {type(doc).__name__}")
        try:
            if "id" in doc:
                self.id = int(doc["id"])  # type: ignore[arg-type]
            for key, attr in _SCALAR_FIELDS.items():
                if key in doc:
                    setattr(self, attr, self.dtype(float(doc[key])))  # type: ignore[arg-type]
            if "trainable" in doc:
                self.trainable = bool(doc["trainable"])
            if "name" in doc:
                self.name = str(doc["name"])
            if "input_weights" in doc:
                self.set_weights([float(w) for w in doc["input_weights"]])  # type: ignore[union-attr]
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Malformed unit document: {exc}") from exc


_SCALAR_FIELDS = {
    "activation": "activation",
    "bias": "bias",
    "weighted_input": "pre_activation",
    "gradient": "gradient",
    "delta": "error_term",
}


__all__ = ["Unit"]

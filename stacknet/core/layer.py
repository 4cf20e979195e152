"""Layer of units sharing activation and dropout policy."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Sequence

import numpy as np

from .activations import ActivationFunction, get_activation, softmax
from .initializers import CONSTANT_KINDS, get_initializer
from .types import (
    ActivationType,
    Array,
    InitializationType,
    LayerConfig,
    SerializationError,
    ShapeError,
    resolve_dtype,
)
from .unit import Unit

logger = logging.getLogger(__name__)


class Layer:
    """Ordered, fixed-size collection of :class:`Unit` objects.

    Activation kind, dropout rate and trainability are layer-level policy
    applied uniformly to every unit.
    """

    def __init__(
        self,
        size: int,
        activation: ActivationType | str | int = ActivationType.RELU,
        name: str = "",
        *,
        dropout_rate: float = 0.0,
        trainable: bool = True,
        weight_init: InitializationType | str | int = InitializationType.XAVIER,
        dtype: object = np.float64,
    ) -> None:
        if int(size) < 1:
            raise ValueError(f"Layer size must be positive, got {size}")
        self.dtype = resolve_dtype(dtype)
        self.name = name
        self.trainable = bool(trainable)
        self.weight_init = InitializationType.parse(weight_init)
        self._dropout_rate = 0.0
        self.dropout_rate = dropout_rate
        self._activation_fn: ActivationFunction = get_activation(activation)
        self.units: List[Unit] = [Unit(id=i, dtype=self.dtype) for i in range(int(size))]
        self._dropout_mask = [True] * len(self.units)

    @classmethod
    def from_config(cls, config: LayerConfig, *, dtype: object = np.float64) -> "Layer":
        return cls(
            config.size,
            config.activation,
            config.name,
            dropout_rate=config.dropout_rate,
            trainable=config.trainable,
            weight_init=config.weight_init,
            dtype=dtype,
        )

    def __len__(self) -> int:
        return len(self.units)

    def __repr__(self) -> str:
        return (
            f"Layer(name={self.name!r}, size={self.size}, "
            f"activation={self.activation_type.name}, dropout_rate={self.dropout_rate})"
        )

    # ------------------------------------------------------------------
    # Properties

    @property
    def size(self) -> int:
        return len(self.units)

    @property
    def fan_in(self) -> int:
        return self.units[0].fan_in

    @property
    def activation_type(self) -> ActivationType:
        return self._activation_fn.kind

    @activation_type.setter
    def activation_type(self, kind: ActivationType | str | int) -> None:
        self._activation_fn = get_activation(kind)

    def set_activation_type(self, kind: ActivationType | str | int) -> None:
        self.activation_type = kind

    @property
    def activation_function(self) -> ActivationFunction:
        return self._activation_fn

    @property
    def dropout_rate(self) -> float:
        return self._dropout_rate

    @dropout_rate.setter
    def dropout_rate(self, rate: float) -> None:
        self._dropout_rate = min(1.0, max(0.0, float(rate)))

    @property
    def dropout_mask(self) -> tuple[bool, ...]:
        return tuple(self._dropout_mask)

    def get_unit(self, index: int) -> Unit:
        return self.units[index]

    # ------------------------------------------------------------------
    # Vector views

    def activations(self) -> Array:
        return np.array([u.activation for u in self.units], dtype=self.dtype)

    def set_activations(self, values: Sequence[float] | Array) -> None:
        values = np.asarray(values, dtype=self.dtype).reshape(-1)
        if values.shape[0] != self.size:
            raise ShapeError(f"Expected {self.size} activations, got {values.shape[0]}")
        for unit, value in zip(self.units, values):
            unit.activation = value

    def biases(self) -> Array:
        return np.array([u.bias for u in self.units], dtype=self.dtype)

    def set_biases(self, values: Sequence[float] | Array) -> None:
        values = np.asarray(values, dtype=self.dtype).reshape(-1)
        if values.shape[0] != self.size:
            raise ShapeError(f"Expected {self.size} biases, got {values.shape[0]}")
        for unit, value in zip(self.units, values):
            unit.bias = value

    def pre_activations(self) -> Array:
        return np.array([u.pre_activation for u in self.units], dtype=self.dtype)

    def error_terms(self) -> Array:
        return np.array([u.error_term for u in self.units], dtype=self.dtype)

    def set_error_terms(self, values: Sequence[float] | Array) -> None:
        values = np.asarray(values, dtype=self.dtype).reshape(-1)
        if values.shape[0] != self.size:
            raise ShapeError(f"Expected {self.size} error terms, got {values.shape[0]}")
        for unit, value in zip(self.units, values):
            unit.gradient = value
            unit.error_term = value

    def weight_matrix(self) -> Array:
        """Return incoming weights as a ``(size, fan_in)`` matrix."""

        return np.stack([u.incoming_weights for u in self.units]).astype(self.dtype)

    def set_weight_matrix(self, weights: Sequence[Sequence[float]] | Array) -> None:
        matrix = np.asarray(weights, dtype=self.dtype)
        if matrix.ndim != 2 or matrix.shape[0] != self.size:
            raise ShapeError(
                f"Weight matrix must have shape ({self.size}, fan_in), got {matrix.shape}"
            )
        for unit, row in zip(self.units, matrix):
            unit.set_weights(row)

    # ------------------------------------------------------------------
    # Numeric steps

    def initialize_weights(
        self,
        prev_layer_size: int,
        init_type: InitializationType | str | int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        """(Re)draw every incoming weight; biases start at zero.

        The ZERO and ONE kinds set weights and bias to the constant.
        """

        kind = self.weight_init if init_type is None else InitializationType.parse(init_type)
        prev_layer_size = int(prev_layer_size)
        if kind in CONSTANT_KINDS:
            value = CONSTANT_KINDS[kind]
            for unit in self.units:
                unit.set_weights(np.full(prev_layer_size, value))
                unit.bias = self.dtype(value)
            return

        rng = rng if rng is not None else np.random.default_rng()
        init = get_initializer(kind)
        fan_out = self.size
        for unit in self.units:
            unit.set_weights([init(prev_layer_size, fan_out, rng) for _ in range(prev_layer_size)])
            unit.bias = self.dtype(0)

    def forward(self, inputs: Sequence[float] | Array) -> None:
        """Compute each unit's pre-activation sum ``inputs . weights``."""

        inputs = np.asarray(inputs, dtype=self.dtype).reshape(-1)
        for unit in self.units:
            if unit.fan_in != inputs.shape[0]:
                raise ShapeError(
                    f"Layer {self.name!r} expects {unit.fan_in} inputs, got {inputs.shape[0]}"
                )
            unit.pre_activation = self.dtype(np.dot(inputs, unit.incoming_weights))

    def apply_activation(self) -> None:
        if self._activation_fn.vectorwise:
            net = np.array([u.net_input for u in self.units], dtype=self.dtype)
            for unit, value in zip(self.units, softmax(net)):
                unit.activation = self.dtype(value)
            return
        for unit in self.units:
            unit.apply_activation(self._activation_fn.fn)

    def apply_dropout(self, training: bool = True, rng: np.random.Generator | None = None) -> None:
        """Inverted dropout: drop with ``dropout_rate``, rescale survivors."""

        if not training or self._dropout_rate <= 0.0:
            self._dropout_mask = [True] * self.size
            return

        rng = rng if rng is not None else np.random.default_rng()
        keep_prob = 1.0 - self._dropout_rate
        for index, unit in enumerate(self.units):
            keep = bool(rng.random() < keep_prob)
            self._dropout_mask[index] = keep
            if keep:
                unit.activation = self.dtype(unit.activation / keep_prob)
            else:
                unit.activation = self.dtype(0)

    def compute_gradients(
        self,
        next_deltas: Sequence[float] | Array,
        next_weights: Sequence[Sequence[float]] | Array,
    ) -> None:
        """Back-propagate error terms from the following layer.

        ``next_weights[j][i]`` is the weight from unit ``i`` of this layer
        to unit ``j`` of the next one.
        """

        deltas = np.asarray(next_deltas, dtype=self.dtype).reshape(-1)
        try:
            weights = np.asarray(next_weights, dtype=self.dtype)
        except ValueError as exc:
            raise ShapeError(f"Ragged next-layer weights: {exc}") from exc
        if weights.ndim != 2 or weights.shape[0] != deltas.shape[0]:
            raise ShapeError(
                f"Expected {deltas.shape[0]} weight rows, got array of shape {weights.shape}"
            )
        if weights.shape[1] < self.size:
            raise ShapeError(
                f"Next-layer weight rows have {weights.shape[1]} entries, layer has {self.size} units"
            )

        upstream = deltas @ weights[:, : self.size]
        derivative = self._activation_fn.derivative
        for unit, grad in zip(self.units, upstream):
            unit.gradient = self.dtype(grad)
            unit.error_term = self.dtype(grad * unit.compute_activation_derivative(derivative))

    def update_weights(self, learning_rate: float, prev_activations: Sequence[float] | Array) -> None:
        """Plain gradient-descent step; no-op for frozen layers."""

        if not self.trainable:
            return
        prev = np.asarray(prev_activations, dtype=self.dtype).reshape(-1)
        lr = self.dtype(learning_rate)
        for unit in self.units:
            if unit.fan_in != prev.shape[0]:
                raise ShapeError(
                    f"Layer {self.name!r} expects {unit.fan_in} activations, got {prev.shape[0]}"
                )
            step = lr * unit.error_term
            unit.incoming_weights = (unit.incoming_weights - step * prev).astype(self.dtype)
            unit.bias = self.dtype(unit.bias - step)

    def reset(self) -> None:
        for unit in self.units:
            unit.reset()
        self._dropout_mask = [True] * self.size

    # ------------------------------------------------------------------
    # Serialisation

    def to_json(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "size": self.size,
            "activation_type": int(self.activation_type),
            "dropout_rate": float(self.dropout_rate),
            "trainable": bool(self.trainable),
            "neurons": [unit.to_json() for unit in self.units],
        }

    def from_json(self, doc: Mapping[str, object]) -> None:
        """Update from a document; absent keys keep their current values.

        All fields are parsed before any is assigned, so a malformed
        document leaves the layer unchanged.
        """

        if not isinstance(doc, Mapping):
            raise SerializationError(f"Layer document must be an object, got {type(doc).__name__}")
        try:
            name = str(doc["name"]) if "name" in doc else self.name
            activation = (
                get_activation(int(doc["activation_type"]))  # type: ignore[arg-type]
                if "activation_type" in doc
                else self._activation_fn
            )
            dropout = float(doc["dropout_rate"]) if "dropout_rate" in doc else self.dropout_rate  # type: ignore[arg-type]
            trainable = bool(doc["trainable"]) if "trainable" in doc else self.trainable
            size = int(doc["size"]) if "size" in doc else None  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Malformed layer document: {exc}") from exc

        units = self.units
        if "neurons" in doc:
            neurons = doc["neurons"]
            if not isinstance(neurons, list) or not neurons:
                raise SerializationError("Layer 'neurons' must be a non-empty array")
            units = []
            for index, unit_doc in enumerate(neurons):
                unit = Unit(id=index, dtype=self.dtype)
                unit.from_json(unit_doc)
                units.append(unit)
            if size is not None and size != len(units):
                raise SerializationError(
                    f"Layer size {size} does not match {len(units)} serialised neurons"
                )
        elif size is not None and size != self.size:
            if size < 1:
                raise SerializationError(f"Layer size must be positive, got {size}")
            units = [Unit(id=i, dtype=self.dtype) for i in range(size)]

        fan_ins = {unit.fan_in for unit in units}
        if len(fan_ins) > 1:
            raise SerializationError(f"Units of layer {name!r} disagree on fan-in: {sorted(fan_ins)}")

        self.name = name
        self._activation_fn = activation
        self.dropout_rate = dropout
        self.trainable = trainable
        self.units = units
        self._dropout_mask = [True] * len(units)


__all__ = ["Layer"]

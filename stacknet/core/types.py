"""Core typing contracts for StackNet."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Dict, List, Mapping

import numpy as np

Array = np.ndarray

SUPPORTED_DTYPES = (np.float32, np.float64)


def resolve_dtype(dtype: object) -> type:
    """Return the numpy scalar type for ``dtype`` or raise ``ValueError``."""

    scalar = np.dtype(dtype).type
    if scalar not in SUPPORTED_DTYPES:
        raise ValueError(f"Unsupported dtype {dtype!r}; use float32 or float64")
    return scalar


class _NamedEnum(IntEnum):
    """Integer enum that also parses from names and aliases."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def parse(cls, value: object):
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid {cls.__name__}: {value!r}")
        if isinstance(value, (int, np.integer)):
            return cls(int(value))
        if isinstance(value, str):
            key = value.strip().lower().replace("-", "_").replace(" ", "_")
            key = cls._aliases().get(key, key)
            for member in cls:
                if member.name.lower() == key:
                    return member
        raise ValueError(f"Invalid {cls.__name__}: {value!r}")


class ActivationType(_NamedEnum):
    NONE = 0
    RELU = 1
    SIGMOID = 2
    TANH = 3
    LEAKY_RELU = 4
    ELU = 5
    SWISH = 6
    GELU = 7
    SOFTMAX = 8

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"linear": "none", "identity": "none", "leakyrelu": "leaky_relu"}


class OptimizerType(_NamedEnum):
    SGD = 0
    ADAM = 1
    RMSPROP = 2
    ADAGRAD = 3


class LossType(_NamedEnum):
    MEAN_SQUARED_ERROR = 0
    CROSS_ENTROPY = 1
    BINARY_CROSS_ENTROPY = 2
    HUBER = 3
    FOCAL = 4

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {
            "mse": "mean_squared_error",
            "ce": "cross_entropy",
            "bce": "binary_cross_entropy",
            "focal_loss": "focal",
        }


class InitializationType(_NamedEnum):
    RANDOM = 0
    XAVIER = 1
    HE = 2
    ZERO = 3
    ONE = 4
    LECUN = 5
    NORMAL = 6

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"glorot": "xavier", "uniform": "random", "zeros": "zero", "ones": "one"}


class StackNetError(Exception):
    """Base class for errors raised by StackNet."""


class ShapeError(StackNetError, ValueError):
    """Vector or batch lengths do not match the network structure."""


class SerializationError(StackNetError, ValueError):
    """A persisted network document is malformed."""


class NetworkBusyError(StackNetError, RuntimeError):
    """Structural mutation was attempted while a training call is running."""


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`stacknet.training.pipelines.run_pipeline`."""

    epochs: int
    metrics_path: str
    manifest_path: str
    model_path: str
    summary_path: str = ""


@dataclass
class LayerConfig:
    """Structural description of one layer."""

    size: int
    activation: ActivationType = ActivationType.RELU
    dropout_rate: float = 0.0
    weight_init: InitializationType = InitializationType.XAVIER
    name: str = ""
    trainable: bool = True

    def __post_init__(self) -> None:
        self.activation = ActivationType.parse(self.activation)
        self.weight_init = InitializationType.parse(self.weight_init)
        if int(self.size) < 1:
            raise ValueError(f"Layer size must be positive, got {self.size}")
        self.size = int(self.size)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "LayerConfig":
        return cls(
            size=int(data["size"]),  # type: ignore[arg-type]
            activation=data.get("activation", ActivationType.RELU),  # type: ignore[arg-type]
            dropout_rate=float(data.get("dropout_rate", 0.0)),  # type: ignore[arg-type]
            weight_init=data.get("weight_init", InitializationType.XAVIER),  # type: ignore[arg-type]
            name=str(data.get("name", "")),
            trainable=bool(data.get("trainable", True)),
        )

    def to_mapping(self) -> Dict[str, object]:
        return {
            "size": self.size,
            "activation": self.activation.name.lower(),
            "dropout_rate": float(self.dropout_rate),
            "weight_init": self.weight_init.name.lower(),
            "name": self.name,
            "trainable": self.trainable,
        }


@dataclass
class TrainingConfig:
    """Hyperparameters for :meth:`stacknet.core.network.Network.train`."""

    learning_rate: float = 0.001
    batch_size: int = 32
    epochs: int = 100
    validation_split: float = 0.2
    shuffle: bool = True
    early_stopping_patience: int = 10
    early_stopping_min_delta: float = 1e-4

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "TrainingConfig":
        known = {name for name in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        if "lr" in data and "learning_rate" not in data:
            values["learning_rate"] = data["lr"]
        return cls(**values)  # type: ignore[arg-type]

    def to_mapping(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class NetworkConfig:
    """Ordered layer specs plus hyperparameters."""

    layers: List[LayerConfig] = field(default_factory=list)
    optimizer: OptimizerType = OptimizerType.ADAM
    loss: LossType = LossType.MEAN_SQUARED_ERROR
    training: TrainingConfig = field(default_factory=TrainingConfig)
    name: str = "Neural Network"

    def __post_init__(self) -> None:
        self.optimizer = OptimizerType.parse(self.optimizer)
        self.loss = LossType.parse(self.loss)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "NetworkConfig":
        layers = [
            layer if isinstance(layer, LayerConfig) else LayerConfig.from_mapping(layer)
            for layer in data.get("layers", [])  # type: ignore[union-attr]
        ]
        training = data.get("training", {})
        if not isinstance(training, TrainingConfig):
            training = TrainingConfig.from_mapping(training)  # type: ignore[arg-type]
        return cls(
            layers=layers,
            optimizer=data.get("optimizer", OptimizerType.ADAM),  # type: ignore[arg-type]
            loss=data.get("loss", LossType.MEAN_SQUARED_ERROR),  # type: ignore[arg-type]
            training=training,
            name=str(data.get("name", "Neural Network")),
        )

    def to_mapping(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "optimizer": self.optimizer.name.lower(),
            "loss": self.loss.name.lower(),
            "training": self.training.to_mapping(),
            "layers": [layer.to_mapping() for layer in self.layers],
        }


@dataclass
class TrainingHistory:
    """Per-epoch training record returned by ``Network.train``."""

    train_loss: List[float] = field(default_factory=list)
    train_accuracy: List[float] = field(default_factory=list)
    val_loss: List[float] = field(default_factory=list)
    val_accuracy: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.train_loss)

    def to_mapping(self) -> Dict[str, List[float]]:
        return {name: [float(v) for v in values] for name, values in asdict(self).items()}


__all__ = [
    "Array",
    "ActivationType",
    "InitializationType",
    "LayerConfig",
    "LossType",
    "NetworkBusyError",
    "NetworkConfig",
    "OptimizerType",
    "RunResult",
    "SerializationError",
    "ShapeError",
    "StackNetError",
    "SUPPORTED_DTYPES",
    "TrainingConfig",
    "TrainingHistory",
    "resolve_dtype",
]

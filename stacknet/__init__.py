"""StackNet public API."""

import logging

from .core import activations, initializers, types  # noqa: F401
from .core.layer import Layer
from .core.network import Network
from .core.types import (
    ActivationType,
    InitializationType,
    LayerConfig,
    LossType,
    NetworkBusyError,
    NetworkConfig,
    OptimizerType,
    SerializationError,
    ShapeError,
    StackNetError,
    TrainingConfig,
    TrainingHistory,
)
from .core.unit import Unit
from .training.control import CancellationToken
from .training.pipelines import build_network, load_preset, presets, run_pipeline

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ActivationType",
    "CancellationToken",
    "InitializationType",
    "Layer",
    "LayerConfig",
    "LossType",
    "Network",
    "NetworkBusyError",
    "NetworkConfig",
    "OptimizerType",
    "SerializationError",
    "ShapeError",
    "StackNetError",
    "TrainingConfig",
    "TrainingHistory",
    "Unit",
    "activations",
    "build_network",
    "initializers",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]

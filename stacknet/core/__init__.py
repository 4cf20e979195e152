"""Core numerical primitives for StackNet."""

from . import activations, initializers, layer, network, types, unit

__all__ = ["activations", "initializers", "layer", "network", "types", "unit"]

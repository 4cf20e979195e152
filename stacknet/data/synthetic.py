"""Pure in-memory synthetic datasets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, MutableMapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class Dataset:
    """Sample-per-row dataset ready for :meth:`Network.train`.

    Attributes
    ----------
    name:
        Registry name of the generator that produced the data.
    inputs, targets:
        One 1-D array per sample.
    task_type:
        ``"regression"``, ``"binary"`` or ``"multiclass"``.
    provenance:
        Generator options, written into run manifests.
    """

    name: str
    inputs: List[Array]
    targets: List[Array]
    task_type: str
    provenance: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.inputs)

    @property
    def d_in(self) -> int:
        return int(self.inputs[0].shape[0]) if self.inputs else 0

    @property
    def d_out(self) -> int:
        return int(self.targets[0].shape[0]) if self.targets else 0

    def split(self, validation_split: float, rng: np.random.Generator) -> tuple["Dataset", "Dataset"]:
        """Shuffle and split off a validation set of ``validation_split`` fraction."""

        n_val = int(round(len(self) * min(max(validation_split, 0.0), 1.0)))
        order = rng.permutation(len(self))
        val_idx, train_idx = order[:n_val], order[n_val:]
        train = Dataset(
            self.name,
            [self.inputs[i] for i in train_idx],
            [self.targets[i] for i in train_idx],
            self.task_type,
            dict(self.provenance),
        )
        val = Dataset(
            self.name,
            [self.inputs[i] for i in val_idx],
            [self.targets[i] for i in val_idx],
            self.task_type,
            dict(self.provenance),
        )
        return train, val


DatasetFactory = Callable[..., Dataset]

_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(name: str) -> Callable[[DatasetFactory], DatasetFactory]:
    def decorator(factory: DatasetFactory) -> DatasetFactory:
        _REGISTRY[name] = factory
        return factory

    return decorator


def available_datasets() -> List[str]:
    return sorted(_REGISTRY)


def get_dataset(name: str, **options: Any) -> Dataset:
    try:
        factory = _REGISTRY[name]
    except KeyError as exc:
        raise KeyError(f"Unknown dataset: {name}") from exc
    return factory(**options)


def _rows(matrix: np.ndarray) -> List[Array]:
    return [row.copy() for row in matrix]


@register_dataset("xor")
def make_xor(repeat: int = 1) -> Dataset:
    """The four XOR points, optionally repeated."""

    x = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([[0.0], [1.0], [1.0], [0.0]])
    x = np.tile(x, (repeat, 1))
    y = np.tile(y, (repeat, 1))
    return Dataset("xor", _rows(x), _rows(y), "binary", {"type": "xor", "repeat": repeat})


@register_dataset("sine")
def make_sine(freq: int = 1, n_points: int = 64, noise: float = 0.05, seed: int = 0) -> Dataset:
    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = np.sin(freq * np.pi * x) + noise * rng.standard_normal(size=x.shape)
    provenance = {"type": "sine", "freq": freq, "n_points": n_points, "noise": noise, "seed": seed}
    return Dataset("sine", _rows(x), _rows(y), "regression", provenance)


@register_dataset("blobs")
def make_blobs(
    n_classes: int = 3,
    n_per_class: int = 30,
    n_features: int = 2,
    spread: float = 0.3,
    seed: int = 0,
) -> Dataset:
    """Gaussian clusters around random centres with one-hot targets."""

    rng = np.random.default_rng(seed)
    centres = rng.uniform(-2.0, 2.0, size=(n_classes, n_features))
    x = np.concatenate(
        [c + spread * rng.standard_normal(size=(n_per_class, n_features)) for c in centres]
    )
    labels = np.repeat(np.arange(n_classes), n_per_class)
    y = np.eye(n_classes)[labels]
    provenance = {
        "type": "blobs",
        "n_classes": n_classes,
        "n_per_class": n_per_class,
        "n_features": n_features,
        "spread": spread,
        "seed": seed,
    }
    return Dataset("blobs", _rows(x), _rows(y), "multiclass", provenance)


__all__ = [
    "Dataset",
    "available_datasets",
    "get_dataset",
    "make_blobs",
    "make_sine",
    "make_xor",
    "register_dataset",
]

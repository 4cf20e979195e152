"""Pipeline assembly: presets, network construction and run artifacts."""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from pathlib import Path
from typing import Dict, Mapping

import numpy as np

from ..core.network import Network
from ..core.types import NetworkConfig, RunResult, TrainingConfig
from ..data.synthetic import Dataset, get_dataset
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CallbackGroup, CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .control import CancellationToken

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "name": "xor",
            "loss": "mse",
            "optimizer": "sgd",
            "layers": [
                {"size": 2, "activation": "none"},
                {"size": 4, "activation": "relu", "weight_init": "xavier"},
                {"size": 1, "activation": "sigmoid", "weight_init": "xavier"},
            ],
        },
        "train": {
            "epochs": 1000,
            "batch_size": 4,
            "lr": 0.1,
            "seed": 0,
            "validation_split": 0.0,
            "run_dir": "runs/xor",
            "enable_plots": False,
        },
    },
    "sine-regression": {
        "data": {"name": "sine", "options": {"freq": 1, "n_points": 64, "seed": 0}},
        "model": {
            "name": "sine-regression",
            "loss": "mse",
            "optimizer": "sgd",
            "layers": [
                {"size": 1, "activation": "none"},
                {"size": 16, "activation": "tanh", "weight_init": "xavier"},
                {"size": 1, "activation": "none", "weight_init": "xavier"},
            ],
        },
        "train": {
            "epochs": 200,
            "batch_size": 8,
            "lr": 0.05,
            "seed": 7,
            "validation_split": 0.2,
            "run_dir": "runs/sine-regression",
            "enable_plots": False,
        },
    },
    "blobs-softmax": {
        "data": {
            "name": "blobs",
            "options": {"n_classes": 3, "n_per_class": 30, "n_features": 2, "seed": 0},
        },
        "model": {
            "name": "blobs-softmax",
            "loss": "mse",
            "optimizer": "sgd",
            "layers": [
                {"size": 2, "activation": "none"},
                {"size": 8, "activation": "relu", "weight_init": "he"},
                {"size": 3, "activation": "softmax", "weight_init": "xavier"},
            ],
        },
        "train": {
            "epochs": 100,
            "batch_size": 16,
            "lr": 0.1,
            "seed": 1,
            "validation_split": 0.2,
            "run_dir": "runs/blobs-softmax",
            "enable_plots": False,
        },
    },
}


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def build_network(config: Mapping[str, object], *, seed: int | None = None) -> Network:
    """Build a network from the ``model`` and ``train`` sections of a run config."""

    model_cfg = dict(config.get("model", {}))  # type: ignore[arg-type]
    model_cfg["training"] = dict(config.get("train", {}))  # type: ignore[arg-type]
    network_config = NetworkConfig.from_mapping(model_cfg)
    dtype = np.dtype(str(model_cfg.get("dtype", "float64")))
    return Network.from_config(network_config, dtype=dtype, seed=seed)


class _EarlyStopping:
    """Cancel training once the epoch loss stops improving."""

    def __init__(self, token: CancellationToken, patience: int, min_delta: float) -> None:
        self.token = token
        self.patience = patience
        self.min_delta = min_delta
        self.best = float("inf")
        self.stale = 0

    def __call__(self, epoch: int, loss: float, accuracy: float) -> None:
        if loss < self.best - self.min_delta:
            self.best = loss
            self.stale = 0
            return
        self.stale += 1
        if self.stale >= self.patience:
            logger.info("Early stopping after epoch %d (best loss %.6f)", epoch + 1, self.best)
            self.token.cancel()


def _check_dims(network: Network, dataset: Dataset) -> None:
    if network.get_layer_count() < 2:
        raise ValueError("Model needs at least an input and an output layer")
    d_in = network.get_layer(0).size
    d_out = network.get_layer(-1).size
    if dataset.d_in != d_in:
        raise ValueError(f"Configured input size {d_in} but dataset has {dataset.d_in}")
    if dataset.d_out != d_out:
        raise ValueError(f"Configured output size {d_out} but dataset has {dataset.d_out}")


def _safe_config(config: Mapping[str, object]) -> Mapping[str, object]:
    return json.loads(json.dumps(config, default=str))


def _log_startup_summary(network: Network, dataset: Dataset, training: TrainingConfig) -> None:
    logger.info("=== StackNet run ===")
    logger.info("Dataset       : %s (%d samples)", dataset.name, len(dataset))
    logger.info("Layers        : %s", [layer.size for layer in network.layers])
    logger.info("Loss          : %s", network.loss_type.name.lower())
    logger.info("Optimizer     : %s", network.optimizer_type.name.lower())
    logger.info("Learning rate : %g", network.learning_rate)
    logger.info("Batch size    : %d", training.batch_size)
    logger.info("Parameters    : %d", network.parameter_count())


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Train a network described by ``config`` and write run artifacts.

    ``config`` has ``data`` (``name`` and ``options`` of a registered
    dataset), ``model`` (a :class:`NetworkConfig` mapping) and ``train``
    (a :class:`TrainingConfig` mapping plus ``seed``, ``run_dir``,
    ``enable_plots``, ``early_stopping`` and ``summary_tail``).
    """

    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]
    training = TrainingConfig.from_mapping(train_cfg)
    seed = int(train_cfg.get("seed", 0))

    dataset = get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    network = build_network(config, seed=seed)
    _check_dims(network, dataset)

    train_set, val_set = dataset, None
    if training.validation_split > 0 and len(dataset) > 1:
        train_set, val_set = dataset.split(training.validation_split, np.random.default_rng(seed + 1))
        if len(val_set) == 0:
            val_set = None

    run_dir = Path(str(train_cfg.get("run_dir", f"runs/{dataset.name}")))
    run_dir.mkdir(parents=True, exist_ok=True)
    _log_startup_summary(network, dataset, training)

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="train")
    plotter = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    token = CancellationToken()
    early = None
    if train_cfg.get("early_stopping", False):
        early = _EarlyStopping(
            token, training.early_stopping_patience, training.early_stopping_min_delta
        )

    history = network.train(
        train_set.inputs,
        train_set.targets,
        training.epochs,
        training.batch_size,
        val_set.inputs if val_set is not None else None,
        val_set.targets if val_set is not None else None,
        progress_callback=CallbackGroup(jsonl, csv_sink, plotter, early),
        cancel_token=token,
        shuffle=training.shuffle,
    )
    plotter.close()

    model_path = run_dir / "model.json"
    if not network.save_to_file(model_path):
        raise OSError(f"Could not write model to {model_path}")
    (run_dir / "history.json").write_text(json.dumps(history.to_mapping(), indent=2))

    safe = _safe_config(config)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe,
        dataset_provenance=dataset.provenance,
        network={"layers": network.summary(), "parameters": network.parameter_count()},
    )
    summary_path = write_summary(
        jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(safe, indent=2))

    return RunResult(
        epochs=len(history),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        model_path=str(model_path),
        summary_path=summary_path,
    )


__all__ = ["build_network", "load_preset", "presets", "run_pipeline"]

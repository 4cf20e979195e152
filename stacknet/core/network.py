"""Feed-forward network: layer stack, backpropagation and training loop."""

from __future__ import annotations

import copy
import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Sequence

import numpy as np

from ..training.control import CancellationToken, TrainingControl
from ..training.losses import Loss, get_loss
from ..training.metrics import compute_accuracy, partition, shuffled_indices
from .layer import Layer
from .types import (
    Array,
    InitializationType,
    LayerConfig,
    LossType,
    NetworkBusyError,
    NetworkConfig,
    OptimizerType,
    SerializationError,
    ShapeError,
    TrainingHistory,
    resolve_dtype,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, float, float], None]


class Network:
    """Ordered stack of layers; layer 0 is the input layer.

    Structural mutators share one re-entrant lock and refuse to run while
    a :meth:`train` call is in flight. ``forward``/``backward``/``train``
    do not take the lock.
    """

    def __init__(
        self,
        name: str = "Neural Network",
        *,
        learning_rate: float = 0.001,
        loss: LossType | str | int = LossType.MEAN_SQUARED_ERROR,
        optimizer: OptimizerType | str | int = OptimizerType.ADAM,
        dtype: object = np.float64,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.name = name
        self.dtype = resolve_dtype(dtype)
        self.learning_rate = float(learning_rate)
        self._loss: Loss = get_loss(loss)
        self._optimizer = OptimizerType.parse(optimizer)
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self._layers: List[Layer] = []
        self._lock = threading.RLock()
        self._control = TrainingControl()
        self._dropout_active = False
        self._optimizer_warned = False

    @classmethod
    def from_config(
        cls,
        config: NetworkConfig | Mapping[str, object],
        *,
        dtype: object = np.float64,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> "Network":
        """Build a network from a structural configuration.

        Each layer is initialised with its own ``weight_init`` kind as it is
        appended.
        """

        if not isinstance(config, NetworkConfig):
            config = NetworkConfig.from_mapping(config)
        network = cls(
            config.name,
            learning_rate=config.training.learning_rate,
            loss=config.loss,
            optimizer=config.optimizer,
            dtype=dtype,
            seed=seed,
            rng=rng,
        )
        for layer_config in config.layers:
            network.add_layer(layer_config)
        return network

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        sizes = [layer.size for layer in self._layers]
        return f"Network(name={self.name!r}, layers={sizes}, loss={self.loss_type.name})"

    # ------------------------------------------------------------------
    # Configuration

    @property
    def loss_type(self) -> LossType:
        return self._loss.kind

    @loss_type.setter
    def loss_type(self, kind: LossType | str | int) -> None:
        self._loss = get_loss(kind)

    def set_loss_type(self, kind: LossType | str | int) -> None:
        self.loss_type = kind

    @property
    def loss(self) -> Loss:
        return self._loss

    @property
    def optimizer_type(self) -> OptimizerType:
        return self._optimizer

    @optimizer_type.setter
    def optimizer_type(self, kind: OptimizerType | str | int) -> None:
        self._optimizer = OptimizerType.parse(kind)
        self._optimizer_warned = False

    def set_optimizer_type(self, kind: OptimizerType | str | int) -> None:
        self.optimizer_type = kind

    @property
    def layers(self) -> tuple[Layer, ...]:
        return tuple(self._layers)

    def get_layer_count(self) -> int:
        return len(self._layers)

    def get_layer(self, index: int) -> Layer:
        return self._layers[index]

    def parameter_count(self) -> int:
        return sum(layer.size * (layer.fan_in + 1) for layer in self._layers[1:])

    def summary(self) -> List[Dict[str, object]]:
        """Read-only per-layer description for display code."""

        rows = []
        for index, layer in enumerate(self._layers):
            rows.append(
                {
                    "index": index,
                    "name": layer.name,
                    "size": layer.size,
                    "activation": layer.activation_type.name.lower(),
                    "dropout_rate": layer.dropout_rate,
                    "trainable": layer.trainable,
                    "parameters": 0 if index == 0 else layer.size * (layer.fan_in + 1),
                }
            )
        return rows

    # ------------------------------------------------------------------
    # Structure

    @contextmanager
    def _mutation(self, operation: str) -> Iterator[None]:
        with self._lock:
            if self._control.is_running():
                raise NetworkBusyError(f"Cannot {operation} while network {self.name!r} is training")
            yield

    def add_layer(
        self,
        layer: Layer | LayerConfig | Mapping[str, object],
        *,
        init_type: InitializationType | str | int | None = None,
        rng: np.random.Generator | None = None,
    ) -> Layer:
        """Append ``layer``, initialising it against the current last layer."""

        if isinstance(layer, Mapping):
            layer = LayerConfig.from_mapping(layer)
        if isinstance(layer, LayerConfig):
            layer = Layer.from_config(layer, dtype=self.dtype)
        if layer.dtype is not self.dtype:
            raise ValueError(
                f"Layer dtype {np.dtype(layer.dtype).name} does not match network dtype "
                f"{np.dtype(self.dtype).name}"
            )
        with self._mutation("add a layer"):
            if self._layers:
                layer.initialize_weights(
                    self._layers[-1].size, init_type, rng if rng is not None else self.rng
                )
            self._layers.append(layer)
            logger.debug("Added layer to network %r. Total layers: %d", self.name, len(self._layers))
        return layer

    def remove_layer(self, index: int) -> None:
        """Remove a layer and re-initialise every layer after it.

        Learned weights of all downstream layers are discarded.
        """

        with self._mutation("remove a layer"):
            if not 0 <= index < len(self._layers):
                logger.warning(
                    "Attempted to remove layer %d from network with %d layers",
                    index,
                    len(self._layers),
                )
                return
            del self._layers[index]
            for i in range(index, len(self._layers)):
                if i == 0:
                    for unit in self._layers[0].units:
                        unit.set_weights([])
                else:
                    self._layers[i].initialize_weights(self._layers[i - 1].size, rng=self.rng)
            logger.debug(
                "Removed layer %d from network %r. Total layers: %d",
                index,
                self.name,
                len(self._layers),
            )

    def clear_layers(self) -> None:
        with self._mutation("clear layers"):
            self._layers.clear()
            logger.debug("Cleared all layers from network %r", self.name)

    def initialize_weights(
        self,
        init_type: InitializationType | str | int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Re-draw all weights; ``None`` uses each layer's own kind."""

        rng = rng if rng is not None else self.rng
        with self._mutation("initialise weights"):
            for i in range(1, len(self._layers)):
                self._layers[i].initialize_weights(self._layers[i - 1].size, init_type, rng)
            logger.debug(
                "Initialised weights for network %r using %s",
                self.name,
                "per-layer" if init_type is None else InitializationType.parse(init_type).name,
            )

    def reset(self) -> None:
        """Zero transient unit state and training progress; weights persist."""

        with self._mutation("reset"):
            for layer in self._layers:
                layer.reset()
            self._control.reset()
            self._dropout_active = False
            logger.debug("Reset network %r", self.name)

    # ------------------------------------------------------------------
    # Forward / backward

    def _vector(self, values: Sequence[float] | Array) -> Array:
        return np.asarray(values, dtype=self.dtype).reshape(-1)

    def forward(self, inputs: Sequence[float] | Array) -> Array:
        """Propagate ``inputs`` and return the output layer's activations.

        An empty network or a wrong input length is logged and gives an
        empty array.
        """

        if not self._layers:
            logger.error("Cannot perform forward pass on empty network %r", self.name)
            return np.empty(0, dtype=self.dtype)
        inputs = self._vector(inputs)
        if inputs.shape[0] != self._layers[0].size:
            logger.error(
                "Input size %d doesn't match first layer size %d",
                inputs.shape[0],
                self._layers[0].size,
            )
            return np.empty(0, dtype=self.dtype)

        self._layers[0].set_activations(inputs)
        training = self._dropout_active
        for i in range(1, len(self._layers)):
            layer = self._layers[i]
            layer.forward(self._layers[i - 1].activations())
            layer.apply_activation()
            layer.apply_dropout(training, self.rng)
        return self._layers[-1].activations()

    def backward(self, targets: Sequence[float] | Array, outputs: Sequence[float] | Array) -> float:
        """Back-propagate and apply one gradient-descent step; return the loss.

        The loss gradient becomes the output layer's error term as is; it
        is not multiplied by the output activation's derivative.
        """

        if len(self._layers) < 2:
            logger.error("Cannot perform backward pass on network with less than 2 layers")
            return 0.0
        output_layer = self._layers[-1]
        targets = self._vector(targets)
        outputs = self._vector(outputs)
        if outputs.shape[0] != output_layer.size or targets.shape[0] != output_layer.size:
            logger.error(
                "Backward pass needs %d outputs and targets, got %d and %d",
                output_layer.size,
                outputs.shape[0],
                targets.shape[0],
            )
            raise ShapeError(
                f"Output layer has {output_layer.size} units; got {outputs.shape[0]} outputs "
                f"and {targets.shape[0]} targets"
            )

        loss = self._loss.fn(outputs, targets)
        output_layer.set_error_terms(self._loss.gradient(outputs, targets))

        for i in range(len(self._layers) - 2, 0, -1):
            following = self._layers[i + 1]
            self._layers[i].compute_gradients(following.error_terms(), following.weight_matrix())

        for i in range(1, len(self._layers)):
            self._layers[i].update_weights(self.learning_rate, self._layers[i - 1].activations())
        return float(loss)

    def train_sample(self, inputs: Sequence[float] | Array, targets: Sequence[float] | Array) -> float:
        outputs = self.forward(inputs)
        return self.backward(targets, outputs)

    def train_batch(
        self,
        input_batch: Sequence[Sequence[float] | Array],
        target_batch: Sequence[Sequence[float] | Array],
    ) -> float:
        """Train sample by sample and return the mean loss of the batch."""

        if len(input_batch) != len(target_batch):
            logger.error(
                "Input batch size %d doesn't match target batch size %d",
                len(input_batch),
                len(target_batch),
            )
            return 0.0
        if len(input_batch) == 0:
            return 0.0
        total = 0.0
        for inputs, targets in zip(input_batch, target_batch):
            total += self.train_sample(inputs, targets)
        return total / len(input_batch)

    # ------------------------------------------------------------------
    # Training loop

    def train(
        self,
        inputs: Sequence[Sequence[float] | Array],
        targets: Sequence[Sequence[float] | Array],
        epochs: int,
        batch_size: int = 32,
        validation_inputs: Sequence[Sequence[float] | Array] | None = None,
        validation_targets: Sequence[Sequence[float] | Array] | None = None,
        progress_callback: ProgressCallback | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        shuffle: bool = True,
        rng: np.random.Generator | None = None,
    ) -> TrainingHistory:
        """Mini-batch gradient descent over ``epochs`` passes.

        Cancellation (``cancel_token.cancel()`` or :meth:`stop_training`
        from any thread) is checked once before each epoch; the epoch in
        progress always runs to completion. ``progress_callback`` receives
        ``(epoch, loss, accuracy)`` after every epoch.
        """

        if len(inputs) != len(targets):
            raise ShapeError(f"Got {len(inputs)} inputs but {len(targets)} targets")
        if len(inputs) == 0:
            raise ShapeError("Cannot train on an empty dataset")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if len(self._layers) < 2:
            raise ShapeError("Training needs at least an input and an output layer")

        rng = rng if rng is not None else self.rng
        data_in = [self._vector(x) for x in inputs]
        data_out = [self._vector(y) for y in targets]
        validate = validation_inputs is not None and validation_targets is not None
        history = TrainingHistory()

        if self._optimizer is not OptimizerType.SGD and not self._optimizer_warned:
            logger.warning(
                "Optimizer %s has no distinct update rule; using plain gradient descent",
                self._optimizer.name,
            )
            self._optimizer_warned = True

        token = self._control.begin(cancel_token)
        self._dropout_active = True
        logger.info(
            "Starting training for network %r: %d epochs, batch size %d",
            self.name,
            epochs,
            batch_size,
        )
        try:
            for epoch in range(epochs):
                if token.cancelled:
                    logger.info("Training of network %r stopped before epoch %d", self.name, epoch + 1)
                    break

                if shuffle:
                    order = shuffled_indices(len(data_in), rng)
                    data_in = [data_in[i] for i in order]
                    data_out = [data_out[i] for i in order]

                batches = partition(len(data_in), batch_size)
                epoch_loss = 0.0
                for batch in batches:
                    epoch_loss += self.train_batch(data_in[batch], data_out[batch])
                epoch_loss /= len(batches)

                train_accuracy = compute_accuracy(self.predict_batch(data_in), data_out)
                history.train_loss.append(epoch_loss)
                history.train_accuracy.append(train_accuracy)

                if validate:
                    val_loss, val_accuracy = self.evaluate(validation_inputs, validation_targets)
                    history.val_loss.append(val_loss)
                    history.val_accuracy.append(val_accuracy)

                self._control.set_progress((epoch + 1) / epochs)
                if progress_callback is not None:
                    progress_callback(epoch, epoch_loss, train_accuracy)

                if epoch % 10 == 0 or epoch == epochs - 1:
                    logger.info(
                        "Epoch %d/%d: Loss = %.6f, Accuracy = %.4f",
                        epoch + 1,
                        epochs,
                        epoch_loss,
                        train_accuracy,
                    )
        finally:
            self._dropout_active = False
            self._control.finish()

        logger.info("Training completed for network %r", self.name)
        return history

    def is_training(self) -> bool:
        return self._control.is_running()

    def stop_training(self) -> None:
        """Ask the running :meth:`train` call to stop before its next epoch."""

        self._control.request_stop()

    def get_training_progress(self) -> float:
        return self._control.progress()

    def wait_for_idle(self, timeout: float | None = None) -> bool:
        return self._control.wait_for_idle(timeout)

    # ------------------------------------------------------------------
    # Inference

    def evaluate(
        self,
        inputs: Sequence[Sequence[float] | Array],
        targets: Sequence[Sequence[float] | Array],
    ) -> tuple[float, float]:
        """Return ``(average loss, accuracy)``; ``(0, 0)`` for bad input."""

        if len(inputs) != len(targets):
            logger.error(
                "Input data size %d doesn't match target data size %d", len(inputs), len(targets)
            )
            return 0.0, 0.0
        if len(inputs) == 0:
            return 0.0, 0.0
        outputs = self.predict_batch(inputs)
        total = sum(self._loss.fn(out, self._vector(tgt)) for out, tgt in zip(outputs, targets))
        return float(total / len(outputs)), compute_accuracy(outputs, targets)

    def predict(self, inputs: Sequence[float] | Array) -> Array:
        """Forward pass with dropout disabled."""

        previous = self._dropout_active
        self._dropout_active = False
        try:
            return self.forward(inputs)
        finally:
            self._dropout_active = previous

    def predict_batch(self, input_batch: Sequence[Sequence[float] | Array]) -> List[Array]:
        return [self.predict(inputs) for inputs in input_batch]

    @staticmethod
    def compute_accuracy(outputs: Sequence[Array], targets: Sequence[Array]) -> float:
        return compute_accuracy(outputs, targets)

    # ------------------------------------------------------------------
    # Persistence

    def to_json(self) -> Dict[str, object]:
        with self._lock:
            return {
                "name": self.name,
                "learning_rate": float(self.learning_rate),
                "loss_type": int(self.loss_type),
                "optimizer_type": int(self._optimizer),
                "layers": [layer.to_json() for layer in self._layers],
            }

    def from_json(self, doc: Mapping[str, object]) -> None:
        """Replace state from a document produced by :meth:`to_json`.

        Absent keys keep their current values. The document is fully
        parsed and validated before anything is assigned, so a
        :class:`SerializationError` leaves the network unchanged.
        """

        if not isinstance(doc, Mapping):
            raise SerializationError(f"Network document must be an object, got {type(doc).__name__}")
        with self._mutation("load a document"):
            try:
                name = str(doc["name"]) if "name" in doc else self.name
                learning_rate = (
                    float(doc["learning_rate"])  # type: ignore[arg-type]
                    if "learning_rate" in doc
                    else self.learning_rate
                )
                loss = get_loss(int(doc["loss_type"])) if "loss_type" in doc else self._loss  # type: ignore[arg-type]
                optimizer = (
                    OptimizerType(int(doc["optimizer_type"]))  # type: ignore[arg-type]
                    if "optimizer_type" in doc
                    else self._optimizer
                )
            except (TypeError, ValueError) as exc:
                raise SerializationError(f"Malformed network document: {exc}") from exc

            layers = self._layers
            if "layers" in doc:
                layers = self._layers_from_json(doc["layers"])

            self.name = name
            self.learning_rate = learning_rate
            self._loss = loss
            self.optimizer_type = optimizer
            self._layers = layers

    def _layers_from_json(self, docs: object) -> List[Layer]:
        if not isinstance(docs, list):
            raise SerializationError("'layers' must be an array")
        layers: List[Layer] = []
        for index, layer_doc in enumerate(docs):
            if index < len(self._layers):
                layer = copy.deepcopy(self._layers[index])
            else:
                layer = Layer(1, dtype=self.dtype)
            layer.from_json(layer_doc)  # type: ignore[arg-type]
            if index > 0 and layer.fan_in != layers[-1].size:
                raise SerializationError(
                    f"Layer {index} has {layer.fan_in} incoming weights per unit, "
                    f"previous layer has {layers[-1].size} units"
                )
            layers.append(layer)
        return layers

    def save_to_file(self, path: str | Path) -> bool:
        path = Path(path)
        try:
            payload = json.dumps(self.to_json(), indent=4)
            path.write_text(payload, encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to save network to %s: %s", path, exc)
            return False
        logger.info("Saved network %r to file: %s", self.name, path)
        return True

    def load_from_file(self, path: str | Path) -> bool:
        path = Path(path)
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
            self.from_json(doc)
        except (OSError, ValueError) as exc:
            logger.error("Failed to load network from %s: %s", path, exc)
            return False
        logger.info("Loaded network from file: %s", path)
        return True


__all__ = ["Network", "ProgressCallback"]

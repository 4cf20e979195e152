import numpy as np
import pytest

from stacknet.core.types import (
    ActivationType,
    InitializationType,
    LayerConfig,
    LossType,
    NetworkConfig,
    OptimizerType,
    TrainingConfig,
    TrainingHistory,
    resolve_dtype,
)


def test_wire_integers():
    assert [int(k) for k in ActivationType] == list(range(9))
    assert ActivationType.SOFTMAX == 8
    assert OptimizerType.ADAGRAD == 3
    assert LossType.FOCAL == 4
    assert InitializationType.ONE == 4
    assert InitializationType.NORMAL == 6


def test_parse_names_and_aliases():
    assert ActivationType.parse("ReLU") is ActivationType.RELU
    assert ActivationType.parse("linear") is ActivationType.NONE
    assert ActivationType.parse("leaky-relu") is ActivationType.LEAKY_RELU
    assert LossType.parse("bce") is LossType.BINARY_CROSS_ENTROPY
    assert InitializationType.parse("glorot") is InitializationType.XAVIER
    assert OptimizerType.parse(0) is OptimizerType.SGD
    with pytest.raises(ValueError):
        LossType.parse("nope")
    with pytest.raises(ValueError):
        ActivationType.parse(True)


def test_resolve_dtype():
    assert resolve_dtype("float32") is np.float32
    assert resolve_dtype(np.float64) is np.float64
    with pytest.raises(ValueError):
        resolve_dtype(np.int32)


def test_layer_config_validation():
    with pytest.raises(ValueError):
        LayerConfig(0)
    config = LayerConfig.from_mapping({"size": 3, "activation": "tanh", "weight_init": "he"})
    assert config.activation is ActivationType.TANH
    assert config.weight_init is InitializationType.HE


def test_network_config_mapping_round_trip():
    mapping = {
        "name": "demo",
        "loss": "huber",
        "optimizer": "sgd",
        "training": {"lr": 0.05, "batch_size": 8, "unknown": 1},
        "layers": [{"size": 2, "activation": "none"}, {"size": 1, "activation": "sigmoid"}],
    }
    config = NetworkConfig.from_mapping(mapping)
    assert config.loss is LossType.HUBER
    assert config.training.learning_rate == 0.05
    assert config.training.batch_size == 8
    again = NetworkConfig.from_mapping(config.to_mapping())
    assert again == config


def test_defaults():
    config = NetworkConfig()
    assert config.optimizer is OptimizerType.ADAM
    assert config.loss is LossType.MEAN_SQUARED_ERROR
    assert TrainingConfig().learning_rate == 0.001


def test_history_mapping():
    history = TrainingHistory(train_loss=[1.0, 0.5], train_accuracy=[0.0, 1.0])
    assert len(history) == 2
    assert history.to_mapping()["train_loss"] == [1.0, 0.5]
    assert history.to_mapping()["val_loss"] == []

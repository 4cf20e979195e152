import numpy as np
import pytest

from stacknet.core.layer import Layer
from stacknet.core.types import ActivationType, SerializationError, ShapeError
from stacknet.core.unit import Unit


def test_unit_defaults_and_json():
    unit = Unit(id=3, name="u")
    assert unit.fan_in == 0
    assert unit.activation == 0.0
    doc = unit.to_json()
    assert set(doc) == {
        "id",
        "activation",
        "bias",
        "weighted_input",
        "gradient",
        "delta",
        "trainable",
        "name",
        "input_weights",
    }
    assert doc["input_weights"] == []


def test_unit_partial_document_keeps_other_fields():
    unit = Unit(incoming_weights=[0.1, 0.2])
    unit.bias = np.float64(0.3)
    unit.from_json({"bias": 0.5})
    assert unit.bias == 0.5
    assert np.allclose(unit.incoming_weights, [0.1, 0.2])
    unit.from_json({"delta": 0.25, "weighted_input": -1.0})
    assert unit.error_term == 0.25
    assert unit.pre_activation == -1.0


def test_unit_malformed_document():
    unit = Unit()
    with pytest.raises(SerializationError):
        unit.from_json({"bias": "heavy"})
    with pytest.raises(SerializationError):
        unit.from_json({"input_weights": 3})
    with pytest.raises(SerializationError):
        unit.from_json([1, 2])


def test_layer_forward_and_activation():
    layer = Layer(2, "none")
    layer.set_weight_matrix([[1.0, 2.0], [0.5, -1.0]])
    layer.set_biases([0.5, 0.0])
    layer.forward([1.0, 1.0])
    layer.apply_activation()
    assert np.allclose(layer.pre_activations(), [3.0, -0.5])
    assert np.allclose(layer.activations(), [3.5, -0.5])


def test_layer_forward_rejects_wrong_length():
    layer = Layer(2)
    layer.initialize_weights(3, rng=np.random.default_rng(0))
    with pytest.raises(ShapeError):
        layer.forward([1.0, 2.0])


def test_softmax_layer_sums_to_one():
    layer = Layer(4, ActivationType.SOFTMAX)
    layer.initialize_weights(3, rng=np.random.default_rng(0))
    layer.forward([0.2, -0.4, 1.0])
    layer.apply_activation()
    assert layer.activations().sum() == pytest.approx(1.0)
    assert np.all((layer.activations() >= 0) & (layer.activations() <= 1))


def test_dropout_rates():
    rng = np.random.default_rng(0)
    layer = Layer(50, "none")
    layer.set_activations(np.ones(50))
    layer.dropout_rate = 0.0
    layer.apply_dropout(True, rng)
    assert np.array_equal(layer.activations(), np.ones(50))

    layer.dropout_rate = 1.0
    layer.apply_dropout(True, rng)
    assert np.array_equal(layer.activations(), np.zeros(50))
    assert not any(layer.dropout_mask)

    layer.set_activations(np.ones(50))
    layer.dropout_rate = 0.5
    layer.apply_dropout(True, rng)
    kept = np.array(layer.dropout_mask)
    assert np.allclose(layer.activations()[kept], 2.0)
    assert np.allclose(layer.activations()[~kept], 0.0)

    layer.set_activations(np.ones(50))
    layer.apply_dropout(False, rng)
    assert np.array_equal(layer.activations(), np.ones(50))


def test_dropout_rate_is_clamped():
    layer = Layer(2, dropout_rate=1.5)
    assert layer.dropout_rate == 1.0
    layer.dropout_rate = -0.2
    assert layer.dropout_rate == 0.0


def test_compute_gradients():
    layer = Layer(2, "none")
    layer.compute_gradients([1.0, 1.0, 1.0], [[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    assert np.allclose(layer.error_terms(), [9.0, 12.0])
    assert np.allclose([u.gradient for u in layer.units], [9.0, 12.0])


def test_compute_gradients_shape_errors():
    layer = Layer(2, "none")
    with pytest.raises(ShapeError):
        layer.compute_gradients([1.0, 1.0, 1.0], [[1.0, 2.0], [3.0, 4.0]])
    with pytest.raises(ShapeError):
        layer.compute_gradients([1.0], [[1.0]])


def test_update_weights_and_frozen_layer():
    layer = Layer(1, "none")
    layer.set_weight_matrix([[1.0, 1.0]])
    layer.set_error_terms([0.5])
    layer.update_weights(0.1, [2.0, 4.0])
    assert np.allclose(layer.weight_matrix(), [[0.9, 0.8]])
    assert layer.biases()[0] == pytest.approx(-0.05)

    layer.trainable = False
    layer.update_weights(0.1, [2.0, 4.0])
    assert np.allclose(layer.weight_matrix(), [[0.9, 0.8]])


def test_reset_keeps_weights():
    layer = Layer(2, "sigmoid")
    layer.initialize_weights(2, rng=np.random.default_rng(1))
    weights = layer.weight_matrix()
    layer.forward([1.0, 2.0])
    layer.apply_activation()
    layer.reset()
    assert np.array_equal(layer.activations(), np.zeros(2))
    assert np.array_equal(layer.weight_matrix(), weights)


def test_layer_json_round_trip_and_validation():
    layer = Layer(3, "tanh", "hidden", dropout_rate=0.25)
    layer.initialize_weights(2, rng=np.random.default_rng(5))
    doc = layer.to_json()
    assert doc["activation_type"] == int(ActivationType.TANH)

    copy = Layer(1)
    copy.from_json(doc)
    assert copy.name == "hidden"
    assert copy.size == 3
    assert copy.dropout_rate == 0.25
    assert np.array_equal(copy.weight_matrix(), layer.weight_matrix())

    bad = dict(doc, size=4)
    with pytest.raises(SerializationError):
        copy.from_json(bad)
    ragged = dict(doc)
    ragged["neurons"] = [dict(n) for n in doc["neurons"]]
    ragged["neurons"][0]["input_weights"] = [1.0]
    with pytest.raises(SerializationError):
        copy.from_json(ragged)
    with pytest.raises(SerializationError):
        copy.from_json(dict(doc, activation_type=99))
    assert copy.to_json() == doc


def test_float32_layer():
    layer = Layer(2, "relu", dtype=np.float32)
    layer.initialize_weights(3, rng=np.random.default_rng(0))
    layer.forward(np.ones(3))
    layer.apply_activation()
    assert layer.activations().dtype == np.float32
    assert layer.weight_matrix().dtype == np.float32

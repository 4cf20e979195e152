import json

import numpy as np
import pytest

from stacknet import Network, SerializationError
from stacknet.core.types import LayerConfig, LossType, OptimizerType


def _network(seed=0):
    network = Network("roundtrip", learning_rate=0.05, loss="bce", optimizer="rmsprop", seed=seed)
    network.add_layer(LayerConfig(3, "none"))
    network.add_layer(LayerConfig(5, "tanh", dropout_rate=0.2, name="hidden"))
    network.add_layer(LayerConfig(2, "sigmoid", name="out"))
    return network


def test_round_trip_preserves_predictions():
    source = _network()
    doc = json.loads(json.dumps(source.to_json()))

    target = Network()
    target.from_json(doc)

    assert target.name == "roundtrip"
    assert target.learning_rate == 0.05
    assert target.loss_type is LossType.BINARY_CROSS_ENTROPY
    assert target.optimizer_type is OptimizerType.RMSPROP
    assert target.get_layer_count() == 3
    assert target.get_layer(1).dropout_rate == pytest.approx(0.2)
    x = [0.3, -0.2, 0.9]
    assert np.allclose(target.predict(x), source.predict(x))
    assert target.to_json() == source.to_json()


def test_document_layout():
    doc = _network().to_json()
    assert set(doc) == {"name", "learning_rate", "loss_type", "optimizer_type", "layers"}
    assert doc["loss_type"] == 2
    assert doc["optimizer_type"] == 2
    layer = doc["layers"][1]
    assert set(layer) == {"name", "size", "activation_type", "dropout_rate", "trainable", "neurons"}
    assert len(layer["neurons"]) == 5
    assert len(layer["neurons"][0]["input_weights"]) == 3
    assert doc["layers"][0]["neurons"][0]["input_weights"] == []


def test_partial_document_keeps_other_fields():
    network = _network()
    before = network.to_json()
    network.from_json({"learning_rate": 0.5})
    after = network.to_json()
    assert after["learning_rate"] == 0.5
    after["learning_rate"] = before["learning_rate"]
    assert after == before


def test_failed_load_leaves_network_unchanged():
    network = _network()
    before = network.to_json()

    broken = json.loads(json.dumps(before))
    for neuron in broken["layers"][2]["neurons"]:
        neuron["input_weights"] = [0.0, 0.0]
    broken["name"] = "changed"
    with pytest.raises(SerializationError):
        network.from_json(broken)
    assert network.to_json() == before

    with pytest.raises(SerializationError):
        network.from_json(dict(before, loss_type=99))
    with pytest.raises(SerializationError):
        network.from_json(dict(before, layers={"not": "a list"}))
    with pytest.raises(SerializationError):
        network.from_json(["not", "a", "document"])
    assert network.to_json() == before


def test_file_round_trip(tmp_path):
    network = _network()
    path = tmp_path / "model.json"
    assert network.save_to_file(path)
    assert '\n    "name"' in path.read_text()

    loaded = Network()
    assert loaded.load_from_file(path)
    assert loaded.to_json() == network.to_json()


def test_file_errors_return_false(tmp_path, caplog):
    network = _network()
    before = network.to_json()
    assert not network.load_from_file(tmp_path / "missing.json")

    garbage = tmp_path / "garbage.json"
    garbage.write_text("{not json")
    assert not network.load_from_file(garbage)

    assert not network.save_to_file(tmp_path / "no-such-dir" / "model.json")
    assert network.to_json() == before
    assert "Failed to load network" in caplog.text

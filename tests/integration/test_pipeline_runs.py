import json
from pathlib import Path

import pytest

from stacknet import Network
from stacknet.training import pipelines


def _preset(name, tmp_path, **train):
    config = pipelines.load_preset(name)
    config["train"]["run_dir"] = str(tmp_path / name)
    config["train"].update(train)
    return config


def test_presets_are_copies():
    first = pipelines.presets()
    first["xor"]["train"]["epochs"] = 1
    assert pipelines.load_preset("xor")["train"]["epochs"] == 1000
    assert set(pipelines.presets()) == {"xor", "sine-regression", "blobs-softmax"}
    with pytest.raises(KeyError):
        pipelines.load_preset("mnist")


def test_pipeline_writes_artifacts(tmp_path):
    result = pipelines.run_pipeline(_preset("xor", tmp_path, epochs=30))
    assert result.epochs == 30

    lines = Path(result.metrics_path).read_text().splitlines()
    assert len(lines) == 30
    assert json.loads(lines[0])["epoch"] == 0

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["dataset"]["type"] == "xor"
    assert manifest["network"]["parameters"] == 17

    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["records"] == 30

    loaded = Network()
    assert loaded.load_from_file(result.model_path)
    assert [layer.size for layer in loaded.layers] == [2, 4, 1]
    run_dir = Path(result.metrics_path).parent
    assert (run_dir / "metrics.csv").exists()
    assert (run_dir / "config.json").exists()
    assert len(json.loads((run_dir / "history.json").read_text())["train_loss"]) == 30


def test_pipeline_is_deterministic(tmp_path):
    config = _preset("sine-regression", tmp_path, epochs=5)
    first = pipelines.run_pipeline(config)
    first_metrics = Path(first.metrics_path).read_bytes()
    first_summary = Path(first.summary_path).read_bytes()

    config["train"]["run_dir"] = str(tmp_path / "again")
    second = pipelines.run_pipeline(config)
    assert Path(second.metrics_path).read_bytes() == first_metrics
    assert Path(second.summary_path).read_bytes() == first_summary


def test_blobs_preset_learns_and_plots(tmp_path):
    result = pipelines.run_pipeline(_preset("blobs-softmax", tmp_path, epochs=60, enable_plots=True))
    run_dir = Path(result.metrics_path).parent
    assert (run_dir / "loss.png").exists()
    history = json.loads((run_dir / "history.json").read_text())
    assert history["train_loss"][-1] < history["train_loss"][0]
    assert len(history["val_loss"]) == 60


def test_early_stopping_cancels_run(tmp_path):
    config = _preset(
        "xor",
        tmp_path,
        epochs=50,
        early_stopping=True,
        early_stopping_patience=1,
        early_stopping_min_delta=1e9,
    )
    result = pipelines.run_pipeline(config)
    assert result.epochs == 2


def test_dimension_mismatch_is_reported(tmp_path):
    config = _preset("xor", tmp_path, epochs=1)
    config["model"]["layers"][0]["size"] = 3
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)


def test_build_network_uses_training_learning_rate():
    network = pipelines.build_network(pipelines.load_preset("sine-regression"), seed=0)
    assert network.learning_rate == 0.05
    assert network.get_layer(1).activation_type.name == "TANH"

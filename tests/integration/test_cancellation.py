import threading
import time

from stacknet import CancellationToken, Network
from stacknet.core.types import LayerConfig

INPUTS = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
TARGETS = [[0.0], [1.0], [1.0], [0.0]]


def _network():
    network = Network(learning_rate=0.1, optimizer="sgd", seed=0)
    network.add_layer(LayerConfig(2, "none"))
    network.add_layer(LayerConfig(4, "tanh"))
    network.add_layer(LayerConfig(1, "sigmoid"))
    return network


def test_stop_from_callback_finishes_current_epoch():
    network = _network()

    def callback(epoch, loss, accuracy):
        if epoch == 2:
            network.stop_training()

    history = network.train(INPUTS, TARGETS, epochs=50, progress_callback=callback)
    assert len(history) == 3
    assert not network.is_training()
    assert network.get_training_progress() == 1.0


def test_stop_before_train_is_discarded():
    network = _network()
    network.stop_training()
    history = network.train(INPUTS, TARGETS, epochs=3)
    assert len(history) == 3


def test_cancelled_token_skips_every_epoch():
    network = _network()
    token = CancellationToken()
    token.cancel()
    history = network.train(INPUTS, TARGETS, epochs=5, cancel_token=token)
    assert len(history) == 0
    assert network.get_training_progress() == 1.0


def test_stop_from_another_thread():
    network = _network()
    started = threading.Event()
    result = {}

    def callback(epoch, loss, accuracy):
        started.set()

    def run():
        result["history"] = network.train(
            INPUTS, TARGETS, epochs=100000, progress_callback=callback
        )

    worker = threading.Thread(target=run)
    worker.start()
    assert started.wait(timeout=30)
    assert network.is_training()
    assert 0.0 < network.get_training_progress() < 1.0
    network.stop_training()
    assert network.wait_for_idle(timeout=30)
    worker.join(timeout=30)
    assert not worker.is_alive()
    assert len(result["history"]) < 100000
    assert network.get_training_progress() == 1.0


def test_wait_for_idle_without_training():
    network = _network()
    start = time.monotonic()
    assert network.wait_for_idle(timeout=1)
    assert time.monotonic() - start < 1

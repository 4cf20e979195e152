import math

import numpy as np
import pytest

from stacknet.training.metrics import (
    compute_accuracy,
    compute_metric,
    compute_metrics,
    partition,
    shuffled_indices,
)


def test_single_output_accuracy_thresholds():
    outputs = [np.array([0.9]), np.array([0.1])]
    targets = [np.array([1.0]), np.array([0.0])]
    assert compute_accuracy(outputs, targets) == 1.0
    assert compute_accuracy([np.array([0.6])], [np.array([0.0])]) == 0.0


def test_multi_output_accuracy_uses_argmax():
    outputs = [np.array([0.1, 0.7, 0.2]), np.array([0.5, 0.3, 0.2])]
    targets = [np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0])]
    assert compute_accuracy(outputs, targets) == 0.5


def test_accuracy_of_empty_or_mismatched_inputs():
    assert compute_accuracy([], []) == 0.0
    assert compute_accuracy([np.array([1.0])], []) == 0.0


def test_regression_metrics():
    outputs = [np.array([1.0]), np.array([2.0])]
    targets = [np.array([1.0]), np.array([4.0])]
    assert compute_metric("mae", outputs, targets).value == pytest.approx(1.0)
    assert compute_metric("rmse", outputs, targets).value == pytest.approx(math.sqrt(2.0))
    metrics = compute_metrics(["accuracy", "R2"], outputs, targets)
    assert set(metrics) == {"accuracy", "r2"}
    with pytest.raises(KeyError):
        compute_metric("f1", outputs, targets)


@pytest.mark.parametrize("n, batch_size", [(10, 3), (10, 10), (10, 32), (1, 1), (0, 4)])
def test_partition_covers_everything_once(n, batch_size):
    batches = partition(n, batch_size)
    assert len(batches) == math.ceil(n / batch_size)
    covered = [i for s in batches for i in range(n)[s]]
    assert covered == list(range(n))
    assert all(len(range(n)[s]) == batch_size for s in batches[:-1])


def test_partition_rejects_bad_batch_size():
    with pytest.raises(ValueError):
        partition(10, 0)


def test_shuffled_indices_is_a_permutation():
    order = shuffled_indices(20, np.random.default_rng(0))
    assert sorted(order.tolist()) == list(range(20))
    again = shuffled_indices(20, np.random.default_rng(0))
    assert np.array_equal(order, again)

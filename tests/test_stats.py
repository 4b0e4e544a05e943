import pytest

from kanban_metrics.stats import (
    confidence_bound,
    mean,
    median,
    percentage,
    sample_std_dev,
    sample_variance,
)


def test_median_even_and_odd():
    assert median([1, 2, 3, 4]) == 2.5
    assert median([1, 2, 3]) == 2
    assert median([4, 1, 3]) == 3


def test_empty_samples_are_not_computable():
    assert mean([]) is None
    assert median([]) is None
    assert confidence_bound([]) is None


def test_sample_variance_uses_n_minus_one():
    assert sample_variance([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(32 / 7)


def test_single_sample_has_no_variance():
    assert sample_variance([5]) is None
    assert sample_std_dev([5]) is None
    assert confidence_bound([5]) is None


def test_confidence_bound():
    assert confidence_bound([2, 4]) == pytest.approx(3 + 1.644854 * 2 ** 0.5)


def test_percentage_guards_zero_denominator():
    assert percentage(3, 4) == 75.0
    assert percentage(1, 0) is None

from __future__ import annotations

from math import sqrt
from statistics import mean as _mean
from statistics import median as _median
from statistics import variance
from typing import Sequence


# One-sided 90% quantile of the standard normal distribution.
CONFIDENCE_Z_90 = 1.644854

NOT_COMPUTABLE = "not computable"


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(_mean(values))


def median(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(_median(values))


def sample_variance(values: Sequence[float]) -> float | None:
    if len(values) < 2:
        return None
    return float(variance(values))


def sample_std_dev(values: Sequence[float]) -> float | None:
    value = sample_variance(values)
    if value is None:
        return None
    return sqrt(value)


def confidence_bound(values: Sequence[float], z: float = CONFIDENCE_Z_90) -> float | None:
    """Upper bound ``mean + z * stdev`` under a normal approximation.

    Returns None for fewer than two samples, where the sample variance is
    undefined.
    """
    average = mean(values)
    deviation = sample_std_dev(values)
    if average is None or deviation is None:
        return None
    return average + z * deviation


def percentage(part: float, whole: float) -> float | None:
    if not whole:
        return None
    return round((part / whole) * 100, 2)

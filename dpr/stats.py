"""
Summary statistics for Monte Carlo samples.

The conventions here are pinned down because they decide golden-test values:

* variance is the population variance (divide by N, not N − 1);
* percentile p of N sorted samples is ``sorted[min(floor(N * p / 100), N − 1)]``,
  no interpolation, so p50 of 1000 samples is element 500;
* the confidence interval is ``mean ± z · σ / √N`` with z = 1.96 for 95%.
  That is the normal approximation. It is only trustworthy for large N; for a
  few dozen trials it is too narrow.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from dpr.records import ConfidenceInterval

PERCENTILES: tuple[int, ...] = (5, 25, 50, 75, 95)
Z_95 = 1.96


def mean(values: Sequence[float]) -> float:
    if not values:
        raise ValueError("mean of an empty sample")
    return sum(values) / len(values)


def variance(values: Sequence[float], mu: float | None = None) -> float:
    """Population variance."""
    if mu is None:
        mu = mean(values)
    return sum((v - mu) ** 2 for v in values) / len(values)


def standard_deviation(values: Sequence[float], mu: float | None = None) -> float:
    return math.sqrt(variance(values, mu))


def percentile(sorted_values: Sequence[float], p: int) -> float:
    """Percentile ``p`` (0-100) of already sorted values, by floor indexing."""
    n = len(sorted_values)
    if n == 0:
        raise ValueError("percentile of an empty sample")
    return sorted_values[min(n * p // 100, n - 1)]


def percentiles(values: Iterable[float], keys: Sequence[int] = PERCENTILES) -> dict[int, float]:
    ordered = sorted(values)
    return {p: percentile(ordered, p) for p in keys}


def confidence_interval(mu: float, sd: float, n: int, z: float = Z_95) -> ConfidenceInterval:
    margin = z * sd / math.sqrt(n) if n > 0 else 0.0
    return ConfidenceInterval(lower=mu - margin, upper=mu + margin, margin=margin)


class RunningStats:
    """Streaming mean and population variance (Welford's method).

    Lets the simulator keep per-round statistics without holding every
    per-round sample.
    """

    def __init__(self) -> None:
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0

    def push(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)

    @property
    def variance(self) -> float:
        return self._m2 / self.count if self.count else 0.0

    @property
    def standard_deviation(self) -> float:
        return math.sqrt(self.variance)

    def confidence_interval(self, z: float = Z_95) -> ConfidenceInterval:
        return confidence_interval(self.mean, self.standard_deviation, self.count, z)

"""
Metrics — in-process tallies and timings for one operation.

A registry is created per preflight pass, per module batch and per
provisioning run. Nothing is global and nothing is exported: values end
up in log lines, in ``ProvisioningRun.to_dict()``, and in tests.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

_Key = tuple[str, tuple[tuple[str, str], ...]]


def _key(name: str, labels: dict[str, str]) -> _Key:
    return name, tuple(sorted(labels.items()))


@dataclass
class Counter:
    """A count that only goes up."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: int = 0

    def inc(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError(f"counter {self.name} cannot decrease")
        self.value += n

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "counter", "labels": self.labels, "value": self.value}


@dataclass
class Histogram:
    """Every observed sample (stage durations are in milliseconds)."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    samples: list[float] = field(default_factory=list)

    def observe(self, value: float) -> None:
        self.samples.append(value)

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def total(self) -> float:
        return sum(self.samples)

    @property
    def min(self) -> float:
        return min(self.samples, default=0.0)

    @property
    def max(self) -> float:
        return max(self.samples, default=0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "histogram",
            "labels": self.labels,
            "count": self.count,
            "total": round(self.total, 2),
            "min": round(self.min, 2),
            "max": round(self.max, 2),
        }


class MetricsRegistry:
    """Counters and histograms, keyed by name plus labels."""

    def __init__(self) -> None:
        self._counters: dict[_Key, Counter] = {}
        self._histograms: dict[_Key, Histogram] = {}

    def counter(self, name: str, **labels: str) -> Counter:
        key = _key(name, labels)
        if key not in self._counters:
            self._counters[key] = Counter(name=name, labels=labels)
        return self._counters[key]

    def histogram(self, name: str, **labels: str) -> Histogram:
        key = _key(name, labels)
        if key not in self._histograms:
            self._histograms[key] = Histogram(name=name, labels=labels)
        return self._histograms[key]

    @contextmanager
    def timer(self, name: str, **labels: str) -> Iterator[Histogram]:
        """Record the duration of the ``with`` block, even if it raises."""
        histogram = self.histogram(name, **labels)
        start = time.monotonic()
        try:
            yield histogram
        finally:
            histogram.observe((time.monotonic() - start) * 1000)

    def value(self, name: str, **labels: str) -> int:
        """Current value of a counter; 0 if it was never touched."""
        counter = self._counters.get(_key(name, labels))
        return counter.value if counter else 0

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "counters": [c.to_dict() for c in self._counters.values()],
            "histograms": [h.to_dict() for h in self._histograms.values()],
        }

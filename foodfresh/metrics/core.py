"""In-memory metrics for the analysis pipeline.

Counters and latency histograms keyed by (name, tags). Nothing is exported
to an external backend; snapshots are plain dicts that tests assert on.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Deque, Dict, List, NamedTuple, Tuple, TypedDict, TypeVar

WINDOW_SIZE = 1000


class MetricKey(NamedTuple):
    name: str
    tags: Tuple[Tuple[str, str], ...]

    @classmethod
    def of(cls, name: str, tags: Dict[str, str]) -> MetricKey:
        return cls(name, tuple(sorted(tags.items())))


@dataclass
class Counter:
    name: str
    tags: Dict[str, str]
    _count: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._count += amount

    def value(self) -> int:
        return self._count


class HistogramStats(TypedDict):
    count: int
    avg: float
    p50: float
    p95: float
    min: float
    max: float


def _percentile(ordered: List[float], q: float) -> float:
    return ordered[int(q * (len(ordered) - 1))]


@dataclass
class Histogram:
    """Keeps the most recent WINDOW_SIZE observations."""

    name: str
    tags: Dict[str, str]
    _samples: Deque[float] = field(default_factory=lambda: deque(maxlen=WINDOW_SIZE))
    _lock: Lock = field(default_factory=Lock, repr=False)

    def observe(self, value: float) -> None:
        with self._lock:
            self._samples.append(value)

    def snapshot(self) -> HistogramStats:
        with self._lock:
            ordered = sorted(self._samples)
        if not ordered:
            return HistogramStats(count=0, avg=0.0, p50=0.0, p95=0.0, min=0.0, max=0.0)
        return HistogramStats(
            count=len(ordered),
            avg=sum(ordered) / len(ordered),
            p50=_percentile(ordered, 0.5),
            p95=_percentile(ordered, 0.95),
            min=ordered[0],
            max=ordered[-1],
        )


class CounterSnap(TypedDict):
    name: str
    tags: Dict[str, str]
    value: int


class HistogramSnap(TypedDict):
    name: str
    tags: Dict[str, str]
    stats: HistogramStats


class RegistrySnapshot(TypedDict):
    counters: List[CounterSnap]
    histograms: List[HistogramSnap]
    generated_at: float


M = TypeVar("M", Counter, Histogram)


class MetricsRegistry:
    def __init__(self) -> None:
        self._counters: Dict[MetricKey, Counter] = {}
        self._histograms: Dict[MetricKey, Histogram] = {}
        self._lock = Lock()

    def _get_or_create(
        self,
        store: Dict[MetricKey, M],
        factory: Callable[..., M],
        name: str,
        tags: Dict[str, str],
    ) -> M:
        key = MetricKey.of(name, tags)
        with self._lock:
            metric = store.get(key)
            if metric is None:
                metric = store[key] = factory(name=name, tags=dict(tags))
            return metric

    def counter(self, name: str, **tags: str) -> Counter:
        return self._get_or_create(self._counters, Counter, name, tags)

    def histogram(self, name: str, **tags: str) -> Histogram:
        return self._get_or_create(self._histograms, Histogram, name, tags)

    def counter_value(self, name: str, **tags: str) -> int:
        """Current value, 0 if the counter was never touched."""
        counter = self._counters.get(MetricKey.of(name, tags))
        return counter.value() if counter is not None else 0

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        return RegistrySnapshot(
            counters=[
                CounterSnap(name=c.name, tags=c.tags, value=c.value()) for c in counters
            ],
            histograms=[
                HistogramSnap(name=h.name, tags=h.tags, stats=h.snapshot()) for h in histograms
            ],
            generated_at=time.time(),
        )


registry = MetricsRegistry()

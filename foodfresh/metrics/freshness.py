"""Instrumentation helpers for freshness analysis.

Metrics:
* Counter freshness_analysis_requests_total{status}
* Counter freshness_analysis_failed_total{reason}
* Histogram freshness_analysis_latency_ms
* Counter freshness_stale_completions_total{kind}
* Counter freshness_parse_coerced_total{field}

`status` is completed|failed. `reason` is the error class name.
`kind` is analysis|acquisition.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterable, Iterator

from .core import registry, RegistrySnapshot


def record_request(status: str) -> None:
    registry.counter("freshness_analysis_requests_total", status=status).inc()


def record_failed(reason: str) -> None:
    registry.counter("freshness_analysis_failed_total", reason=reason).inc()


def record_latency_ms(ms: float) -> None:
    registry.histogram("freshness_analysis_latency_ms").observe(ms)


def record_stale_completion(kind: str) -> None:
    registry.counter("freshness_stale_completions_total", kind=kind).inc()


def record_parse_coerced(fields: Iterable[str]) -> None:
    for name in fields:
        registry.counter("freshness_parse_coerced_total", field=name).inc()


@contextmanager
def time_analysis() -> Iterator[None]:
    """Record latency for the wrapped inference call."""
    start = time.perf_counter()
    try:
        yield
    finally:
        record_latency_ms((time.perf_counter() - start) * 1000.0)


def snapshot() -> RegistrySnapshot:
    return registry.snapshot()


def reset_all() -> None:
    """Clear all metrics (test utility)."""
    registry.reset()

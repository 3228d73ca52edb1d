"""Metrics facade.

Service code should ONLY call the semantic helpers here so we can change the
backend freely. Counters are exposed on ``/metrics`` via the default
Prometheus registry.

Metrics:
- credential_submissions_total      Submissions by outcome (created / overwrite_confirmation_required)
- token_exchanges_total             Authorization-code exchanges by outcome
- token_refreshes_total             Refresh attempts by outcome
- token_refresh_sweeps_total        Completed sweep runs
- provider_request_latency_seconds  Round-trip time of Oceanengine token calls
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

logger = logging.getLogger("metrics")

_CREDENTIAL_SUBMISSIONS = Counter(
    "credential_submissions_total", "Credential submissions by outcome", ["result"]
)
_TOKEN_EXCHANGES = Counter(
    "token_exchanges_total", "Authorization code exchanges by outcome", ["result"]
)
_TOKEN_REFRESHES = Counter(
    "token_refreshes_total", "Token refresh attempts by outcome", ["result"]
)
_REFRESH_SWEEPS = Counter("token_refresh_sweeps_total", "Completed refresh sweep runs")
_PROVIDER_LATENCY = Histogram(
    "provider_request_latency_seconds",
    "Latency of Oceanengine token endpoint calls",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


def credential_submitted(result: str) -> None:
    _CREDENTIAL_SUBMISSIONS.labels(result=result).inc()


def token_exchanged(result: str) -> None:
    _TOKEN_EXCHANGES.labels(result=result).inc()


def token_refreshed(result: str) -> None:
    _TOKEN_REFRESHES.labels(result=result).inc()


def refresh_sweep_completed(total: int, failed: int) -> None:
    _REFRESH_SWEEPS.inc()
    logger.info("metric.refresh_sweep total=%s failed=%s", total, failed)


@contextmanager
def provider_call_timer(operation: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        _PROVIDER_LATENCY.labels(operation=operation).observe(time.perf_counter() - start)

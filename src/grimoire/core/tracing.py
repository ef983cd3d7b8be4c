"""
Local observability.

In-process spans and counters for debugging search latency and
telemetry health. Nothing is exported.
"""

import time
from contextlib import contextmanager
from typing import Dict, Any, Optional, Iterator

from grimoire.core.logging import AsyncLogger
from grimoire.core.id_generator import generate_id


class LocalTracer:
    """
    Simple local tracing system.

    LocalTracer: single operations with context (span_id, duration)
    MetricsCollector: aggregated counters and gauges

    Example:
    - metrics.increment("search.metrics.recorded")
    - tracer.span("hybrid_search", {"campaign_id": cid})
    """

    def __init__(self, service_name: str = "grimoire") -> None:
        self.service_name = service_name
        self.logger = AsyncLogger("tracing")

    @contextmanager
    def span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[str]:
        """
        Creates a span to measure an operation and yields its id.

        Usage:
        ```
        with tracer.span("hybrid_search", {"limit": 10}):
            payload = await engine.execute(...)
        ```
        """
        span_id = generate_id()
        start = time.perf_counter()

        try:
            yield span_id
        finally:
            duration = time.perf_counter() - start
            self.logger.debug(
                "Span completed",
                span=name,
                span_id=span_id,
                service=self.service_name,
                duration_ms=duration * 1000,
                **(attributes or {}),
            )


class MetricsCollector:
    """
    Local metrics collector.

    Names are namespaced with the optional prefix: a collector built
    with namespace="search" stores increment("sampled") as
    "search.sampled".
    """

    def __init__(self, namespace: Optional[str] = None) -> None:
        self.namespace = namespace
        self.metrics: Dict[str, float] = {}
        self.logger = AsyncLogger("metrics")

    def _key(self, name: str) -> str:
        return f"{self.namespace}.{name}" if self.namespace else name

    def increment(self, name: str, value: float = 1.0) -> None:
        """Increments counter."""
        key = self._key(name)
        self.metrics[key] = self.metrics.get(key, 0) + value

    def gauge(self, name: str, value: float) -> None:
        """Sets current value."""
        self.metrics[self._key(name)] = value

    def get(self, name: str, default: float = 0.0) -> float:
        return self.metrics.get(self._key(name), default)

    def get_metrics(self) -> Dict[str, float]:
        """Gets all metrics."""
        return self.metrics.copy()

    def reset(self) -> None:
        self.metrics.clear()


tracer = LocalTracer()

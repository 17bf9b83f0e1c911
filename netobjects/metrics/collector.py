"""
Prometheus metrics for netobjects.

Counts requests by resource path, operation and outcome, field-level
decisions by scope, and function invocations by status.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from prometheus_client import (
    CollectorRegistry, Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
)


logger = logging.getLogger(__name__)


@dataclass
class MetricConfig:
    """Configuration for metrics collection."""

    enabled: bool = True
    namespace: str = "netobjects"


class MetricsCollector:
    """Metrics collector for orchestrated requests."""

    def __init__(self, config: Optional[MetricConfig] = None,
                 registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            config: Metrics configuration
            registry: Prometheus registry; a private one is created by default
        """
        self.config = config or MetricConfig()
        self.registry = registry or CollectorRegistry()
        self._metrics_cache: Dict[str, int] = {}

        if not self.config.enabled:
            logger.info("Metrics collection disabled")
            return

        self._init_prometheus_metrics()

    def _init_prometheus_metrics(self):
        ns = self.config.namespace

        self.requests = Counter(
            f'{ns}_requests_total',
            'Total number of resource requests',
            ['resource', 'operation', 'outcome'],
            registry=self.registry
        )

        self.request_latency = Histogram(
            f'{ns}_request_duration_seconds',
            'Resource request duration in seconds',
            ['resource', 'operation'],
            buckets=[0.0005, 0.001, 0.002, 0.005, 0.01, 0.02, 0.05, 0.1, 0.5, 1.0],
            registry=self.registry
        )

        self.field_decisions = Counter(
            f'{ns}_field_decisions_total',
            'Total number of field-level access decisions',
            ['resource', 'scope', 'allowed'],
            registry=self.registry
        )

        self.function_calls = Counter(
            f'{ns}_function_calls_total',
            'Total number of resource function invocations',
            ['resource', 'function', 'status'],
            registry=self.registry
        )

    def _bump(self, key: str, amount: int = 1) -> None:
        self._metrics_cache[key] = self._metrics_cache.get(key, 0) + amount

    async def record_request(self, resource: str, operation: str, outcome: str,
                             duration: float) -> None:
        """Record a finished request; outcome is 'served' or an error code."""
        if not self.config.enabled:
            return

        self._bump(f"requests_{resource}_{operation}_{outcome}")
        self.requests.labels(resource=resource, operation=operation, outcome=outcome).inc()
        self.request_latency.labels(resource=resource, operation=operation).observe(duration)

        logger.debug(f"Recorded request: {resource} {operation} -> {outcome} ({duration:.4f}s)")

    async def record_field_decisions(self, resource: str, scope: str,
                                     allowed: int, denied: int) -> None:
        if not self.config.enabled:
            return

        if allowed:
            self._bump(f"fields_{resource}_{scope}_true", allowed)
            self.field_decisions.labels(resource=resource, scope=scope, allowed="true").inc(allowed)
        if denied:
            self._bump(f"fields_{resource}_{scope}_false", denied)
            self.field_decisions.labels(resource=resource, scope=scope, allowed="false").inc(denied)

    async def record_function_call(self, resource: str, function: str, status: int) -> None:
        if not self.config.enabled:
            return

        self._bump(f"functions_{resource}_{function}_{status}")
        self.function_calls.labels(resource=resource, function=function, status=str(status)).inc()

    def get_count(self, key: str) -> int:
        """Read an internal counter, e.g. 'requests_post_read_served'."""
        return self._metrics_cache.get(key, 0)

    def get_metrics_summary(self) -> Dict[str, Any]:
        return {
            'enabled': self.config.enabled,
            'counters': dict(self._metrics_cache),
        }

    def export(self) -> bytes:
        """Render the metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

"""
Prometheus metrics for netobjects.
"""

from .collector import MetricConfig, MetricsCollector

__all__ = [
    "MetricConfig",
    "MetricsCollector",
]

from .collector import MetricsCollector, MetricsConfig
from .sinks import JsonlMetricsSink, MetricsSink

__all__ = ["MetricsCollector", "MetricsConfig", "JsonlMetricsSink", "MetricsSink"]

"""Daemon mode: Prometheus gauges and the refresh loop that feeds them."""

from kcount.metrics.exporter import DEFAULT_PORT, METRICS_PATH, MetricsExporter
from kcount.metrics.refresh import DEFAULT_INTERVAL, RefreshLoop

__all__ = [
    "DEFAULT_INTERVAL",
    "DEFAULT_PORT",
    "METRICS_PATH",
    "MetricsExporter",
    "RefreshLoop",
]

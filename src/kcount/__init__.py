"""kcount: count Kubernetes objects across clusters."""

__version__ = "0.4.0"

from kcount.clusters.resolver import ClusterResolutionError, resolve_clusters
from kcount.config import ConfigError, KcountConfig, find_config, load_config
from kcount.counter.counter import count_objects, summarize
from kcount.counter.dispatcher import count_across_clusters
from kcount.counter.errors import ClusterConnectionError, CountError, UnsupportedKindError
from kcount.counter.lister import K8sObjectLister, ObjectLister
from kcount.metrics.exporter import MetricsExporter
from kcount.metrics.refresh import RefreshLoop
from kcount.models import ClusterContext, CountRequest, CountResult, Kind
from kcount.report.ranking import sort_results, total_count
from kcount.report.table import human_duration, render_table

__all__ = [
    "ClusterConnectionError",
    "ClusterContext",
    "ClusterResolutionError",
    "ConfigError",
    "CountError",
    "CountRequest",
    "CountResult",
    "K8sObjectLister",
    "KcountConfig",
    "Kind",
    "MetricsExporter",
    "ObjectLister",
    "RefreshLoop",
    "UnsupportedKindError",
    "count_across_clusters",
    "count_objects",
    "find_config",
    "human_duration",
    "load_config",
    "render_table",
    "resolve_clusters",
    "sort_results",
    "summarize",
    "total_count",
    "__version__",
]

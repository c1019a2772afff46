"""Counting engine: per-cluster listers, the counter, and the dispatcher."""

from kcount.counter.counter import DEFAULT_TIMEOUT, count_objects, summarize
from kcount.counter.dispatcher import build_requests, count_across_clusters
from kcount.counter.errors import ClusterConnectionError, CountError, UnsupportedKindError
from kcount.counter.lister import KIND_MAP, K8sObjectLister, ObjectLister

__all__ = [
    "ClusterConnectionError",
    "CountError",
    "DEFAULT_TIMEOUT",
    "K8sObjectLister",
    "KIND_MAP",
    "ObjectLister",
    "UnsupportedKindError",
    "build_requests",
    "count_across_clusters",
    "count_objects",
    "summarize",
]

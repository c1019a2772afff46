"""Cluster resolution from kubeconfig files and in-cluster credentials."""

from kcount.clusters.resolver import (
    ClusterResolutionError,
    kubeconfigs_from_env,
    resolve_clusters,
)

__all__ = [
    "ClusterResolutionError",
    "kubeconfigs_from_env",
    "resolve_clusters",
]

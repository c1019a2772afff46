"""Cluster resolver — turns kubeconfigs and in-cluster credentials into contexts.

The resolver:
1. Loads the current context of every explicit kubeconfig, in order
2. Adds the in-cluster context when running inside a pod
3. Re-scopes every context to all namespaces or to a namespace override

Not running inside a cluster is not an error. Resolving zero contexts is
not an error either; callers decide whether that is fatal.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from kubernetes import client, config

from kcount.models import ALL_NAMESPACES, ClusterContext

logger = logging.getLogger(__name__)

IN_CLUSTER_NAME = "in-cluster"
DEFAULT_NAMESPACE = "default"
SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
_SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
_SERVICE_PORT_ENV = "KUBERNETES_SERVICE_PORT"


class ClusterResolutionError(Exception):
    """Raised when a cluster configuration cannot be loaded."""


def kubeconfigs_from_env(environ: Mapping[str, str] | None = None) -> list[str]:
    """Return the kubeconfig paths listed in ``$KUBECONFIG``.

    The variable may hold several paths separated by ``os.pathsep``.
    """
    environ = os.environ if environ is None else environ
    value = environ.get("KUBECONFIG", "")
    return [p for p in value.split(os.pathsep) if p]


def resolve_clusters(
    kubeconfigs: Sequence[str | Path],
    all_namespaces: bool = False,
    namespace: str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    namespace_file: Path = SERVICE_ACCOUNT_NAMESPACE,
) -> list[ClusterContext]:
    """Resolve cluster contexts from kubeconfig files and in-cluster config.

    Raises:
        ClusterResolutionError: If a kubeconfig cannot be loaded, or the
            in-cluster config is present but unusable.
    """
    clusters = [from_kubeconfig(path) for path in kubeconfigs]

    in_cluster = from_in_cluster(environ=environ, namespace_file=namespace_file)
    if in_cluster is not None:
        clusters.append(in_cluster)

    if all_namespaces:
        clusters = [c.with_namespace(ALL_NAMESPACES) for c in clusters]
    elif namespace:
        clusters = [c.with_namespace(namespace) for c in clusters]

    for c in clusters:
        logger.debug(
            "resolved cluster %s (namespace=%r, source=%s)",
            c.name, c.namespace, c.source,
        )
    return clusters


def from_kubeconfig(path: str | Path) -> ClusterContext:
    """Build a context from the current context of a kubeconfig file."""
    path = str(path)
    try:
        _, active = config.list_kube_config_contexts(config_file=path)
        if not active:
            raise ClusterResolutionError(f"{path}: no current context set")

        configuration = client.Configuration()
        config.load_kube_config(
            config_file=path,
            context=active["name"],
            client_configuration=configuration,
            persist_config=False,
        )
    except ClusterResolutionError:
        raise
    except Exception as exc:
        raise ClusterResolutionError(f"loading kubeconfig {path}: {exc}") from exc

    ctx = active.get("context") or {}
    return ClusterContext(
        name=ctx.get("cluster") or active["name"],
        # kind clusters leave the context namespace unset
        namespace=ctx.get("namespace") or DEFAULT_NAMESPACE,
        configuration=configuration,
        source=path,
    )


def from_in_cluster(
    *,
    environ: Mapping[str, str] | None = None,
    namespace_file: Path = SERVICE_ACCOUNT_NAMESPACE,
) -> ClusterContext | None:
    """Build a context from the pod's service account, or None outside a cluster."""
    environ = os.environ if environ is None else environ
    if not environ.get(_SERVICE_HOST_ENV) or not environ.get(_SERVICE_PORT_ENV):
        return None

    configuration = client.Configuration()
    try:
        config.load_incluster_config(client_configuration=configuration)
        namespace = namespace_file.read_text(encoding="utf-8").strip()
    except Exception as exc:
        raise ClusterResolutionError(f"loading in-cluster config: {exc}") from exc

    return ClusterContext(
        name=IN_CLUSTER_NAME,
        namespace=namespace or DEFAULT_NAMESPACE,
        configuration=configuration,
        source=IN_CLUSTER_NAME,
    )

"""Object listers — fetch object metadata for one kind in one cluster.

The ObjectLister protocol defines the interface the counter depends on.
Any object with a ``list_objects()`` method satisfies the protocol; no
inheritance required.

K8sObjectLister uses the official ``kubernetes`` Python client. Each kind
maps to a namespaced list call and an all-namespaces list call.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from kubernetes import client

from kcount.counter.errors import UnsupportedKindError
from kcount.models import ClusterContext, Kind


@runtime_checkable
class ObjectLister(Protocol):
    """Protocol for object listers.

    Implementations return the metadata of every object of *kind* in the
    cluster's namespace scope matching *label_selector*. Each returned item
    must expose a ``creation_timestamp`` attribute.
    """

    def list_objects(
        self,
        cluster: ClusterContext,
        kind: Kind,
        label_selector: str,
        timeout: float,
    ) -> list[Any]:
        """List object metadata, bounded by *timeout* seconds."""
        ...


@dataclass(frozen=True)
class K8sKindMapping:
    """Maps an object kind to kubernetes client list calls."""

    api_class: str
    namespaced_method: str
    all_namespaces_method: str


KIND_MAP: dict[Kind, K8sKindMapping] = {
    Kind.DEPLOYMENT: K8sKindMapping(
        api_class="AppsV1Api",
        namespaced_method="list_namespaced_deployment",
        all_namespaces_method="list_deployment_for_all_namespaces",
    ),
    Kind.POD: K8sKindMapping(
        api_class="CoreV1Api",
        namespaced_method="list_namespaced_pod",
        all_namespaces_method="list_pod_for_all_namespaces",
    ),
    Kind.CONFIGMAP: K8sKindMapping(
        api_class="CoreV1Api",
        namespaced_method="list_namespaced_config_map",
        all_namespaces_method="list_config_map_for_all_namespaces",
    ),
    Kind.SECRET: K8sKindMapping(
        api_class="CoreV1Api",
        namespaced_method="list_namespaced_secret",
        all_namespaces_method="list_secret_for_all_namespaces",
    ),
    Kind.INGRESS: K8sKindMapping(
        api_class="NetworkingV1Api",
        namespaced_method="list_namespaced_ingress",
        all_namespaces_method="list_ingress_for_all_namespaces",
    ),
    Kind.SERVICE: K8sKindMapping(
        api_class="CoreV1Api",
        namespaced_method="list_namespaced_service",
        all_namespaces_method="list_service_for_all_namespaces",
    ),
    Kind.STATEFULSET: K8sKindMapping(
        api_class="AppsV1Api",
        namespaced_method="list_namespaced_stateful_set",
        all_namespaces_method="list_stateful_set_for_all_namespaces",
    ),
    Kind.DAEMONSET: K8sKindMapping(
        api_class="AppsV1Api",
        namespaced_method="list_namespaced_daemon_set",
        all_namespaces_method="list_daemon_set_for_all_namespaces",
    ),
    Kind.JOB: K8sKindMapping(
        api_class="BatchV1Api",
        namespaced_method="list_namespaced_job",
        all_namespaces_method="list_job_for_all_namespaces",
    ),
    Kind.CRONJOB: K8sKindMapping(
        api_class="BatchV1Api",
        namespaced_method="list_namespaced_cron_job",
        all_namespaces_method="list_cron_job_for_all_namespaces",
    ),
}


class K8sObjectLister:
    """Lister backed by the kubernetes Python client.

    A fresh ``ApiClient`` is built from the cluster's configuration for
    every call and closed afterwards, so concurrent workers never share a
    connection pool.
    """

    def __init__(self, kind_map: dict[Kind, K8sKindMapping] | None = None) -> None:
        self._kind_map = kind_map if kind_map is not None else KIND_MAP

    def supports(self, kind: Kind) -> bool:
        return kind in self._kind_map

    def list_objects(
        self,
        cluster: ClusterContext,
        kind: Kind,
        label_selector: str,
        timeout: float,
    ) -> list[Any]:
        mapping = self._kind_map.get(kind)
        if mapping is None:
            raise UnsupportedKindError(f"unsupported kind: {kind}")

        kwargs = self._build_kwargs(label_selector, timeout)
        with self._get_api_client(cluster) as api_client:
            api = self._get_api_instance(mapping.api_class, api_client)
            if cluster.all_namespaces:
                method = getattr(api, mapping.all_namespaces_method)
            else:
                method = getattr(api, mapping.namespaced_method)
                kwargs["namespace"] = cluster.namespace
            result = method(**kwargs)

        return [item.metadata for item in result.items or []]

    # --- Private: client setup ---

    def _get_api_client(self, cluster: ClusterContext) -> Any:
        """Build a kubernetes ApiClient for the cluster's configuration.

        urllib3 retries are switched off on a private copy of the
        configuration, so a list call makes exactly one attempt.
        """
        if cluster.configuration is None:
            configuration = client.Configuration.get_default_copy()
        else:
            configuration = copy.deepcopy(cluster.configuration)
        configuration.retries = False
        return client.ApiClient(configuration)

    def _get_api_instance(self, api_class_name: str, api_client: Any) -> Any:
        """Instantiate the appropriate API class."""
        api_cls = getattr(client, api_class_name)
        return api_cls(api_client)

    # --- Private: argument building ---

    def _build_kwargs(
        self, label_selector: str, timeout: float,
    ) -> dict[str, Any]:
        """Build list call kwargs; the server and the client both enforce *timeout*."""
        kwargs: dict[str, Any] = {
            "timeout_seconds": max(1, int(timeout)),
            "_request_timeout": timeout,
        }
        if label_selector:
            kwargs["label_selector"] = label_selector
        return kwargs
